"""
Adaptateur Razorpay: création de commande (REST) et vérification des signatures.
- Signature de paiement: HMAC_SHA256(key_secret, order_id + "|" + payment_id) en hex.
- Signature de webhook: HMAC_SHA256(webhook_secret, corps brut) en hex.
"""
from typing import Any, Dict
import hashlib
import hmac
import logging
import requests

from storefront import config
from storefront.errors import GatewayError

logger = logging.getLogger(__name__)

# module storefront.payments.razorpay_client
def require_razorpay() -> tuple:
    """
    Retourne (key_id, key_secret) prêts à l'emploi.
    Sans clés, aucune commande passerelle ne peut être ouverte.
    """
    if not config.RAZORPAY_KEY_ID or not config.RAZORPAY_KEY_SECRET:
        raise GatewayError("Passerelle de paiement non configurée", code="gateway_not_configured")
    return config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET

def create_order(*, amount: int, currency: str, receipt: str, notes: Dict[str, str]) -> Dict[str, Any]:
    """
    Ouvre une commande Razorpay.
    - amount: montant en unités mineures (paise)
    - receipt: référence locale (<= 40 caractères)
    Retour: dict commande (ex: {"id": "order_...", "amount": 60000, "currency": "INR"})
    Erreurs réseau ou refus -> GatewayError (réessayable).
    """
    key_id, key_secret = require_razorpay()
    payload = {"amount": amount, "currency": currency, "receipt": receipt[:40], "notes": notes}
    try:
        resp = requests.post(
            f"{config.RAZORPAY_API_URL}/orders",
            json=payload,
            auth=(key_id, key_secret),
            timeout=config.RAZORPAY_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.warning("razorpay.create_order unreachable receipt=%s error=%s", receipt, e)
        raise GatewayError("Passerelle de paiement injoignable")
    if resp.status_code >= 400:
        logger.warning("razorpay.create_order rejected status=%s body=%s", resp.status_code, resp.text[:500])
        raise GatewayError("Commande refusée par la passerelle de paiement", code="gateway_rejected")
    order = resp.json()
    if not order.get("id"):
        raise GatewayError("Réponse passerelle invalide", code="gateway_rejected")
    return order

def _hex_hmac(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()

def payment_signature(order_id: str, payment_id: str, secret: str | None = None) -> str:
    secret = secret if secret is not None else config.RAZORPAY_KEY_SECRET
    return _hex_hmac(secret, f"{order_id}|{payment_id}".encode("utf-8"))

def verify_payment_signature(order_id: str, payment_id: str, signature: str) -> bool:
    """Comparaison en temps constant; faux si le secret n'est pas configuré."""
    if not config.RAZORPAY_KEY_SECRET or not signature:
        return False
    expected = payment_signature(order_id, payment_id)
    return hmac.compare_digest(expected, str(signature))

def verify_webhook_signature(body: bytes, signature: str) -> bool:
    if not config.RAZORPAY_WEBHOOK_SECRET or not signature:
        return False
    expected = _hex_hmac(config.RAZORPAY_WEBHOOK_SECRET, body)
    return hmac.compare_digest(expected, str(signature))
