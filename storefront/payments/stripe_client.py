"""
Adaptateur Stripe: centralise les appels Checkout (variante "redirection" des cours).
"""
import stripe
from typing import Any, Dict, List
from fastapi import Request

from storefront import config
from storefront.errors import GatewayError, SecurityError

# module storefront.payments.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY.
    - Sans clé -> GatewayError (aucun appel tenté).
    """
    if not config.STRIPE_SECRET_KEY:
        raise GatewayError("Passerelle Stripe non configurée", code="gateway_not_configured")
    stripe.api_key = config.STRIPE_SECRET_KEY
    return stripe

def create_session(
    *,
    line_items: List[Dict[str, Any]],
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Crée une session Stripe Checkout en mode "payment".
    Retour: dict session (ex: {"id": "cs_test_...", "url": "https://..."})
    """
    require_stripe()
    try:
        session = stripe.checkout.Session.create(
            line_items=line_items,
            mode="payment",
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
            payment_method_types=["card"],
        )
    except stripe.StripeError as e:
        raise GatewayError(f"Session Stripe refusée: {e.user_message or 'erreur passerelle'}")
    # stripe retourne un objet; on le traite comme dict-compatible
    return dict(session)

def get_session(session_id: str) -> Dict[str, Any]:
    """
    Récupère une session Stripe Checkout par son identifiant.
    Retour: dict session incluant "id", "payment_status", "status", "metadata", etc.
    """
    require_stripe()
    try:
        session = stripe.checkout.Session.retrieve(session_id)
    except stripe.InvalidRequestError:
        raise GatewayError("Session introuvable", code="unknown_session", status_code=404)
    except stripe.StripeError:
        raise GatewayError("Passerelle Stripe injoignable")
    return dict(session)

async def parse_event(request: Request):
    """
    Parse et valide un événement Stripe signé (webhook).
    - Lit le body brut + en-tête Stripe-Signature
    - Valide la signature via Webhook.construct_event (STRIPE_WEBHOOK_SECRET)
    - Signature absente/invalide -> SecurityError
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature") or ""
    if not sig_header or not config.STRIPE_WEBHOOK_SECRET:
        raise SecurityError("Signature invalide")
    try:
        return stripe.Webhook.construct_event(payload, sig_header, config.STRIPE_WEBHOOK_SECRET)
    except (ValueError, stripe.SignatureVerificationError):
        raise SecurityError("Signature invalide")
