"""
Rapprochement des paiements Razorpay (callback client signé et webhook).

Étapes de reconcile():
  1) vérification de la signature (aucune écriture si elle échoue)
  2) localisation de la commande / inscription par identifiant passerelle
  3) état terminal -> relecture idempotente, ou captured_on_terminal si le paiement est nouveau
  4) sinon transition atomique (fonction Postgres), rachat du coupon inclus
"""
from typing import Any, Dict, Optional
import json
import logging

from storefront.coupons.models import RedemptionOutcome
from storefront.enrollments import repository as enrollments_repository
from storefront.enrollments import service as enrollments_service
from storefront.errors import NotFoundError, SecurityError, ValidationError
from . import razorpay_client
from . import repository
from .metadata import CART, COURSE, KINDS, extract_kind, extract_notes, extract_razorpay_entities
from .models import ReconciliationResult, ALREADY_TERMINAL, CAPTURED_ON_TERMINAL, IGNORED, PAYMENT_FAILED, UNKNOWN_ORDER

logger = logging.getLogger(__name__)

CAPTURED_EVENTS = ("payment.captured", "order.paid")
FAILED_EVENTS = ("payment.failed",)

# module storefront.payments.reconcile
def normalize_kind(kind: Optional[str]) -> str:
    kind = str(kind or CART).strip().lower()
    if kind not in KINDS:
        raise ValidationError("Type de paiement invalide", code="invalid_type")
    return kind

def _order_result(outcome: Dict[str, Any], gateway_order_id: str, gateway_payment_id: str = "") -> ReconciliationResult:
    status_outcome = outcome.get("outcome") or UNKNOWN_ORDER
    if status_outcome == UNKNOWN_ORDER:
        raise NotFoundError("Commande introuvable")
    redemption = outcome.get("redemption") or RedemptionOutcome.NONE
    if status_outcome == CAPTURED_ON_TERMINAL:
        # Argent encaissé sur une commande failed/cancelled: à traiter hors de ce service
        logger.critical(
            "payments.reconcile captured on terminal order gateway_order_id=%s gateway_payment_id=%s status=%s refund_required=true",
            gateway_order_id, gateway_payment_id, outcome.get("status"),
        )
    elif status_outcome == ALREADY_TERMINAL:
        logger.info("payments.reconcile replay gateway_order_id=%s status=%s", gateway_order_id, outcome.get("status"))
    else:
        logger.info(
            "payments.reconcile reconciled gateway_order_id=%s outcome=%s redemption=%s",
            gateway_order_id, status_outcome, redemption,
        )
    if redemption in RedemptionOutcome.REFUSED:
        logger.warning(
            "payments.reconcile coupon redemption refused gateway_order_id=%s order_id=%s outcome=%s",
            gateway_order_id, outcome.get("order_id"), redemption,
        )
    return ReconciliationResult(
        kind=CART,
        status=outcome.get("status") or "",
        outcome=status_outcome,
        redemption=redemption,
        order_id=outcome.get("order_id"),
    )

def finalize(kind: str, gateway_order_id: str, gateway_payment_id: str) -> ReconciliationResult:
    """Transition atomique d'un paiement déjà authentifié."""
    if kind == COURSE:
        return enrollments_service.finalize_enrollment(gateway_order_id, gateway_payment_id)
    return _order_result(
        repository.finalize_order_payment(gateway_order_id, gateway_payment_id),
        gateway_order_id,
        gateway_payment_id,
    )

def verify_signature(gateway_order_id: str, gateway_payment_id: str, signature: str) -> None:
    if not razorpay_client.verify_payment_signature(gateway_order_id, gateway_payment_id, signature):
        # La signature fournie n'est jamais journalisée
        logger.warning(
            "payments.reconcile signature mismatch gateway_order_id=%s gateway_payment_id=%s",
            gateway_order_id, gateway_payment_id,
        )
        raise SecurityError("Signature invalide")

def reconcile(kind: Optional[str], gateway_order_id: str, gateway_payment_id: str, signature: str) -> ReconciliationResult:
    """
    Confirme un paiement rapporté par le client après le checkout passerelle.
    - SecurityError: signature invalide (commande inchangée)
    - NotFoundError: identifiant passerelle inconnu
    - Rejouable: une commande déjà terminale est renvoyée avec outcome="already_terminal"
    """
    kind = normalize_kind(kind)
    if not gateway_order_id or not gateway_payment_id:
        raise ValidationError("Identifiants de paiement manquants", code="missing_payment_fields")
    verify_signature(gateway_order_id, gateway_payment_id, signature)
    return finalize(kind, gateway_order_id, gateway_payment_id)

def _lookup_kind(gateway_order_id: str) -> str:
    if repository.get_order_by_gateway_id(gateway_order_id):
        return CART
    if enrollments_repository.get_by_gateway_order_id(gateway_order_id):
        return COURSE
    raise NotFoundError("Commande introuvable")

def handle_razorpay_webhook(body: bytes, signature: str) -> Dict[str, Any]:
    """
    Webhook Razorpay: même finalisation que le callback client, signature sur le corps brut.
    - payment.captured / order.paid -> finalize
    - payment.failed -> journalisé seulement: la commande reste pending, le client peut
      relancer le paiement sur la même commande passerelle
    - autres -> {"status": "ignored"}
    """
    if not razorpay_client.verify_webhook_signature(body, signature):
        logger.warning("payments.reconcile webhook signature mismatch")
        raise SecurityError("Signature invalide")
    try:
        event = json.loads(body or b"{}")
    except ValueError:
        raise ValidationError("Payload webhook invalide", code="invalid_payload")
    if not isinstance(event, dict):
        raise ValidationError("Payload webhook invalide", code="invalid_payload")

    etype = event.get("event")
    if etype not in CAPTURED_EVENTS and etype not in FAILED_EVENTS:
        return {"status": IGNORED}

    payment, order = extract_razorpay_entities(event)
    gateway_order_id = payment.get("order_id") or order.get("id") or ""
    gateway_payment_id = payment.get("id") or ""
    if not gateway_order_id:
        raise ValidationError("Payload webhook invalide", code="invalid_payload")

    if etype in FAILED_EVENTS:
        logger.info(
            "payments.reconcile webhook payment failed gateway_order_id=%s gateway_payment_id=%s left pending",
            gateway_order_id, gateway_payment_id,
        )
        return {"status": "ok", "outcome": PAYMENT_FAILED, "gateway_order_id": gateway_order_id}

    kind = extract_kind(extract_notes(event)) or _lookup_kind(gateway_order_id)
    result = finalize(kind, gateway_order_id, gateway_payment_id)
    logger.info("payments.reconcile webhook event=%s gateway_order_id=%s outcome=%s", etype, gateway_order_id, result.outcome)
    return {"status": "ok", **result.to_dict()}
