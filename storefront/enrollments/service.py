"""Couche service des inscriptions aux cours.
Rôles:
- Préparer le règlement d'un cours (commande Razorpay) ou inscrire directement un cours gratuit.
- Finaliser une inscription après paiement confirmé (fonction Postgres atomique).
- Variante redirection: session Stripe Checkout, confirmation sans webhook et webhook Stripe.
"""
from typing import Any, Dict, List
from uuid import uuid4
import logging

from storefront import config
from storefront.catalog import service as catalog_service
from storefront.errors import NotFoundError, SecurityError, StorageError, UnavailableError, ValidationError
from storefront.payments import cart
from storefront.payments import razorpay_client
from storefront.payments import stripe_client
from storefront.payments.metadata import COURSE, extract_metadata_from_session
from storefront.payments.models import (
    GatewayOrderHandle,
    ReconciliationResult,
    ALREADY_ENROLLED,
    ALREADY_TERMINAL,
    CAPTURED_ON_TERMINAL,
    COMPLETED,
    IGNORED,
    UNKNOWN_ORDER,
)
from storefront.utils.money import ZERO, as_str, to_decimal, to_minor_units
from . import repository

logger = logging.getLogger(__name__)

PENDING = "pending"
FAILED = "failed"

def _already_enrolled() -> UnavailableError:
    return UnavailableError("Vous êtes déjà inscrit à ce cours", code="already_enrolled", status_code=409)

def _ensure_not_enrolled(user_id: str, course_id: str) -> None:
    if repository.find_enrollment(user_id, course_id, COMPLETED):
        raise _already_enrolled()

def _enroll_free(user_id: str, course: catalog_service.CoursePrice) -> GatewayOrderHandle:
    gateway_order_id = f"free_{uuid4().hex}"
    row = repository.create_enrollment({
        "user_id": user_id,
        "course_id": course.course_id,
        "payment_status": COMPLETED,
        "gateway_order_id": gateway_order_id,
        "amount": as_str(ZERO),
    })
    if row is None:
        # Course perdue contre une autre inscription completed
        raise _already_enrolled()
    logger.info("enrollments.service free enrollment user_id=%s course_id=%s", user_id, course.course_id)
    return GatewayOrderHandle(
        kind=COURSE,
        gateway_order_id=gateway_order_id,
        amount=0,
        currency=config.SETTLEMENT_CURRENCY,
        status=COMPLETED,
        enrollment_id=row.get("id"),
        payable=ZERO,
    )

def _handle_from_enrollment(row: Dict[str, Any], replayed: bool = False) -> GatewayOrderHandle:
    amount = to_decimal(row.get("amount"))
    return GatewayOrderHandle(
        kind=COURSE,
        gateway_order_id=row.get("gateway_order_id") or "",
        amount=to_minor_units(amount),
        currency=config.SETTLEMENT_CURRENCY,
        key_id=config.RAZORPAY_KEY_ID,
        status=row.get("payment_status") or PENDING,
        enrollment_id=row.get("id"),
        payable=amount,
        replayed=replayed,
    )

# module storefront.enrollments.service
def create_course_settlement(user_id: str, course_id: Any) -> GatewayOrderHandle:
    """
    Prépare l'achat d'un cours.
    - Cours inconnu/non publié -> UnavailableError; déjà inscrit -> UnavailableError(409).
    - Cours gratuit -> inscription completed immédiate, aucune passerelle.
    - Inscription pending existante au même montant -> relue (pas de seconde commande passerelle).
    """
    if course_id in (None, ""):
        raise ValidationError("course_id manquant", code="course_id_required")
    course = catalog_service.resolve_course(str(course_id))
    _ensure_not_enrolled(user_id, course.course_id)

    if course.is_free:
        return _enroll_free(user_id, course)

    pending = repository.find_enrollment(user_id, course.course_id, PENDING)
    if pending and pending.get("gateway_order_id") and to_decimal(pending.get("amount")) == course.fee:
        logger.info(
            "enrollments.service create_course_settlement replay user_id=%s gateway_order_id=%s",
            user_id, pending.get("gateway_order_id"),
        )
        return _handle_from_enrollment(pending, replayed=True)

    notes = cart.make_notes(user_id, COURSE, course_id=course.course_id)
    notes["payable"] = as_str(course.fee)
    gateway_order = razorpay_client.create_order(
        amount=to_minor_units(course.fee),
        currency=config.SETTLEMENT_CURRENCY,
        receipt=f"course_{uuid4().hex[:24]}",
        notes=notes,
    )
    gateway_order_id = gateway_order["id"]

    try:
        row = repository.create_enrollment({
            "user_id": user_id,
            "course_id": course.course_id,
            "payment_status": PENDING,
            "gateway_order_id": gateway_order_id,
            "amount": as_str(course.fee),
        })
    except StorageError:
        row = None
    if not row:
        logger.critical(
            "enrollments.service orphaned gateway order user_id=%s gateway_order_id=%s payable=%s",
            user_id, gateway_order_id, as_str(course.fee),
        )
        raise StorageError("Enregistrement de l'inscription impossible")

    logger.info(
        "enrollments.service create_course_settlement user_id=%s gateway_order_id=%s payable=%s",
        user_id, gateway_order_id, as_str(course.fee),
    )
    return _handle_from_enrollment(row)

def _result(outcome: Dict[str, Any], gateway_ref: str) -> ReconciliationResult:
    kind_outcome = outcome.get("outcome") or UNKNOWN_ORDER
    if kind_outcome == UNKNOWN_ORDER:
        raise NotFoundError("Inscription introuvable")
    if kind_outcome == ALREADY_ENROLLED:
        # Paiement encaissé sans inscription: à rembourser hors de ce service
        logger.warning("enrollments.service duplicate enrollment payment ref=%s refund_required=true", gateway_ref)
    elif kind_outcome == CAPTURED_ON_TERMINAL:
        logger.critical("enrollments.service captured on terminal enrollment ref=%s refund_required=true", gateway_ref)
    elif kind_outcome == ALREADY_TERMINAL:
        logger.info("enrollments.service replay ref=%s status=%s", gateway_ref, outcome.get("status"))
    else:
        logger.info("enrollments.service reconciled ref=%s outcome=%s", gateway_ref, kind_outcome)
    return ReconciliationResult(
        kind=COURSE,
        status=outcome.get("status") or "",
        outcome=kind_outcome,
        enrollment_id=outcome.get("enrollment_id"),
    )

def finalize_enrollment(gateway_order_id: str, gateway_payment_id: str) -> ReconciliationResult:
    """pending -> completed (ou failed si une autre inscription completed existe déjà)."""
    return _result(repository.finalize_enrollment_payment(gateway_order_id, gateway_payment_id), gateway_order_id)

def list_user_enrollments(user_id: str) -> List[dict]:
    rows = repository.list_user_enrollments(user_id)
    return [
        {
            "id": r.get("id"),
            "course_id": r.get("course_id"),
            "course_name": (r.get("courses") or {}).get("name"),
            "payment_status": r.get("payment_status"),
            "amount": as_str(to_decimal(r.get("amount"))),
            "enrolled_at": r.get("enrolled_at"),
        }
        for r in rows
    ]

# --- Variante Stripe Checkout (PaymentSession) ---

def create_course_checkout_session(user_id: str, course_id: Any) -> Dict[str, Any]:
    """
    Crée la session Stripe puis la ligne 'payment_sessions' (passerelle d'abord).
    Retour: {"id", "url"} ou, pour un cours gratuit, l'inscription directe.
    """
    if course_id in (None, ""):
        raise ValidationError("course_id manquant", code="course_id_required")
    course = catalog_service.resolve_course(str(course_id))
    _ensure_not_enrolled(user_id, course.course_id)
    if course.is_free:
        return _enroll_free(user_id, course).to_dict()

    success_url = f"{config.BASE_URL}{config.COURSE_SUCCESS_PATH}?session_id={{CHECKOUT_SESSION_ID}}"
    cancel_url = f"{config.BASE_URL}{config.COURSE_CANCEL_PATH}"
    session = stripe_client.create_session(
        line_items=[
            {
                "price_data": {
                    "currency": config.SETTLEMENT_CURRENCY.lower(),
                    "product_data": {"name": course.name},
                    "unit_amount": to_minor_units(course.fee),
                },
                "quantity": 1,
            }
        ],
        success_url=success_url,
        cancel_url=cancel_url,
        metadata={"user_id": user_id, "course_id": course.course_id, "kind": COURSE},
    )
    session_id = session.get("id") or ""
    try:
        row = repository.create_payment_session({
            "session_id": session_id,
            "user_id": user_id,
            "course_id": course.course_id,
            "amount": as_str(course.fee),
            "status": PENDING,
        })
    except StorageError:
        row = None
    if not row:
        logger.critical("enrollments.service orphaned stripe session user_id=%s session_id=%s", user_id, session_id)
        raise StorageError("Enregistrement de la session impossible")
    logger.info("enrollments.service checkout session user_id=%s session_id=%s", user_id, session_id)
    return {"id": session_id, "url": session.get("url")}

def _finalize_session(session_id: str) -> ReconciliationResult:
    return _result(repository.finalize_payment_session(session_id), session_id)

def confirm_course_session(session_id: str, current_user_id: str) -> ReconciliationResult:
    """
    Alternative sans webhook: lit la session Stripe, vérifie propriété et paiement, puis finalise.
    - Session d'un autre utilisateur -> 403.
    - Session expirée -> payment_session 'failed'.
    - payment_status != 'paid' -> ValidationError (rien n'est modifié).
    """
    if not session_id:
        raise ValidationError("session_id manquant", code="session_id_required")
    session = stripe_client.get_session(session_id)
    meta_user_id, _course_id = extract_metadata_from_session(session)
    if meta_user_id and meta_user_id != current_user_id:
        raise SecurityError("Session appartenant à un autre utilisateur", code="forbidden", status_code=403)

    if session.get("status") == "expired":
        return _result(repository.mark_payment_session_failed(session_id), session_id)

    payment_status = session.get("payment_status") or ""
    if payment_status != "paid":
        raise ValidationError(
            f"Paiement non confirmé (payment_status={payment_status})",
            code="payment_not_confirmed",
        )
    return _finalize_session(session_id)

def handle_stripe_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Traite un événement Stripe déjà vérifié.
    - checkout.session.completed (payé) -> finalisation
    - checkout.session.expired -> session 'failed'
    - autres -> {"status": "ignored"}
    """
    etype = (event or {}).get("type")
    session = ((event or {}).get("data") or {}).get("object") or {}
    session_id = session.get("id") or ""
    if etype == "checkout.session.completed" and session.get("payment_status") == "paid":
        result = _finalize_session(session_id)
    elif etype == "checkout.session.expired":
        result = _result(repository.mark_payment_session_failed(session_id), session_id)
    else:
        return {"status": IGNORED}
    return {"status": "ok", **result.to_dict()}
