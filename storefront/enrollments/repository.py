"""
Accès données inscriptions ('enrollments') et sessions Stripe ('payment_sessions').
"""
from typing import Any, Dict, List, Optional
import logging
from postgrest.exceptions import APIError
import storefront.infra.supabase_client as supabase_client
from storefront.errors import StorageError
from storefront.payments.repository import UNIQUE_VIOLATION, _rpc, api_error_code

logger = logging.getLogger(__name__)

ENROLLMENT_COLUMNS = (
    "id, user_id, course_id, payment_status, gateway_order_id, gateway_payment_id, "
    "stripe_session_id, amount, enrolled_at"
)

# module storefront.enrollments.repository
def find_enrollment(user_id: str, course_id: str, payment_status: str) -> Optional[dict]:
    """Dernière inscription (utilisateur, cours) dans l'état demandé; None sinon."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("enrollments")
            .select(ENROLLMENT_COLUMNS)
            .eq("user_id", user_id)
            .eq("course_id", course_id)
            .eq("payment_status", payment_status)
            .order("enrolled_at", desc=True)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("enrollments.repository.find_enrollment failed user_id=%s course_id=%s", user_id, course_id)
        raise StorageError("Inscriptions indisponibles")

def get_by_gateway_order_id(gateway_order_id: str) -> Optional[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("enrollments")
            .select(ENROLLMENT_COLUMNS)
            .eq("gateway_order_id", gateway_order_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("enrollments.repository.get_by_gateway_order_id failed gateway_order_id=%s", gateway_order_id)
        raise StorageError("Inscriptions indisponibles")

def create_enrollment(data: Dict[str, Any]) -> Optional[dict]:
    """
    Insère une inscription et retourne la ligne créée.
    - None en cas de doublon (23505): inscription completed déjà présente.
    """
    try:
        res = supabase_client.get_service_supabase().table("enrollments").insert(data).execute()
        rows = res.data or []
        return rows[0] if rows else None
    except APIError as e:
        if api_error_code(e) == UNIQUE_VIOLATION:
            return None
        logger.exception("enrollments.repository.create_enrollment failed user_id=%s", data.get("user_id"))
        raise StorageError("Enregistrement de l'inscription impossible")
    except Exception:
        logger.exception("enrollments.repository.create_enrollment failed user_id=%s", data.get("user_id"))
        raise StorageError("Enregistrement de l'inscription impossible")

def list_user_enrollments(user_id: str, limit: int = 100) -> List[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("enrollments")
            .select("id, course_id, payment_status, amount, enrolled_at, courses(name)")
            .eq("user_id", user_id)
            .order("enrolled_at", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("enrollments.repository.list_user_enrollments failed user_id=%s", user_id)
        return []

def finalize_enrollment_payment(gateway_order_id: str, gateway_payment_id: str) -> Dict[str, Any]:
    try:
        return _rpc(
            "finalize_enrollment_payment",
            {"p_gateway_order_id": gateway_order_id, "p_gateway_payment_id": gateway_payment_id},
        )
    except Exception:
        logger.exception("enrollments.repository.finalize_enrollment_payment failed gateway_order_id=%s", gateway_order_id)
        raise StorageError("Finalisation de l'inscription impossible")

# --- Sessions Stripe Checkout ---

def create_payment_session(data: Dict[str, Any]) -> Optional[dict]:
    try:
        res = supabase_client.get_service_supabase().table("payment_sessions").insert(data).execute()
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("enrollments.repository.create_payment_session failed session_id=%s", data.get("session_id"))
        raise StorageError("Enregistrement de la session impossible")

def finalize_payment_session(session_id: str) -> Dict[str, Any]:
    try:
        return _rpc("finalize_payment_session", {"p_session_id": session_id})
    except Exception:
        logger.exception("enrollments.repository.finalize_payment_session failed session_id=%s", session_id)
        raise StorageError("Finalisation de la session impossible")

def mark_payment_session_failed(session_id: str) -> Dict[str, Any]:
    try:
        return _rpc("mark_payment_session_failed", {"p_session_id": session_id})
    except Exception:
        logger.exception("enrollments.repository.mark_payment_session_failed failed session_id=%s", session_id)
        raise StorageError("Mise à jour de la session impossible")
