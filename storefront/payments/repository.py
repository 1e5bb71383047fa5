"""
Accès aux données pour la feature 'payments' (commandes panier).
Les transitions d'état passent par des fonctions Postgres (rpc): une transaction chacune.
"""
from typing import Any, Dict, List, Optional
import logging
from postgrest.exceptions import APIError
# Import du module (et non des fonctions) pour bénéficier des monkeypatchs de tests
import storefront.infra.supabase_client as supabase_client
from storefront.errors import StorageError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"

ORDER_COLUMNS = (
    "id, user_id, total_amount, discount_amount, shipping_amount, coupon_id, status, "
    "shipping_method, gateway_order_id, gateway_payment_id, idempotency_key, created_at"
)

# module storefront.payments.repository
def api_error_code(e: APIError) -> Optional[str]:
    code = getattr(e, "code", None)
    if code is None and e.args and isinstance(e.args[0], dict):
        code = e.args[0].get("code")
    return str(code) if code is not None else None

def _rpc(name: str, params: Dict[str, Any]) -> Dict[str, Any]:
    res = supabase_client.get_service_supabase().rpc(name, params).execute()
    data = res.data
    if isinstance(data, list):
        data = data[0] if data else {}
    return data or {}

def find_order_by_idempotency_key(user_id: str, idempotency_key: str) -> Optional[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select(ORDER_COLUMNS)
            .eq("user_id", user_id)
            .eq("idempotency_key", idempotency_key)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("payments.repository.find_order_by_idempotency_key failed user_id=%s", user_id)
        raise StorageError("Commandes indisponibles")

def get_order_by_gateway_id(gateway_order_id: str) -> Optional[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select(ORDER_COLUMNS)
            .eq("gateway_order_id", gateway_order_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("payments.repository.get_order_by_gateway_id failed gateway_order_id=%s", gateway_order_id)
        raise StorageError("Commandes indisponibles")

def create_pending_order(order: Dict[str, Any], items: List[Dict[str, Any]]) -> Optional[dict]:
    """
    Insère la commande 'pending' et ses lignes (rpc create_pending_order, atomique).
    - Retourne {"order_id", "status", "gateway_order_id"}.
    - Retourne None en cas de doublon (23505): le service relira la commande existante.
    - Autre erreur -> StorageError.
    """
    try:
        return _rpc("create_pending_order", {"p_order": order, "p_items": items})
    except APIError as e:
        if api_error_code(e) == UNIQUE_VIOLATION:
            return None
        logger.exception("payments.repository.create_pending_order failed gateway_order_id=%s", order.get("gateway_order_id"))
        raise StorageError("Enregistrement de la commande impossible")
    except Exception:
        logger.exception("payments.repository.create_pending_order failed gateway_order_id=%s", order.get("gateway_order_id"))
        raise StorageError("Enregistrement de la commande impossible")

def finalize_order_payment(
    gateway_order_id: str, gateway_payment_id: str, require_redemption: bool = False
) -> Dict[str, Any]:
    """
    pending -> paid + rachat éventuel du coupon (rpc finalize_order_payment).
    - require_redemption (commande gratuite): rachat refusé -> commande failed, outcome "redemption_refused".
    - Paiement sur une commande failed/cancelled: identifiant conservé, outcome "captured_on_terminal".
    Retour: {"outcome", "status", "order_id", "redemption"}
    """
    try:
        return _rpc(
            "finalize_order_payment",
            {
                "p_gateway_order_id": gateway_order_id,
                "p_gateway_payment_id": gateway_payment_id,
                "p_require_redemption": require_redemption,
            },
        )
    except Exception:
        logger.exception("payments.repository.finalize_order_payment failed gateway_order_id=%s", gateway_order_id)
        raise StorageError("Finalisation de la commande impossible")
