from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging
import storefront.infra.supabase_client as supabase_client
from storefront.errors import StorageError

logger = logging.getLogger(__name__)

# module storefront.orders.repository
def fetch_user_orders(user_id: str, limit: int = 50) -> List[dict]:
    """Commandes d'un utilisateur avec leurs lignes (prix figés) et le nom des produits."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select(
                "id, total_amount, discount_amount, shipping_amount, status, shipping_method, "
                "address, gateway_order_id, created_at, "
                "order_items(id, product_id, variant_id, quantity, price, products(name))"
            )
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("orders.repository.fetch_user_orders failed user_id=%s", user_id)
        return []

def get_order(order_id: str) -> Optional[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select("id, user_id, status")
            .eq("id", order_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("orders.repository.get_order failed id=%s", order_id)
        raise StorageError("Commandes indisponibles")

def update_status(order_id: str, expected: str, new_status: str) -> Optional[dict]:
    """
    Compare-and-swap du statut: ne met à jour que si le statut courant vaut 'expected'.
    Retourne la ligne mise à jour, None si le statut a changé entre-temps.
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .update({"status": new_status, "updated_at": datetime.now(timezone.utc).isoformat()})
            .eq("id", order_id)
            .eq("status", expected)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("orders.repository.update_status failed id=%s", order_id)
        raise StorageError("Mise à jour de la commande impossible")

def fetch_admin_orders(limit: int = 100) -> List[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select("id, user_id, total_amount, discount_amount, status, shipping_method, gateway_order_id, created_at")
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("orders.repository.fetch_admin_orders failed")
        return []
