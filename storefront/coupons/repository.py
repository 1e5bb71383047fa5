"""
Accès données coupons (table 'coupons', comptages 'coupon_usages').
Aucune écriture de 'coupon_usages' ici: le rachat est fait par la fonction Postgres
finalize_order_payment, dans la même transaction que la transition de la commande.
"""
from typing import Any, Dict, List, Optional
import logging
import storefront.infra.supabase_client as supabase_client
from storefront.errors import StorageError

logger = logging.getLogger(__name__)

COUPON_COLUMNS = (
    "id, code, type, value, min_cart_value, max_discount, start_date, end_date, "
    "usage_limit, usage_limit_per_user, is_active, created_at"
)

# module storefront.coupons.repository
def find_active_coupon(code: str) -> Optional[Dict[str, Any]]:
    """Coupon actif par code déjà normalisé; None si inconnu ou inactif."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("coupons")
            .select(COUPON_COLUMNS)
            .eq("code", code)
            .eq("is_active", True)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("coupons.repository.find_active_coupon failed code=%s", code)
        raise StorageError("Coupons indisponibles")

def count_usages(coupon_id: Any, user_id: Optional[str] = None) -> int:
    """Nombre de rachats du coupon (global, ou pour un utilisateur si user_id)."""
    try:
        query = (
            supabase_client.get_service_supabase()
            .table("coupon_usages")
            .select("id", count="exact")
            .eq("coupon_id", coupon_id)
        )
        if user_id is not None:
            query = query.eq("user_id", user_id)
        res = query.execute()
        if res.count is not None:
            return int(res.count)
        return len(res.data or [])
    except Exception:
        logger.exception("coupons.repository.count_usages failed coupon_id=%s user_id=%s", coupon_id, user_id)
        raise StorageError("Coupons indisponibles")

def list_coupons(limit: int = 100) -> List[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("coupons")
            .select(COUPON_COLUMNS)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("coupons.repository.list_coupons failed")
        return []

def insert_coupon(data: Dict[str, Any]) -> Optional[dict]:
    try:
        res = supabase_client.get_service_supabase().table("coupons").insert(data).execute()
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("coupons.repository.insert_coupon failed code=%s", data.get("code"))
        return None

def update_coupon(coupon_id: str, data: Dict[str, Any]) -> Optional[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("coupons")
            .update(data)
            .eq("id", coupon_id)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("coupons.repository.update_coupon failed id=%s", coupon_id)
        return None
