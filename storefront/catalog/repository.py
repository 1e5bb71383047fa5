"""
Accès en lecture au catalogue (produits, variantes, cours).
Le catalogue est l'oracle prix/stock au moment du règlement: une erreur de lecture
n'est jamais confondue avec un article introuvable (StorageError).
"""
from typing import Any, Dict, Iterable, List, Optional
import logging
import storefront.infra.supabase_client as supabase_client
from storefront.errors import StorageError

logger = logging.getLogger(__name__)

# module storefront.catalog.repository
def fetch_products(ids: Iterable[str]) -> List[dict]:
    """
    Récupère les produits par IDs (table 'products').
    - Retourne [] si ids vide.
    """
    ids = [str(i) for i in ids]
    if not ids:
        return []
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("products")
            .select("id, name, price, stock")
            .in_("id", ids)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("catalog.repository.fetch_products failed ids=%s", ids)
        raise StorageError("Catalogue indisponible")

def fetch_variants(ids: Iterable[str]) -> List[dict]:
    ids = [str(i) for i in ids]
    if not ids:
        return []
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("product_variants")
            .select("id, product_id, sku, price, stock")
            .in_("id", ids)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("catalog.repository.fetch_variants failed ids=%s", ids)
        raise StorageError("Catalogue indisponible")

def get_course(course_id: str) -> Optional[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("courses")
            .select("id, name, description, price, is_free, is_published")
            .eq("id", str(course_id))
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("catalog.repository.get_course failed course_id=%s", course_id)
        raise StorageError("Catalogue indisponible")
