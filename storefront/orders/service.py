"""Couche service des commandes (après règlement).
- Historique de l'utilisateur avec lignes aux prix figés.
- Transitions d'exécution par l'administration: paid -> shipped -> delivered, pending -> cancelled.
"""
from typing import Any, Dict, List
import logging

from storefront.errors import NotFoundError, UnavailableError, ValidationError
from storefront.utils.money import as_str, to_decimal
from . import repository

logger = logging.getLogger(__name__)

# Transitions autorisées: statut courant -> statuts cibles
TRANSITIONS = {
    "pending": ("cancelled",),
    "paid": ("shipped",),
    "shipped": ("delivered",),
}

def _money(value: Any) -> str:
    return as_str(to_decimal(value))

def _serialize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    price = to_decimal(item.get("price"))
    qty = int(item.get("quantity") or 0)
    return {
        "product_id": item.get("product_id"),
        "variant_id": item.get("variant_id"),
        "name": (item.get("products") or {}).get("name"),
        "quantity": qty,
        "unit_price": as_str(price),
        "line_total": as_str(price * qty),
    }

def list_user_orders(user_id: str) -> List[Dict[str, Any]]:
    orders = []
    for row in repository.fetch_user_orders(user_id):
        orders.append({
            "id": row.get("id"),
            "status": row.get("status"),
            "total_amount": _money(row.get("total_amount")),
            "discount_amount": _money(row.get("discount_amount")),
            "shipping_amount": _money(row.get("shipping_amount")),
            "shipping_method": row.get("shipping_method"),
            "address": row.get("address"),
            "gateway_order_id": row.get("gateway_order_id"),
            "created_at": row.get("created_at"),
            "items": [_serialize_item(i) for i in (row.get("order_items") or [])],
        })
    return orders

def list_admin_orders(limit: int = 100) -> List[Dict[str, Any]]:
    return repository.fetch_admin_orders(limit)

def update_order_status(order_id: str, new_status: str, admin_id: str | None = None) -> Dict[str, Any]:
    """
    Applique une transition d'exécution.
    - Statut cible inconnu ou transition interdite -> ValidationError
    - Commande inconnue -> NotFoundError
    - Statut modifié entre lecture et écriture -> UnavailableError(409)
    """
    new_status = str(new_status or "").strip().lower()
    order = repository.get_order(order_id)
    if not order:
        raise NotFoundError("Commande introuvable", code="order_not_found")
    current = order.get("status") or ""
    if new_status not in TRANSITIONS.get(current, ()):
        raise ValidationError(
            f"Transition interdite: {current} -> {new_status or '?'}",
            code="invalid_transition",
        )
    updated = repository.update_status(order_id, current, new_status)
    if not updated:
        raise UnavailableError("Commande modifiée entre-temps", code="status_conflict", status_code=409)
    logger.info("orders.service status order_id=%s %s->%s admin_id=%s", order_id, current, new_status, admin_id)
    return {"id": updated.get("id"), "status": updated.get("status")}
