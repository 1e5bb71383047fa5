from fastapi import APIRouter, Depends
from pydantic import BaseModel

from storefront.utils.security import require_admin, require_user
from storefront.orders import service as orders_service

router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])
admin_router = APIRouter(prefix="/api/v1/admin/orders", tags=["Admin"])

class StatusUpdate(BaseModel):
    status: str

# module storefront.orders.views
@router.get("")
def list_my_orders(user: dict = Depends(require_user)):
    return {"orders": orders_service.list_user_orders(str(user.get("id")))}

@admin_router.get("")
def admin_list_orders(user: dict = Depends(require_admin)):
    return {"orders": orders_service.list_admin_orders()}

@admin_router.patch("/{order_id}")
def admin_update_order(order_id: str, body: StatusUpdate, user: dict = Depends(require_admin)):
    """Transition d'exécution (paid -> shipped -> delivered, pending -> cancelled)."""
    return orders_service.update_order_status(order_id, body.status, admin_id=user.get("id"))
