import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from storefront.coupons import service as coupons_service
from storefront.errors import NotFoundError, StorageError, ValidationError
from storefront.payments import service as payments_service
from storefront.utils.money import to_decimal
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import require_admin, require_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/coupons", tags=["Coupons API"])
admin_router = APIRouter(prefix="/api/v1/admin/coupons", tags=["Admin"])

class PreviewRequest(BaseModel):
    code: str
    subtotal: Optional[str] = None
    items: Optional[List[Dict[str, Any]]] = None

# module storefront.coupons.views
@router.post("/preview", dependencies=[Depends(optional_rate_limit(times=20, seconds=60))])
def preview_coupon(req: PreviewRequest, user: dict = Depends(require_user)):
    """
    Aperçu d'un code promo (aucun rachat).
    - {code, items}: sous-total recalculé depuis le catalogue (prioritaire)
    - {code, subtotal}: sous-total indicatif fourni par le front
    """
    if req.items:
        subtotal = payments_service.preview_subtotal(req.items)
    else:
        try:
            subtotal = to_decimal(req.subtotal)
        except ValueError:
            raise ValidationError("Sous-total invalide", code="invalid_subtotal")
        if subtotal < 0:
            raise ValidationError("Sous-total invalide", code="invalid_subtotal")
    result = coupons_service.evaluate(req.code, str(user.get("id")), subtotal)
    return result.to_dict()

@admin_router.get("")
def admin_list_coupons(user: dict = Depends(require_admin)):
    return {"coupons": coupons_service.list_coupons()}

@admin_router.post("")
def admin_save_coupon(data: Dict[str, Any], user: dict = Depends(require_admin)):
    """Crée (sans id) ou met à jour (avec id) un coupon."""
    saved = coupons_service.save_coupon(data)
    if not saved:
        raise StorageError("Enregistrement du coupon impossible", code="coupon_not_saved")
    logger.info("coupons.views admin_save_coupon admin_id=%s code=%s", user.get("id"), saved.get("code"))
    return {"coupon": saved}

@admin_router.post("/{coupon_id}/deactivate")
def admin_deactivate_coupon(coupon_id: str, user: dict = Depends(require_admin)):
    updated = coupons_service.deactivate_coupon(coupon_id)
    if not updated:
        raise NotFoundError("Coupon introuvable", code="coupon_not_found")
    logger.info("coupons.views admin_deactivate_coupon admin_id=%s coupon_id=%s", user.get("id"), coupon_id)
    return {"coupon": updated}
