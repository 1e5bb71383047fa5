import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel, Field

from storefront.utils.security import require_user
from storefront.utils.rate_limit import optional_rate_limit
from storefront.enrollments import service as enrollments_service
from storefront.payments import reconcile as payments_reconcile
from storefront.payments import service as payments_service
from storefront.payments.metadata import COURSE

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])

class SettlementRequest(BaseModel):
    # Aucun champ prix: le montant est toujours recalculé côté serveur
    type: str = "cart"
    items: List[Dict[str, Any]] = Field(default_factory=list)
    shipping_method: Optional[str] = Field(default=None, alias="shippingMethod")
    address: Optional[Dict[str, Any]] = None
    coupon_code: Optional[str] = Field(default=None, alias="couponCode")
    course_id: Optional[str] = Field(default=None, alias="courseId")

    model_config = {"populate_by_name": True}

class VerifyRequest(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str
    type: str = "cart"

# module storefront.payments.views
@router.post("/orders", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_settlement(
    req: SettlementRequest,
    user: dict = Depends(require_user),
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
):
    """
    Prépare un règlement (panier ou cours) et renvoie le handle de paiement Razorpay.
    - Entrée JSON panier: {type:"cart", items:[{id, variantId?, quantity}], shippingMethod, address, couponCode?}
    - Entrée JSON cours: {type:"course", courseId}
    - En-tête optionnel Idempotency-Key: un renvoi du même panier retourne la même commande
    - Réponse: {gateway_order_id, amount (unités mineures), currency, key_id, status, ...}
    """
    user_id = str(user.get("id"))
    kind = payments_reconcile.normalize_kind(req.type)
    if kind == COURSE:
        handle = enrollments_service.create_course_settlement(user_id, req.course_id)
    else:
        handle = payments_service.create_cart_settlement(
            user_id,
            req.items,
            req.shipping_method,
            req.address,
            coupon_code=req.coupon_code,
            idempotency_key=idempotency_key,
        )
    return handle.to_dict()

@router.post("/verify", dependencies=[Depends(optional_rate_limit(times=20, seconds=60))])
def verify_payment(req: VerifyRequest, user: dict = Depends(require_user)):
    """
    Callback client après le checkout Razorpay: vérifie la signature puis finalise.
    - 400 invalid_signature: signature invalide (commande inchangée)
    - 404 unknown_order: identifiant passerelle inconnu
    - Rejouable: outcome="already_terminal" si déjà finalisé
    """
    result = payments_reconcile.reconcile(
        req.type,
        req.razorpay_order_id,
        req.razorpay_payment_id,
        req.razorpay_signature,
    )
    return {"status": "ok", **result.to_dict()}

@router.post("/razorpay/webhook", include_in_schema=False)
async def razorpay_webhook(request: Request):
    """
    Webhook Razorpay: signature X-Razorpay-Signature sur le corps brut.
    - Réponses: {"status": "ok", ...} ou {"status": "ignored"}
    """
    body = await request.body()
    signature = request.headers.get("x-razorpay-signature") or ""
    return payments_reconcile.handle_razorpay_webhook(body, signature)
