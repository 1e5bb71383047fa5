# module storefront.enrollments.views

"""Endpoints des inscriptions aux cours.
- GET  /: inscriptions de l'utilisateur connecté.
- POST /checkout: variante redirection, crée une session Stripe Checkout pour un cours.
- POST /confirm: alternative sans webhook (vérifie la session Stripe puis finalise).
- POST /stripe/webhook: événements Stripe checkout.session.completed / expired.
Le parcours Razorpay des cours passe par /api/v1/payments (type "course").
"""
from fastapi import APIRouter, Request, Depends
from pydantic import BaseModel
import logging

from storefront.utils.security import require_user
from storefront.utils.rate_limit import optional_rate_limit
from storefront.payments.stripe_client import parse_event
from storefront.enrollments import service as enrollments_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/enrollments", tags=["Enrollments API"])

class CheckoutRequest(BaseModel):
    course_id: str

class ConfirmRequest(BaseModel):
    session_id: str

@router.get("")
def list_enrollments(user: dict = Depends(require_user)):
    return {"enrollments": enrollments_service.list_user_enrollments(str(user.get("id")))}

@router.post("/checkout", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_checkout(req: CheckoutRequest, user: dict = Depends(require_user)):
    return enrollments_service.create_course_checkout_session(str(user.get("id")), req.course_id)

@router.post("/confirm")
def confirm_checkout(req: ConfirmRequest, user: dict = Depends(require_user)):
    """Vérifie payment_status='paid' et la propriété de la session, puis inscrit l'utilisateur."""
    result = enrollments_service.confirm_course_session(req.session_id, str(user.get("id")))
    return {"status": "ok", **result.to_dict()}

@router.post("/stripe/webhook", include_in_schema=False)
async def stripe_webhook(request: Request):
    event = await parse_event(request)
    result = enrollments_service.handle_stripe_event(event)
    logger.info("enrollments.webhook type=%s status=%s", (event or {}).get("type"), result.get("status"))
    return result
