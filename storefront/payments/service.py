"""
Cas d'usage 'payments' (parcours panier): orchestre catalogue, coupons, cart, Razorpay et repository.

Ordre des effets de create_cart_settlement:
  1) validation du panier et de la livraison
  2) relecture idempotente (Idempotency-Key)
  3) prix catalogue + stock
  4) coupon (évaluation spéculative, rachat seulement au paiement)
  5) commande passerelle (sauf montant payable nul)
  6) commande 'pending' + lignes aux prix figés
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import uuid4
import logging

from storefront import config
from storefront.catalog import service as catalog_service
from storefront.coupons import service as coupon_service
from storefront.coupons.models import RedemptionOutcome
from storefront.errors import CouponError, StorageError, ValidationError
from storefront.utils.money import ZERO, as_str, to_decimal, to_minor_units
from . import cart
from . import razorpay_client
from . import repository
from .metadata import CART
from .models import GatewayOrderHandle, REDEMPTION_REFUSED

logger = logging.getLogger(__name__)

FREE_PREFIX = "free_"

# module storefront.payments.service
def _handle_from_order(row: Dict[str, Any], replayed: bool = False) -> GatewayOrderHandle:
    """Reconstruit le handle d'une commande déjà enregistrée (relecture idempotente)."""
    payable = to_decimal(row.get("total_amount"))
    discount = to_decimal(row.get("discount_amount"))
    shipping = to_decimal(row.get("shipping_amount"))
    return GatewayOrderHandle(
        kind=CART,
        gateway_order_id=row.get("gateway_order_id") or "",
        amount=to_minor_units(payable),
        currency=config.SETTLEMENT_CURRENCY,
        key_id=config.RAZORPAY_KEY_ID,
        status=row.get("status") or "pending",
        order_id=row.get("id"),
        subtotal=payable + discount - shipping,
        shipping=shipping,
        discount=discount,
        payable=payable,
        replayed=replayed,
    )

def _validate_address(address: Any) -> Dict[str, Any]:
    # Instantané opaque: seul le caractère non vide est contrôlé
    if not isinstance(address, dict) or not address:
        raise ValidationError("Adresse de livraison requise", code="address_required")
    return address

def _order_payload(
    *,
    user_id: str,
    pricing: cart.Pricing,
    method: str,
    address: Dict[str, Any],
    gateway_order_id: str,
    idempotency_key: Optional[str],
) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "total_amount": as_str(pricing.payable),
        "discount_amount": as_str(pricing.discount),
        "shipping_amount": as_str(pricing.shipping),
        "coupon_id": str(pricing.coupon.id) if pricing.coupon is not None else None,
        "address": address,
        "shipping_method": method,
        "gateway_order_id": gateway_order_id,
        "idempotency_key": idempotency_key,
    }

def _items_payload(resolved: List[catalog_service.ResolvedLineItem]) -> List[Dict[str, Any]]:
    return [
        {
            "product_id": line.item_id,
            "variant_id": line.variant_id,
            "quantity": line.quantity,
            "price": as_str(line.unit_price),
        }
        for line in resolved
    ]

def create_cart_settlement(
    user_id: str,
    items: List[Dict[str, Any]],
    shipping_method: Optional[str],
    address: Any,
    coupon_code: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> GatewayOrderHandle:
    """
    Prépare le règlement d'un panier et retourne le handle de paiement.
    - ValidationError / UnavailableError / CouponError: avant tout appel passerelle.
    - GatewayError: la passerelle a refusé ou est injoignable (rien n'est enregistré).
    - StorageError: commande passerelle ouverte mais non enregistrée (alerte critique).
    - CouponError: commande gratuite dont le coupon a été épuisé par un achat concurrent (commande failed).
    """
    lines = cart.aggregate_line_items(items)
    method = cart.normalize_shipping_method(shipping_method)
    address = _validate_address(address)
    key = (idempotency_key or "").strip() or None

    if key:
        existing = repository.find_order_by_idempotency_key(user_id, key)
        if existing:
            logger.info(
                "payments.service create_cart_settlement replay user_id=%s gateway_order_id=%s",
                user_id, existing.get("gateway_order_id"),
            )
            return _handle_from_order(existing, replayed=True)

    resolved = catalog_service.resolve_line_items(lines)
    cart.ensure_in_stock(resolved)

    eligibility = None
    if coupon_service.normalize_code(coupon_code):
        subtotal = cart.compute_subtotal(resolved)
        eligibility = coupon_service.evaluate(coupon_code, user_id, subtotal).raise_for_status()
    pricing = cart.price_cart(resolved, method, eligibility)

    free = pricing.payable == ZERO
    if free:
        gateway_order_id = f"{FREE_PREFIX}{uuid4().hex}"
    else:
        notes = cart.make_notes(
            user_id,
            CART,
            resolved=resolved,
            pricing=pricing,
            shipping_method=method,
            address=address,
        )
        gateway_order = razorpay_client.create_order(
            amount=to_minor_units(pricing.payable),
            currency=config.SETTLEMENT_CURRENCY,
            receipt=f"cart_{uuid4().hex[:24]}",
            notes=notes,
        )
        gateway_order_id = gateway_order["id"]

    order = _order_payload(
        user_id=user_id,
        pricing=pricing,
        method=method,
        address=address,
        gateway_order_id=gateway_order_id,
        idempotency_key=key,
    )
    try:
        created = repository.create_pending_order(order, _items_payload(resolved))
    except StorageError:
        logger.critical(
            "payments.service orphaned gateway order user_id=%s gateway_order_id=%s payable=%s",
            user_id, gateway_order_id, as_str(pricing.payable),
        )
        raise

    if created is None:
        # Doublon: une requête concurrente avec la même clé a gagné
        existing = repository.find_order_by_idempotency_key(user_id, key) if key else None
        if not existing:
            logger.critical(
                "payments.service orphaned gateway order user_id=%s gateway_order_id=%s payable=%s",
                user_id, gateway_order_id, as_str(pricing.payable),
            )
            raise StorageError("Enregistrement de la commande impossible")
        logger.info(
            "payments.service create_cart_settlement concurrent replay user_id=%s gateway_order_id=%s",
            user_id, existing.get("gateway_order_id"),
        )
        return _handle_from_order(existing, replayed=True)

    status = "pending"
    if free:
        # Sans paiement encaissé, un coupon épuisé entre-temps annule la commande (failed)
        result = repository.finalize_order_payment(gateway_order_id, gateway_order_id, require_redemption=True)
        status = result.get("status") or "paid"
        redemption = result.get("redemption")
        if result.get("outcome") == REDEMPTION_REFUSED or redemption in RedemptionOutcome.REFUSED:
            logger.warning(
                "payments.service coupon redemption refused user_id=%s order_id=%s outcome=%s",
                user_id, created.get("order_id"), redemption,
            )
            raise CouponError("Coupon épuisé, commande annulée", code=redemption or RedemptionOutcome.LIMIT_EXCEEDED)

    logger.info(
        "payments.service create_cart_settlement user_id=%s gateway_order_id=%s payable=%s",
        user_id, gateway_order_id, as_str(pricing.payable),
    )
    return GatewayOrderHandle(
        kind=CART,
        gateway_order_id=gateway_order_id,
        amount=to_minor_units(pricing.payable),
        currency=config.SETTLEMENT_CURRENCY,
        key_id=config.RAZORPAY_KEY_ID,
        status=status,
        order_id=created.get("order_id"),
        subtotal=pricing.subtotal,
        shipping=pricing.shipping,
        discount=pricing.discount,
        payable=pricing.payable,
    )

def preview_subtotal(items: List[Dict[str, Any]]) -> Decimal:
    """Sous-total catalogue d'un panier (aperçu coupon), sans contrôle de stock."""
    resolved = catalog_service.resolve_line_items(cart.aggregate_line_items(items))
    return cart.compute_subtotal(resolved)
