"""
Module 'payments' (feature-first): point d'entrée public.
Réunit logique panier, métadonnées passerelle, clients Razorpay/Stripe, repository et règlement panier.
Le rapprochement (reconcile) s'importe explicitement: il dépend aussi des inscriptions.
"""

from .cart import aggregate_line_items, normalize_shipping_method, shipping_cost, price_cart, Pricing
from .metadata import CART, COURSE, extract_notes, extract_metadata_from_session
from .models import GatewayOrderHandle, ReconciliationResult
from .razorpay_client import create_order, verify_payment_signature, verify_webhook_signature
from .stripe_client import require_stripe, create_session, get_session, parse_event
from .service import create_cart_settlement

__all__ = [
    # cart
    "aggregate_line_items",
    "normalize_shipping_method",
    "shipping_cost",
    "price_cart",
    "Pricing",
    # metadata
    "CART",
    "COURSE",
    "extract_notes",
    "extract_metadata_from_session",
    # models
    "GatewayOrderHandle",
    "ReconciliationResult",
    # gateways
    "create_order",
    "verify_payment_signature",
    "verify_webhook_signature",
    "require_stripe",
    "create_session",
    "get_session",
    "parse_event",
    # services
    "create_cart_settlement",
]
