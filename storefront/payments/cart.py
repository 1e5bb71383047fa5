"""
Logique panier pure (pas de passerelle, pas de DB): agrégation, livraison, montant payable.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional
import json

from storefront.catalog.service import LineItem, ResolvedLineItem
from storefront.config import (
    SHIPPING_EXPEDITED_COST,
    SHIPPING_STANDARD_COST,
    SHIPPING_FREE_THRESHOLD,
)
from storefront.coupons.models import EligibilityResult
from storefront.errors import ValidationError, UnavailableError
from storefront.utils.money import ZERO, quantize, as_str

STANDARD = "standard"
EXPEDITED = "expedited"
# Le front historique envoie "fast" pour la livraison express
SHIPPING_METHOD_ALIASES = {"standard": STANDARD, "expedited": EXPEDITED, "fast": EXPEDITED}

# Limite Razorpay: 256 caractères par note
NOTE_MAX_LENGTH = 256

# module storefront.payments.cart
def aggregate_line_items(items: List[Dict[str, Any]]) -> List[LineItem]:
    """
    Agrège un panier brut [{id, variantId?, quantity}, ...] par (id, variante).
    - Toute ligne sans id ou de quantité <= 0 rend le panier invalide (pas d'ignorance silencieuse).
    - Soulève ValidationError si le panier est vide.
    - Un éventuel champ "price" envoyé par le client est ignoré.
    """
    if not items:
        raise ValidationError("Panier vide", code="empty_cart")
    merged: Dict[tuple, LineItem] = {}
    for it in items:
        if not isinstance(it, dict):
            raise ValidationError("Panier invalide", code="invalid_cart")
        item_id = str(it.get("id") or it.get("item_id") or "").strip()
        variant_id = it.get("variantId", it.get("variant_id"))
        try:
            qty = int(it.get("quantity") or 0)
        except (TypeError, ValueError):
            qty = 0
        if not item_id or qty <= 0:
            raise ValidationError("Panier invalide", code="invalid_cart")
        line = LineItem(item_id, qty, variant_id=variant_id)
        if line.key in merged:
            merged[line.key].quantity += qty
        else:
            merged[line.key] = line
    return list(merged.values())

def ensure_in_stock(resolved: List[ResolvedLineItem]) -> None:
    for line in resolved:
        if line.quantity > line.stock:
            raise UnavailableError(
                f"Stock insuffisant pour {line.name}",
                code="insufficient_stock",
                status_code=409,
            )

def normalize_shipping_method(method: Optional[str]) -> str:
    normalized = SHIPPING_METHOD_ALIASES.get(str(method or "").strip().lower())
    if not normalized:
        raise ValidationError("Méthode de livraison invalide", code="invalid_shipping_method")
    return normalized

def shipping_cost(method: str, subtotal: Decimal) -> Decimal:
    """
    Politique à deux niveaux (une seule s'applique):
    - expedited: coût fixe
    - standard: gratuite si subtotal > seuil, sinon coût fixe
    """
    method = normalize_shipping_method(method)
    if method == EXPEDITED:
        return quantize(SHIPPING_EXPEDITED_COST)
    if subtotal > SHIPPING_FREE_THRESHOLD:
        return ZERO
    return quantize(SHIPPING_STANDARD_COST)

def compute_subtotal(resolved: List[ResolvedLineItem]) -> Decimal:
    return quantize(sum((line.line_total for line in resolved), ZERO))

class Pricing:
    """Décomposition du montant payable d'un panier."""
    def __init__(self, subtotal: Decimal, shipping: Decimal, discount: Decimal = ZERO, eligibility: Optional[EligibilityResult] = None):
        self.subtotal = subtotal
        self.shipping = shipping
        self.discount = discount
        self.eligibility = eligibility

    @property
    def coupon(self):
        return self.eligibility.coupon if self.eligibility else None

    @property
    def payable(self) -> Decimal:
        return max(ZERO, quantize(self.subtotal + self.shipping - self.discount))

    def to_dict(self) -> Dict[str, str]:
        return {
            "subtotal": as_str(self.subtotal),
            "shipping": as_str(self.shipping),
            "discount": as_str(self.discount),
            "payable": as_str(self.payable),
        }

def price_cart(resolved: List[ResolvedLineItem], shipping_method: str, eligibility: Optional[EligibilityResult] = None) -> Pricing:
    subtotal = compute_subtotal(resolved)
    shipping = shipping_cost(shipping_method, subtotal)
    discount = eligibility.discount if eligibility and eligibility.eligible else ZERO
    return Pricing(subtotal, shipping, discount, eligibility if eligibility and eligibility.eligible else None)

def _note(value: Any) -> str:
    if not isinstance(value, str):
        value = json.dumps(value, separators=(",", ":"), default=str)
    return value[:NOTE_MAX_LENGTH]

def make_notes(
    user_id: str,
    kind: str,
    *,
    resolved: Optional[List[ResolvedLineItem]] = None,
    pricing: Optional[Pricing] = None,
    shipping_method: Optional[str] = None,
    address: Optional[Dict[str, Any]] = None,
    course_id: Optional[str] = None,
) -> Dict[str, str]:
    """
    Métadonnées de la commande passerelle: assez pour que le rapprochement
    n'ait pas à recalculer les prix (user, panier/cours, coupon + remise, adresse).
    """
    notes: Dict[str, str] = {"user_id": user_id, "kind": kind}
    if course_id is not None:
        notes["course_id"] = str(course_id)
    if resolved is not None:
        notes["cart"] = _note([
            {"id": line.item_id, "variantId": line.variant_id, "quantity": line.quantity}
            for line in resolved
        ])
    if pricing is not None:
        notes["payable"] = as_str(pricing.payable)
        if pricing.coupon is not None:
            notes["coupon_id"] = str(pricing.coupon.id)
            notes["discount"] = as_str(pricing.discount)
    if shipping_method:
        notes["shipping_method"] = shipping_method
    if address:
        notes["address"] = _note(address)
    return notes
