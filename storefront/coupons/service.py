"""
Moteur d'éligibilité coupon.

evaluate() est sans effet de bord: il peut être appelé pour prévisualiser une remise.
Le rachat (ligne coupon_usages) n'a lieu qu'après confirmation du paiement, dans la
transaction de finalize_order_payment qui revérifie les limites sous verrou.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional
import logging

from storefront.config import SETTLEMENT_CURRENCY
from storefront.coupons import repository
from storefront.coupons.models import (
    Coupon,
    EligibilityResult,
    COUPON_KINDS,
    PERCENTAGE,
    INVALID,
    NOT_YET_ACTIVE,
    EXPIRED,
    BELOW_MINIMUM,
    LIMIT_EXCEEDED,
    ALREADY_USED,
    parse_timestamp,
)
from storefront.errors import ValidationError
from storefront.utils.money import ZERO, quantize, to_decimal

logger = logging.getLogger(__name__)

def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()

def compute_discount(coupon: Coupon, subtotal: Decimal) -> Decimal:
    """
    - percentage: subtotal * value / 100, plafonné à max_discount si défini
    - fixed: value tel quel
    Le résultat est arrondi au centime puis borné à [0, subtotal].
    """
    if coupon.kind == PERCENTAGE:
        discount = subtotal * coupon.value / Decimal(100)
        if coupon.max_discount is not None and discount > coupon.max_discount:
            discount = coupon.max_discount
    else:
        discount = coupon.value
    discount = quantize(discount)
    if discount > subtotal:
        discount = quantize(subtotal)
    return max(discount, ZERO)

def evaluate(code: str, user_id: str, subtotal: Decimal, now: Optional[datetime] = None) -> EligibilityResult:
    """
    Évalue un code pour (utilisateur, sous-total). Étapes court-circuitantes:
    1) coupon actif par code normalisé   -> invalid
    2) fenêtre de validité               -> not_yet_active / expired
    3) minimum panier                    -> below_minimum
    4) limite globale                    -> limit_exceeded
    5) limite par utilisateur            -> already_used
    6) calcul de la remise
    """
    now = now or datetime.now(timezone.utc)
    normalized = normalize_code(code)
    row = repository.find_active_coupon(normalized) if normalized else None
    if not row:
        return EligibilityResult.rejected(INVALID, "Code promo invalide")
    coupon = Coupon.from_row(row)

    if coupon.start_date and now < coupon.start_date:
        return EligibilityResult.rejected(NOT_YET_ACTIVE, "Ce code promo n'est pas encore actif")
    if coupon.end_date and now > coupon.end_date:
        return EligibilityResult.rejected(EXPIRED, "Ce code promo a expiré")

    if coupon.min_cart_value is not None and subtotal < coupon.min_cart_value:
        return EligibilityResult.rejected(
            BELOW_MINIMUM,
            f"Montant minimum de {coupon.min_cart_value:.2f} {SETTLEMENT_CURRENCY} requis",
        )

    if coupon.usage_limit is not None and repository.count_usages(coupon.id) >= coupon.usage_limit:
        return EligibilityResult.rejected(LIMIT_EXCEEDED, "Ce code promo a atteint sa limite d'utilisation")

    if coupon.usage_limit_per_user is not None and (
        repository.count_usages(coupon.id, user_id=user_id) >= coupon.usage_limit_per_user
    ):
        return EligibilityResult.rejected(ALREADY_USED, "Vous avez déjà utilisé ce code promo")

    return EligibilityResult.ok(coupon, compute_discount(coupon, subtotal))

# --- Administration ---

def list_coupons(limit: int = 100) -> list:
    return repository.list_coupons(limit=limit)

def _clean_coupon_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    code = normalize_code(data.get("code"))
    if not code:
        raise ValidationError("Code requis", code="coupon_code_required")
    kind = str(data.get("type") or "").strip().lower()
    if kind not in COUPON_KINDS:
        raise ValidationError("Type de coupon invalide", code="coupon_type_invalid")
    try:
        value = to_decimal(data.get("value"))
    except ValueError:
        raise ValidationError("Valeur invalide", code="coupon_value_invalid")
    if value < 0 or (kind == PERCENTAGE and value > 100):
        raise ValidationError("Valeur invalide", code="coupon_value_invalid")

    payload: Dict[str, Any] = {
        "code": code,
        "type": kind,
        "value": f"{value:.2f}",
        "is_active": bool(data.get("is_active", True)),
    }
    for field in ("min_cart_value", "max_discount"):
        raw = data.get(field)
        payload[field] = None if raw in (None, "") else f"{to_decimal(raw):.2f}"
    if kind != PERCENTAGE:
        # Le plafond n'a de sens que pour un pourcentage
        payload["max_discount"] = None
    for field in ("usage_limit", "usage_limit_per_user"):
        raw = data.get(field)
        payload[field] = None if raw in (None, "") else int(raw)
        if payload[field] is not None and payload[field] < 0:
            raise ValidationError("Limite d'utilisation invalide", code="coupon_limit_invalid")
    start = parse_timestamp(data.get("start_date"))
    end = parse_timestamp(data.get("end_date"))
    if start and end and end < start:
        raise ValidationError("Période de validité invalide", code="coupon_window_invalid")
    payload["start_date"] = start.isoformat() if start else None
    payload["end_date"] = end.isoformat() if end else None
    return payload

def save_coupon(data: Dict[str, Any]) -> Optional[dict]:
    """Crée ou met à jour (si data.id) un coupon, code normalisé."""
    payload = _clean_coupon_payload(data)
    coupon_id = data.get("id")
    if coupon_id:
        return repository.update_coupon(str(coupon_id), payload)
    return repository.insert_coupon(payload)

def deactivate_coupon(coupon_id: str) -> Optional[dict]:
    # Les rachats référencent le coupon: on désactive, on ne supprime pas
    return repository.update_coupon(str(coupon_id), {"is_active": False})
