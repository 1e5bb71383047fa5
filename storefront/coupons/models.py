"""
Types du moteur d'éligibilité coupon.
- Coupon: ligne 'coupons' normalisée (Decimal, datetimes UTC).
- EligibilityResult: résultat d'évaluation (spéculative, sans effet de bord).
- RedemptionOutcome: résultat du rachat, décidé à la confirmation du paiement.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from storefront.errors import CouponError
from storefront.utils.money import to_decimal

PERCENTAGE = "percentage"
FIXED = "fixed"
COUPON_KINDS = (PERCENTAGE, FIXED)

# Raisons d'échec (ordre = ordre d'évaluation)
INVALID = "invalid"
NOT_YET_ACTIVE = "not_yet_active"
EXPIRED = "expired"
BELOW_MINIMUM = "below_minimum"
LIMIT_EXCEEDED = "limit_exceeded"
ALREADY_USED = "already_used"

def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO 8601 (Supabase renvoie des chaînes, parfois suffixées 'Z') -> datetime UTC."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt

def _optional_decimal(value: Any) -> Optional[Decimal]:
    return None if value in (None, "") else to_decimal(value)

def _optional_int(value: Any) -> Optional[int]:
    return None if value in (None, "") else int(value)

class Coupon:
    def __init__(
        self,
        id: Any,
        code: str,
        kind: str,
        value: Decimal,
        min_cart_value: Optional[Decimal] = None,
        max_discount: Optional[Decimal] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        usage_limit: Optional[int] = None,
        usage_limit_per_user: Optional[int] = None,
        is_active: bool = True,
    ):
        self.id = id
        self.code = code
        self.kind = kind
        self.value = value
        self.min_cart_value = min_cart_value
        self.max_discount = max_discount
        self.start_date = start_date
        self.end_date = end_date
        self.usage_limit = usage_limit
        self.usage_limit_per_user = usage_limit_per_user
        self.is_active = is_active

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Coupon":
        return cls(
            id=row.get("id"),
            code=row.get("code") or "",
            kind=row.get("type") or FIXED,
            value=to_decimal(row.get("value")),
            min_cart_value=_optional_decimal(row.get("min_cart_value")),
            max_discount=_optional_decimal(row.get("max_discount")),
            start_date=parse_timestamp(row.get("start_date")),
            end_date=parse_timestamp(row.get("end_date")),
            usage_limit=_optional_int(row.get("usage_limit")),
            usage_limit_per_user=_optional_int(row.get("usage_limit_per_user")),
            is_active=bool(row.get("is_active", True)),
        )

    def to_public(self) -> Dict[str, Any]:
        return {"id": self.id, "code": self.code, "type": self.kind, "value": str(self.value)}

class EligibilityResult:
    def __init__(
        self,
        eligible: bool,
        message: str,
        reason: Optional[str] = None,
        coupon: Optional[Coupon] = None,
        discount: Decimal = Decimal("0.00"),
    ):
        self.eligible = eligible
        self.message = message
        self.reason = reason
        self.coupon = coupon
        self.discount = discount

    @classmethod
    def ok(cls, coupon: Coupon, discount: Decimal) -> "EligibilityResult":
        return cls(True, "Coupon appliqué", coupon=coupon, discount=discount)

    @classmethod
    def rejected(cls, reason: str, message: str) -> "EligibilityResult":
        return cls(False, message, reason=reason)

    def raise_for_status(self) -> "EligibilityResult":
        if not self.eligible:
            raise CouponError(self.message, code=self.reason)
        return self

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"valid": self.eligible, "message": self.message}
        if self.eligible:
            data["discount"] = f"{self.discount:.2f}"
            data["coupon"] = self.coupon.to_public() if self.coupon else None
        else:
            data["reason"] = self.reason
        return data

class RedemptionOutcome:
    """Résultat du rachat renvoyé par finalize_order_payment."""
    REDEEMED = "redeemed"
    LIMIT_EXCEEDED = LIMIT_EXCEEDED
    ALREADY_USED = ALREADY_USED
    NONE = "none"

    REFUSED = (LIMIT_EXCEEDED, ALREADY_USED)
