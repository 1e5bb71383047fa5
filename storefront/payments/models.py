"""
Objets renvoyés par le règlement:
- GatewayOrderHandle: ce dont le client a besoin pour ouvrir le paiement passerelle.
- ReconciliationResult: état final après rapprochement d'un paiement.
"""
from decimal import Decimal
from typing import Any, Dict, Optional

from storefront.utils.money import as_str

# Résultats du rapprochement
PAID = "paid"
COMPLETED = "completed"
FAILED = "failed"
ALREADY_TERMINAL = "already_terminal"
ALREADY_ENROLLED = "already_enrolled"
CAPTURED_ON_TERMINAL = "captured_on_terminal"
REDEMPTION_REFUSED = "redemption_refused"
PAYMENT_FAILED = "payment_failed"
UNKNOWN_ORDER = "unknown_order"
IGNORED = "ignored"

# module storefront.payments.models
class GatewayOrderHandle:
    def __init__(
        self,
        kind: str,
        gateway_order_id: str,
        amount: int,
        currency: str,
        key_id: str = "",
        status: str = "pending",
        order_id: Any = None,
        enrollment_id: Any = None,
        subtotal: Optional[Decimal] = None,
        shipping: Optional[Decimal] = None,
        discount: Optional[Decimal] = None,
        payable: Optional[Decimal] = None,
        replayed: bool = False,
    ):
        self.kind = kind
        self.gateway_order_id = gateway_order_id
        self.amount = amount
        self.currency = currency
        self.key_id = key_id
        self.status = status
        self.order_id = order_id
        self.enrollment_id = enrollment_id
        self.subtotal = subtotal
        self.shipping = shipping
        self.discount = discount
        self.payable = payable
        self.replayed = replayed

    @property
    def requires_payment(self) -> bool:
        """Faux pour un panier à 0 ou un cours gratuit: déjà réglé, pas de passerelle."""
        return self.status == "pending"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.kind,
            "gateway_order_id": self.gateway_order_id,
            "amount": self.amount,
            "currency": self.currency,
            "key_id": self.key_id,
            "status": self.status,
            "requires_payment": self.requires_payment,
        }
        if self.order_id is not None:
            data["order_id"] = self.order_id
        if self.enrollment_id is not None:
            data["enrollment_id"] = self.enrollment_id
        for field in ("subtotal", "shipping", "discount", "payable"):
            value = getattr(self, field)
            if value is not None:
                data[field] = as_str(value)
        if self.replayed:
            data["replayed"] = True
        return data

class ReconciliationResult:
    def __init__(
        self,
        kind: str,
        status: str,
        outcome: str,
        redemption: Optional[str] = None,
        order_id: Any = None,
        enrollment_id: Any = None,
    ):
        self.kind = kind
        self.status = status
        self.outcome = outcome
        self.redemption = redemption
        self.order_id = order_id
        self.enrollment_id = enrollment_id

    @property
    def replayed(self) -> bool:
        return self.outcome == ALREADY_TERMINAL

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind, "status": self.status, "outcome": self.outcome}
        if self.redemption is not None:
            data["redemption"] = self.redemption
        if self.order_id is not None:
            data["order_id"] = self.order_id
        if self.enrollment_id is not None:
            data["enrollment_id"] = self.enrollment_id
        return data
