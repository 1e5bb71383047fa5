import json
from decimal import Decimal

from storefront.payments import metadata
from storefront.payments.models import GatewayOrderHandle, ReconciliationResult
from storefront.utils.money import to_minor_units, quantize, to_decimal

def test_extract_notes_prefers_order_entity():
    event = {
        "event": "order.paid",
        "payload": {
            "order": {"entity": {"id": "order_1", "notes": {"kind": "course", "course_id": "7"}}},
            "payment": {"entity": {"id": "pay_1", "notes": {"kind": "cart"}}},
        },
    }
    notes = metadata.extract_notes(event)
    assert metadata.extract_kind(notes) == "course"
    assert notes["course_id"] == "7"

def test_extract_notes_empty_list_from_gateway():
    event = {"payload": {"payment": {"entity": {"id": "pay_1", "notes": []}}}}
    assert metadata.extract_notes(event) == {}
    assert metadata.extract_kind({}) is None
    assert metadata.extract_kind({"kind": "gift"}) is None

def test_extract_cart_ok():
    notes = {"cart": json.dumps([{"id": "1", "quantity": 2}])}
    assert metadata.extract_cart(notes) == [{"id": "1", "quantity": 2}]
    assert metadata.extract_cart({"cart": '[{"id": "1", "qua'}) == []

def test_extract_metadata_from_session_ok():
    session = {"id": "cs_1", "metadata": {"user_id": "u1", "course_id": 12}}
    assert metadata.extract_metadata_from_session(session) == ("u1", "12")
    assert metadata.extract_metadata_from_session({}) == (None, None)

def test_minor_units_round_half_up():
    assert to_minor_units(Decimal("519.98")) == 51998
    assert to_minor_units(Decimal("0.005")) == 1
    assert quantize(to_decimal(0.1) * 3) == Decimal("0.30")

def test_handle_to_dict():
    handle = GatewayOrderHandle(
        kind="cart",
        gateway_order_id="order_1",
        amount=51998,
        currency="INR",
        key_id="rzp_test_key",
        order_id="5",
        subtotal=Decimal("449.98"),
        shipping=Decimal("70"),
        discount=Decimal("0"),
        payable=Decimal("519.98"),
    )
    data = handle.to_dict()
    assert data["requires_payment"] is True
    assert data["shipping"] == "70.00"
    assert data["payable"] == "519.98"
    assert "replayed" not in data

def test_result_to_dict():
    result = ReconciliationResult("cart", "paid", "already_terminal", redemption="none", order_id="5")
    assert result.replayed is True
    assert result.to_dict() == {
        "type": "cart", "status": "paid", "outcome": "already_terminal", "redemption": "none", "order_id": "5",
    }
