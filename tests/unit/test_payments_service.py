import logging
from decimal import Decimal

import pytest

from storefront.errors import CouponError, GatewayError, StorageError, UnavailableError, ValidationError
from storefront.payments import service as payments_service

ADDRESS = {"line1": "12 MG Road", "city": "Bengaluru", "pin": "560001"}

def _settle(pid, qty=1, **kwargs):
    kwargs.setdefault("shipping_method", "standard")
    kwargs.setdefault("address", ADDRESS)
    return payments_service.create_cart_settlement("u1", [{"id": pid, "quantity": qty}], **kwargs)

def test_prices_frozen_at_settlement(store, gateway):
    pid = store.add_product("Maillot", "199.99")

    handle = _settle(pid, qty=2)

    assert handle.payable == Decimal("469.98")
    assert handle.amount == 46998
    assert gateway.calls[0]["amount"] == 46998
    assert gateway.calls[0]["currency"] == "INR"
    assert gateway.calls[0]["notes"]["kind"] == "cart"

    store.products[pid]["price"] = "250.00"
    order = store.order_by_gateway_id(handle.gateway_order_id)
    assert order["status"] == "pending"
    assert order["total_amount"] == "469.98"
    assert order["shipping_amount"] == "70.00"
    assert [i["price"] for i in store.items_for(order["id"])] == ["199.99"]

def test_client_price_is_ignored(store, gateway):
    pid = store.add_product("Casquette", "300.00")
    handle = payments_service.create_cart_settlement(
        "u1", [{"id": pid, "quantity": 1, "price": "1.00"}], "expedited", ADDRESS,
    )
    assert handle.payable == Decimal("450.00")

def test_variant_price_and_stock_win(store, gateway):
    pid = store.add_product("Sweat", "40.00")
    vid = store.add_variant(pid, "55.00", stock=1, sku="XL")
    handle = payments_service.create_cart_settlement(
        "u1", [{"id": pid, "variantId": vid, "quantity": 1}], "standard", ADDRESS,
    )
    assert handle.subtotal == Decimal("55.00")

    with pytest.raises(UnavailableError):
        payments_service.create_cart_settlement(
            "u1", [{"id": pid, "variantId": vid, "quantity": 2}], "standard", ADDRESS,
        )

def test_unknown_item_fails_before_gateway(store, gateway):
    with pytest.raises(UnavailableError) as exc:
        _settle("999")
    assert exc.value.code == "item_not_found"
    assert gateway.calls == []
    assert store.orders == {}

def test_insufficient_stock_fails_before_gateway(store, gateway):
    pid = store.add_product("Ballon", "20.00", stock=1)
    with pytest.raises(UnavailableError) as exc:
        _settle(pid, qty=2)
    assert exc.value.status_code == 409
    assert gateway.calls == []

def test_invalid_coupon_fails_before_gateway(store, gateway):
    pid = store.add_product("Ballon", "20.00")
    with pytest.raises(CouponError) as exc:
        _settle(pid, coupon_code="NOPE")
    assert exc.value.code == "invalid"
    assert gateway.calls == []
    assert store.orders == {}

def test_missing_address_rejected(store, gateway):
    pid = store.add_product("Ballon", "20.00")
    with pytest.raises(ValidationError) as exc:
        _settle(pid, address={})
    assert exc.value.code == "address_required"

def test_coupon_discount_recorded_but_not_redeemed(store, gateway):
    pid = store.add_product("Veste", "1000.00")
    cid = store.add_coupon("TWENTY", "percentage", "20", max_discount="100")

    handle = _settle(pid, coupon_code="twenty")

    assert handle.discount == Decimal("100.00")
    assert handle.payable == Decimal("900.00")
    notes = gateway.calls[0]["notes"]
    assert notes["coupon_id"] == cid
    assert notes["discount"] == "100.00"
    assert store.order_by_gateway_id(handle.gateway_order_id)["coupon_id"] == cid
    assert store.usages_for(cid) == []

def test_idempotency_key_opens_single_gateway_order(store, gateway):
    pid = store.add_product("Gourde", "120.00")

    first = _settle(pid, idempotency_key="key-1")
    second = _settle(pid, idempotency_key="key-1")

    assert len(gateway.calls) == 1
    assert second.replayed is True
    assert second.gateway_order_id == first.gateway_order_id
    assert second.payable == first.payable
    assert len(store.orders) == 1

def test_zero_payable_is_paid_without_gateway(store, gateway):
    pid = store.add_product("Pack", "600.00")
    cid = store.add_coupon("FREE600", "fixed", "600")

    handle = _settle(pid, coupon_code="FREE600")

    assert gateway.calls == []
    assert handle.gateway_order_id.startswith("free_")
    assert handle.status == "paid"
    assert handle.requires_payment is False
    assert handle.to_dict()["requires_payment"] is False
    assert store.order_by_gateway_id(handle.gateway_order_id)["status"] == "paid"
    assert len(store.usages_for(cid)) == 1

def test_zero_payable_coupon_used_up_concurrently_fails_order(store, gateway, monkeypatch):
    from storefront.coupons import service as coupon_service
    pid = store.add_product("Pack", "600.00")
    cid = store.add_coupon("ALL", "fixed", "600", usage_limit=1)
    evaluate = coupon_service.evaluate

    def _evaluate_then_lose_race(code, user_id, subtotal):
        result = evaluate(code, user_id, subtotal)
        # un autre acheteur rachète la dernière utilisation entre l'aperçu et la finalisation
        store.coupon_usages.append({"id": "x", "coupon_id": str(cid), "user_id": "u2", "order_id": "other"})
        return result

    monkeypatch.setattr(coupon_service, "evaluate", _evaluate_then_lose_race)

    with pytest.raises(CouponError) as exc:
        _settle(pid, coupon_code="ALL")

    assert exc.value.code == "limit_exceeded"
    assert gateway.calls == []
    [order] = store.orders.values()
    assert order["status"] == "failed"
    assert [u["user_id"] for u in store.usages_for(cid)] == ["u2"]

def test_persistence_failure_after_gateway_is_critical(store, gateway, caplog):
    pid = store.add_product("Gourde", "120.00")
    store.fail_order_insert = True

    with caplog.at_level(logging.CRITICAL, logger="storefront.payments.service"):
        with pytest.raises(StorageError):
            _settle(pid)

    assert len(gateway.calls) == 1
    critical = [r for r in caplog.records if r.levelno == logging.CRITICAL]
    assert critical and "order_test1" in critical[0].getMessage()

def test_gateway_error_persists_nothing(store, gateway):
    pid = store.add_product("Gourde", "120.00")
    gateway.error = GatewayError("Passerelle de paiement injoignable")

    with pytest.raises(GatewayError):
        _settle(pid)
    assert store.orders == {}
    assert store.order_items == []

def test_preview_subtotal(store):
    pid = store.add_product("Gourde", "120.00", stock=0)
    assert payments_service.preview_subtotal([{"id": pid, "quantity": 3}]) == Decimal("360.00")
