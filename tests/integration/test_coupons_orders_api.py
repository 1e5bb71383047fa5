import pytest

from storefront.payments import reconcile
from storefront.payments.razorpay_client import payment_signature
from storefront.utils.security import get_current_user

@pytest.fixture
def plain_user_client(app, client):
    app.dependency_overrides[get_current_user] = lambda: {"id": "test-user", "role": "user"}
    yield client
    app.dependency_overrides.pop(get_current_user, None)

def test_coupon_preview_from_items(client, store):
    pid = store.add_product("Veste", "1000.00")
    store.add_coupon("TWENTY", "percentage", "20", max_discount="100")

    r = client.post("/api/v1/coupons/preview", json={"code": "twenty", "items": [{"id": pid, "quantity": 1}]})

    assert r.status_code == 200
    assert r.json()["valid"] is True
    assert r.json()["discount"] == "100.00"
    assert store.coupon_usages == []

def test_coupon_preview_rejected_reason(client, store):
    store.add_coupon("MIN500", "fixed", "50", min_cart_value="500")
    r = client.post("/api/v1/coupons/preview", json={"code": "MIN500", "subtotal": "499.99"})
    assert r.status_code == 200
    assert r.json() == {"valid": False, "message": r.json()["message"], "reason": "below_minimum"}

def test_coupon_preview_bad_subtotal(client, store):
    r = client.post("/api/v1/coupons/preview", json={"code": "X", "subtotal": "abc"})
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_subtotal"

def test_admin_coupons_forbidden_for_user(plain_user_client):
    assert plain_user_client.get("/api/v1/admin/coupons").status_code == 403
    assert plain_user_client.patch("/api/v1/admin/orders/1", json={"status": "shipped"}).status_code == 403

def test_admin_requires_authentication(client):
    r = client.get("/api/v1/admin/orders")
    assert r.status_code == 401

def test_admin_save_and_deactivate_coupon(authenticated_admin_client, monkeypatch):
    saved = {}
    monkeypatch.setattr(
        "storefront.coupons.repository.insert_coupon",
        lambda data: saved.update(data, id=9) or dict(saved),
    )
    monkeypatch.setattr(
        "storefront.coupons.repository.update_coupon",
        lambda coupon_id, data: dict(saved, **data),
    )

    r = authenticated_admin_client.post("/api/v1/admin/coupons", json={"code": "summer", "type": "percentage", "value": "15"})
    assert r.status_code == 200
    assert r.json()["coupon"]["code"] == "SUMMER"

    r2 = authenticated_admin_client.post("/api/v1/admin/coupons/9/deactivate")
    assert r2.status_code == 200
    assert r2.json()["coupon"]["is_active"] is False

def test_admin_save_invalid_coupon(authenticated_admin_client):
    r = authenticated_admin_client.post("/api/v1/admin/coupons", json={"code": "X", "type": "bogo", "value": "1"})
    assert r.status_code == 400
    assert r.json()["code"] == "coupon_type_invalid"

def _paid_order(client, store):
    pid = store.add_product("Maillot", "199.99")
    data = client.post("/api/v1/payments/orders", json={
        "items": [{"id": pid, "quantity": 1}], "shippingMethod": "fast", "address": {"line1": "x"},
    }).json()
    gid = data["gateway_order_id"]
    reconcile.reconcile("cart", gid, "pay_1", payment_signature(gid, "pay_1"))
    return data["order_id"]

def test_my_orders(client, store, gateway):
    _paid_order(client, store)
    r = client.get("/api/v1/orders")
    assert r.status_code == 200
    orders = r.json()["orders"]
    assert orders[0]["status"] == "paid"
    assert orders[0]["shipping_method"] == "expedited"
    assert orders[0]["items"][0]["unit_price"] == "199.99"

def test_admin_order_transitions(authenticated_admin_client, store, gateway):
    order_id = _paid_order(authenticated_admin_client, store)

    r = authenticated_admin_client.patch(f"/api/v1/admin/orders/{order_id}", json={"status": "delivered"})
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_transition"

    r = authenticated_admin_client.patch(f"/api/v1/admin/orders/{order_id}", json={"status": "shipped"})
    assert r.status_code == 200
    assert r.json() == {"id": order_id, "status": "shipped"}

    assert authenticated_admin_client.get("/api/v1/admin/orders").json()["orders"][0]["status"] == "shipped"

def test_admin_unknown_order_404(authenticated_admin_client, store):
    r = authenticated_admin_client.patch("/api/v1/admin/orders/999", json={"status": "shipped"})
    assert r.status_code == 404
    assert r.json()["code"] == "order_not_found"
