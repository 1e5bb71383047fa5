import hashlib
import hmac
import json

from storefront.payments.razorpay_client import payment_signature

ADDRESS = {"line1": "12 MG Road", "city": "Bengaluru"}

def _cart_body(pid, qty=1, **extra):
    body = {"type": "cart", "items": [{"id": pid, "quantity": qty}], "shippingMethod": "standard", "address": ADDRESS}
    body.update(extra)
    return body

def test_create_cart_order(client, store, gateway):
    pid = store.add_product("Maillot", "199.99")

    r = client.post("/api/v1/payments/orders", json=_cart_body(pid, 2))

    assert r.status_code == 200
    data = r.json()
    assert data["type"] == "cart"
    assert data["gateway_order_id"] == "order_test1"
    assert data["amount"] == 46998
    assert data["currency"] == "INR"
    assert data["key_id"] == "rzp_test_key"
    assert data["requires_payment"] is True
    assert data["payable"] == "469.98"
    assert r.headers["Cache-Control"].startswith("no-store")

def test_create_cart_order_idempotency_header(client, store, gateway):
    pid = store.add_product("Maillot", "199.99")
    headers = {"Idempotency-Key": "abc-123"}

    r1 = client.post("/api/v1/payments/orders", json=_cart_body(pid), headers=headers)
    r2 = client.post("/api/v1/payments/orders", json=_cart_body(pid), headers=headers)

    assert r1.status_code == r2.status_code == 200
    assert r1.json()["gateway_order_id"] == r2.json()["gateway_order_id"]
    assert r2.json()["replayed"] is True
    assert len(gateway.calls) == 1

def test_invalid_shipping_method_400(client, store, gateway):
    pid = store.add_product("Maillot", "199.99")
    r = client.post("/api/v1/payments/orders", json=_cart_body(pid, shippingMethod="drone"))
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_shipping_method"
    assert gateway.calls == []

def test_empty_cart_400(client, store, gateway):
    r = client.post("/api/v1/payments/orders", json={"type": "cart", "items": [], "shippingMethod": "standard", "address": ADDRESS})
    assert r.status_code == 400
    assert r.json()["code"] == "empty_cart"

def test_invalid_coupon_400(client, store, gateway):
    pid = store.add_product("Maillot", "199.99")
    r = client.post("/api/v1/payments/orders", json=_cart_body(pid, couponCode="NOPE"))
    assert r.status_code == 400
    assert r.json()["code"] == "invalid"

def test_storage_failure_hides_details(client, store, gateway):
    pid = store.add_product("Maillot", "199.99")
    store.fail_order_insert = True
    r = client.post("/api/v1/payments/orders", json=_cart_body(pid))
    assert r.status_code == 500
    assert r.json() == {"detail": "Erreur interne", "code": "storage_error"}

def test_create_course_order(client, store, gateway):
    course_id = store.add_course("Python avancé", "799.00")
    r = client.post("/api/v1/payments/orders", json={"type": "course", "courseId": course_id})
    assert r.status_code == 200
    assert r.json()["type"] == "course"
    assert r.json()["amount"] == 79900

def test_unknown_type_400(client, store):
    r = client.post("/api/v1/payments/orders", json={"type": "gift"})
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_type"

def test_verify_forged_signature(client, store, gateway):
    pid = store.add_product("Maillot", "199.99")
    gid = client.post("/api/v1/payments/orders", json=_cart_body(pid)).json()["gateway_order_id"]

    r = client.post("/api/v1/payments/verify", json={
        "razorpay_order_id": gid,
        "razorpay_payment_id": "pay_1",
        "razorpay_signature": "f" * 64,
    })

    assert r.status_code == 400
    assert r.json()["code"] == "invalid_signature"
    assert store.order_by_gateway_id(gid)["status"] == "pending"

def test_verify_ok_then_replay(client, store, gateway):
    pid = store.add_product("Maillot", "199.99")
    gid = client.post("/api/v1/payments/orders", json=_cart_body(pid)).json()["gateway_order_id"]
    body = {
        "razorpay_order_id": gid,
        "razorpay_payment_id": "pay_1",
        "razorpay_signature": payment_signature(gid, "pay_1"),
    }

    r1 = client.post("/api/v1/payments/verify", json=body)
    r2 = client.post("/api/v1/payments/verify", json=body)

    assert r1.status_code == 200
    assert r1.json()["status"] == "ok"
    assert r1.json()["outcome"] == "paid"
    assert r2.json()["outcome"] == "already_terminal"

def test_verify_unknown_order_404(client, store):
    r = client.post("/api/v1/payments/verify", json={
        "razorpay_order_id": "order_zzz",
        "razorpay_payment_id": "pay_1",
        "razorpay_signature": payment_signature("order_zzz", "pay_1"),
    })
    assert r.status_code == 404
    assert r.json()["code"] == "unknown_order"

def test_webhook_captured(client, store, gateway):
    pid = store.add_product("Maillot", "199.99")
    gid = client.post("/api/v1/payments/orders", json=_cart_body(pid)).json()["gateway_order_id"]
    body = json.dumps({
        "event": "payment.captured",
        "payload": {"payment": {"entity": {"id": "pay_w1", "order_id": gid, "notes": {"kind": "cart"}}}},
    }).encode()
    sig = hmac.new(b"rzp_webhook_secret", body, hashlib.sha256).hexdigest()

    r = client.post(
        "/api/v1/payments/razorpay/webhook",
        content=body,
        headers={"X-Razorpay-Signature": sig, "Content-Type": "application/json"},
    )

    assert r.status_code == 200
    assert r.json()["outcome"] == "paid"
    assert store.order_by_gateway_id(gid)["status"] == "paid"

def test_webhook_bad_signature_400(client, store):
    r = client.post(
        "/api/v1/payments/razorpay/webhook",
        content=b'{"event":"payment.captured"}',
        headers={"X-Razorpay-Signature": "nope"},
    )
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_signature"

def test_cookie_session_requires_csrf(client, store, gateway):
    pid = store.add_product("Maillot", "199.99")
    client.cookies.set("sb_access", "session-token")
    try:
        r = client.post("/api/v1/payments/orders", json=_cart_body(pid))
        assert r.status_code == 403
        assert gateway.calls == []
    finally:
        client.cookies.clear()
