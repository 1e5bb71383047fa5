import types
from fastapi import FastAPI, Depends
from fastapi.testclient import TestClient

from storefront.utils import security as security_mod
from storefront.utils.security import (
    determine_role,
    get_current_user,
    require_admin,
    COOKIE_NAME,
)

def _make_app():
    app = FastAPI()

    @app.get("/me")
    def me(user=Depends(get_current_user)):
        return user

    @app.get("/admin")
    def admin(user=Depends(require_admin)):
        return {"ok": True}

    return app

def test_determine_role():
    assert determine_role({"role": "admin"}) == "admin"
    assert determine_role({"role": "ADMIN"}) == "admin"
    assert determine_role({"role": "scanner"}) == "user"
    assert determine_role(None) == "user"

def test_get_user_from_token_normalizes_supabase_user(monkeypatch):
    fake_user = types.SimpleNamespace(id="u1", email="a@b", user_metadata={"role": "admin"})
    fake_client = types.SimpleNamespace(
        auth=types.SimpleNamespace(get_user=lambda token: types.SimpleNamespace(user=fake_user))
    )
    monkeypatch.setattr("storefront.infra.supabase_client.get_supabase", lambda: fake_client)

    assert security_mod.get_user_from_token("tok") == {"id": "u1", "email": "a@b", "role": "admin"}

def test_get_current_user_bearer_success(monkeypatch):
    monkeypatch.setattr(security_mod, "get_user_from_token", lambda token: {"id": "u1", "email": "a@b", "role": "user"})
    client = TestClient(_make_app())

    r = client.get("/me", headers={"Authorization": "Bearer tok-123"})
    assert r.status_code == 200
    assert r.json() == {"id": "u1", "email": "a@b", "role": "user"}

def test_get_current_user_cookie_success(monkeypatch):
    seen = []
    def _fake(token):
        seen.append(token)
        return {"id": "u1", "email": "a@b", "role": "admin"}
    monkeypatch.setattr(security_mod, "get_user_from_token", _fake)
    client = TestClient(_make_app())
    client.cookies.set(COOKIE_NAME, "cookie-token")

    r = client.get("/me")
    assert r.status_code == 200
    assert r.json()["role"] == "admin"
    assert seen == ["cookie-token"]

def test_get_current_user_missing_token_401():
    client = TestClient(_make_app())

    r = client.get("/me")
    assert r.status_code == 401
    assert "Non authentifié" in r.text

def test_get_current_user_rejected_token_401(monkeypatch):
    def _boom(token):
        raise RuntimeError("invalid JWT")
    monkeypatch.setattr(security_mod, "get_user_from_token", _boom)
    client = TestClient(_make_app())

    r = client.get("/me", headers={"Authorization": "Bearer tok"})
    assert r.status_code == 401
    assert "Session expirée" in r.text

def test_get_current_user_missing_id_401(monkeypatch):
    monkeypatch.setattr(security_mod, "get_user_from_token", lambda token: {"email": "x@y"})
    client = TestClient(_make_app())

    r = client.get("/me", headers={"Authorization": "Bearer tok"})
    assert r.status_code == 401
    assert "Session expirée" in r.text

def test_require_admin_forbidden_and_allowed(monkeypatch):
    client = TestClient(_make_app())

    monkeypatch.setattr(security_mod, "get_user_from_token", lambda token: {"id": "u1", "role": "user"})
    r_forbidden = client.get("/admin", headers={"Authorization": "Bearer tok"})
    assert r_forbidden.status_code == 403

    monkeypatch.setattr(security_mod, "get_user_from_token", lambda token: {"id": "u1", "role": "admin"})
    r_ok = client.get("/admin", headers={"Authorization": "Bearer tok"})
    assert r_ok.status_code == 200
    assert r_ok.json() == {"ok": True}
