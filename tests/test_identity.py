import pytest

from autoship.core.errors import StoreError
from autoship.core.supabase import PROFILES
from autoship.domains.identity.service import (
    AdminAccess,
    SessionKind,
    SessionState,
    classify_admin_access,
    fetch_profile,
    friendly_auth_error,
)


@pytest.mark.parametrize(
    "raw, friendly",
    [
        ("Invalid login credentials", "Invalid email or password. Please check your credentials."),
        ("Email not confirmed", "Please check your email and click the confirmation link before logging in."),
        ("Too many requests", "Too many login attempts. Please wait a moment and try again."),
        ("Something else broke", "Something else broke"),
        (None, "Login failed"),
    ],
)
def test_friendly_auth_error(raw, friendly):
    assert friendly_auth_error(raw) == friendly


def test_login_returns_session_and_storage_key(client, make_user):
    user = make_user(email="pat@example.com")
    r = client.post("/auth/login", json={"email": "pat@example.com", "password": "secret123"})
    assert r.status_code == 200
    body = r.json()
    assert body["access_token"] == user.token
    assert body["user"]["id"] == user.id
    assert body["profile"]["role"] == "customer"
    assert body["storage_key"].startswith("sb-") and body["storage_key"].endswith("-auth-token")


def test_login_bad_password_is_friendly(client, make_user):
    make_user(email="pat@example.com")
    r = client.post("/auth/login", json={"email": "pat@example.com", "password": "nope"})
    assert r.status_code == 401
    assert r.json()["detail"] == {
        "code": "LOGIN_FAILED",
        "message": "Invalid email or password. Please check your credentials.",
    }


def test_signup_reports_pending_confirmation(client):
    r = client.post("/auth/signup", json={"email": "new@example.com", "password": "secret123", "full_name": "New"})
    assert r.status_code == 200
    assert r.json()["confirmation_required"] is True


def test_logout_always_ok(client, make_user, auth):
    user = make_user()
    assert client.post("/auth/logout", headers=user.headers).json() == {"ok": True}
    assert auth.logged_out == [user.token]
    assert client.post("/auth/logout").json() == {"ok": True}


def test_session_states(client, make_user, auth):
    assert client.get("/auth/session").json()["state"] == "unauthenticated"

    bogus = client.get("/auth/session", headers={"Authorization": "Bearer nope"}).json()
    assert bogus["state"] == "unauthenticated"

    customer = make_user()
    body = client.get("/auth/session", headers=customer.headers).json()
    assert body["state"] == "authenticated"
    assert body["admin_access"] == "not_admin"

    admin = make_user(role="admin")
    assert client.get("/auth/session", headers=admin.headers).json()["admin_access"] == "admin"

    orphan = make_user(with_profile=False)
    assert client.get("/auth/session", headers=orphan.headers).json()["state"] == "authenticated_without_profile"

    auth.unreachable = True
    body = client.get("/auth/session", headers=customer.headers).json()
    assert body["state"] == "error"
    assert body["admin_access"] == "not_authenticated"


def test_profile_fetch_falls_back_to_privileged_lookup(store):
    store.tables[PROFILES].append({"id": "u1", "role": "admin"})

    def broken_factory(token):
        raise StoreError("infinite recursion detected in policy", status_code=500, table=PROFILES)

    profile = fetch_profile("u1", "tok", store=store, user_store_factory=broken_factory)
    assert profile["role"] == "admin"


def test_profile_fetch_returns_none_when_both_paths_fail(store):
    store.fail.add(("select", PROFILES))
    assert fetch_profile("u1", "tok", store=store, user_store_factory=lambda t: store) is None


def test_classify_admin_access():
    assert classify_admin_access(None) == AdminAccess.LOADING
    assert classify_admin_access(SessionState(kind=SessionKind.UNAUTHENTICATED)) == AdminAccess.NOT_AUTHENTICATED


def test_admin_gate_redirects(client, make_user):
    r = client.get("/admin/stats")
    assert r.status_code == 401
    assert r.json()["detail"]["redirect_to"] == "/auth/login"

    customer = make_user()
    r = client.get("/admin/stats", headers=customer.headers)
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "NOT_ADMIN"
    assert r.json()["detail"]["redirect_to"] == "/dashboard"

    # Unknown role strings never grant admin.
    odd = make_user(role="superuser")
    assert client.get("/admin/stats", headers=odd.headers).status_code == 403

    admin = make_user(role="admin")
    assert client.get("/admin/stats", headers=admin.headers).status_code == 200


def test_privileged_profile_route(client, make_user):
    user = make_user()
    r = client.get(f"/api/profile/{user.id}")
    assert r.status_code == 200
    assert r.json()["id"] == user.id

    r = client.get("/api/profile/missing")
    assert r.status_code == 404
    assert r.json() == {"error": "Profile not found"}


def test_admin_setup_grants_role(client, make_user, store):
    user = make_user()
    r = client.post("/api/admin/setup", json={"userId": user.id})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "User role updated to admin successfully"
    assert store.rows(PROFILES, id=user.id)[0]["role"] == "admin"

    assert client.post("/api/admin/setup", json={}).json() == {"error": "User ID is required"}
    assert client.post("/api/admin/setup", json={"userId": "ghost"}).status_code == 404


def test_admin_setup_token_required_when_configured(client, make_user, monkeypatch):
    from autoship.core.config import settings

    monkeypatch.setattr(settings, "admin_setup_token", "let-me-in")
    user = make_user()
    assert client.post("/api/admin/setup", json={"userId": user.id}).status_code == 403
    r = client.post("/api/admin/setup", json={"userId": user.id}, headers={"X-Setup-Token": "let-me-in"})
    assert r.status_code == 200
