import jwt
import pytest
import requests

from autoship.core.config import settings
from autoship.core.errors import AuthError, StoreError
from autoship.core.security import Role, bearer_token, parse_role
from autoship.core.supabase import (
    SupabaseAuth,
    SupabaseTables,
    eq,
    SupabaseStorage,
    filter_params,
    in_,
    is_null,
    neq,
    session_storage_key,
)
from autoship.domains.identity.service import resolve_user


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.content = b"" if payload is None else b"x"
        self.text = str(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("no body")
        return self._payload


class RecordingSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse(200, [])
        self.error = error
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.response

    def post(self, url, **kwargs):
        return self.request("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)

    def delete(self, url, **kwargs):
        return self.request("DELETE", url, **kwargs)


def test_filter_params():
    assert filter_params([eq("status", "pending"), is_null("assigned_admin_id"), neq("id", "q1"), eq("is_active", True)]) == [
        ("status", "eq.pending"),
        ("assigned_admin_id", "is.null"),
        ("id", "neq.q1"),
        ("is_active", "eq.true"),
    ]
    assert filter_params([in_("status", ["quoted", "accepted", "paid"])]) == [("status", "in.(quoted,accepted,paid)")]


def test_session_storage_key():
    assert session_storage_key("https://abcd1234.supabase.co") == "sb-abcd1234-auth-token"


def test_select_builds_query_and_uses_user_token():
    http = RecordingSession(FakeResponse(200, [{"id": "r1"}]))
    tables = SupabaseTables("https://x.supabase.co/", "anon", access_token="user-jwt", http=http)
    assert tables.select("transportation_requests", eq("user_id", "u1"), order="created_at.desc", limit=5) == [{"id": "r1"}]

    method, url, kwargs = http.calls[0]
    assert method == "GET"
    assert url == "https://x.supabase.co/rest/v1/transportation_requests"
    assert ("user_id", "eq.u1") in kwargs["params"]
    assert ("order", "created_at.desc") in kwargs["params"]
    assert kwargs["headers"]["Authorization"] == "Bearer user-jwt"
    assert kwargs["headers"]["apikey"] == "anon"


def test_update_requires_filters_and_asks_for_rows():
    http = RecordingSession(FakeResponse(200, [{"id": "r1", "status": "quoted"}]))
    tables = SupabaseTables("https://x.supabase.co", "service", http=http)
    with pytest.raises(ValueError):
        tables.update("transportation_requests", {"status": "quoted"})

    assert tables.update("transportation_requests", {"status": "quoted"}, eq("id", "r1")) == [{"id": "r1", "status": "quoted"}]
    assert http.calls[0][2]["headers"]["Prefer"] == "return=representation"


def test_errors_become_store_errors():
    tables = SupabaseTables("https://x.supabase.co", "k", http=RecordingSession(FakeResponse(400, {"message": "bad column"})))
    with pytest.raises(StoreError) as exc:
        tables.select("quotes")
    assert exc.value.status_code == 400
    assert "bad column" in exc.value.message

    tables = SupabaseTables("https://x.supabase.co", "k", http=RecordingSession(error=requests.ConnectionError("refused")))
    with pytest.raises(StoreError):
        tables.insert("payments", {"id": "p"})


def test_insert_many_posts_one_batch():
    http = RecordingSession(FakeResponse(201, [{"id": "a1"}, {"id": "a2"}]))
    tables = SupabaseTables("https://x.supabase.co", "service", http=http)
    assert tables.insert_many("document_attachments", [{"file_name": "a"}, {"file_name": "b"}]) == [{"id": "a1"}, {"id": "a2"}]
    assert len(http.calls) == 1
    method, _, kwargs = http.calls[0]
    assert method == "POST"
    assert kwargs["json"] == [{"file_name": "a"}, {"file_name": "b"}]


def test_storage_remove_sends_prefixes():
    http = RecordingSession(FakeResponse(200, []))
    SupabaseStorage("https://x.supabase.co", "service", http=http).remove("docs", ["u1/r1/a.pdf"])
    method, url, kwargs = http.calls[0]
    assert (method, url) == ("DELETE", "https://x.supabase.co/storage/v1/object/docs")
    assert kwargs["json"] == {"prefixes": ["u1/r1/a.pdf"]}

    http = RecordingSession(FakeResponse(404, {"message": "not found"}))
    with pytest.raises(StoreError):
        SupabaseStorage("https://x.supabase.co", "service", http=http).remove("docs", ["x"])


def test_auth_error_message_prefers_description():
    http = RecordingSession(FakeResponse(400, {"error": "invalid_grant", "error_description": "Invalid login credentials"}))
    with pytest.raises(AuthError) as exc:
        SupabaseAuth("https://x.supabase.co", "anon", http=http).password_grant("a@b.c", "pw")
    assert exc.value.message == "Invalid login credentials"
    assert exc.value.status_code == 400


def test_bearer_token_and_roles():
    assert bearer_token("Bearer abc") == "abc"
    assert bearer_token("bearer  abc ") == "abc"
    assert bearer_token("Basic abc") is None
    assert bearer_token(None) is None
    assert parse_role("admin") == Role.ADMIN
    assert parse_role(None) == Role.CUSTOMER


def test_local_jwt_verification(monkeypatch):
    monkeypatch.setattr(settings, "supabase_jwt_secret", "jwt-secret")
    token = jwt.encode({"sub": "u1", "email": "a@b.c", "aud": "authenticated"}, "jwt-secret", algorithm="HS256")
    user = resolve_user(token, auth=None)
    assert user.sub == "u1"

    forged = jwt.encode({"sub": "u1", "aud": "authenticated"}, "other", algorithm="HS256")
    assert resolve_user(forged, auth=None) is None


def test_settings_read_env_file_case_insensitively(tmp_path, monkeypatch):
    from autoship.core.config import Settings

    assert Settings.model_config["env_file"] == ".env"
    (tmp_path / ".env").write_text("SUPABASE_URL=https://env.supabase.co/\nSTRIPE_CURRENCY=eur\n")
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("STRIPE_CURRENCY", raising=False)
    loaded = Settings()
    assert loaded.supabase_url == "https://env.supabase.co"
    assert loaded.stripe_currency == "eur"
