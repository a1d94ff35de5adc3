import logging
from typing import Any
from urllib.parse import quote, urlparse

import requests

from autoship.core.config import settings
from autoship.core.errors import AuthError, StoreError

logger = logging.getLogger(__name__)


PROFILES = "profiles"
TRANSPORTATION_REQUESTS = "transportation_requests"
QUOTES = "quotes"
PAYMENTS = "payments"
DOCUMENT_ATTACHMENTS = "document_attachments"

# (column, operator, value)
Filter = tuple[str, str, Any]


def eq(column: str, value: Any) -> Filter:
    return (column, "eq", value)


def neq(column: str, value: Any) -> Filter:
    return (column, "neq", value)


def is_null(column: str) -> Filter:
    return (column, "is", None)


def in_(column: str, values) -> Filter:
    return (column, "in", tuple(values))


def _encode_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, tuple):
        return "(" + ",".join(_encode_value(v) for v in value) + ")"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def filter_params(filters: tuple[Filter, ...] | list[Filter]) -> list[tuple[str, str]]:
    return [(col, f"{op}.{_encode_value(val)}") for col, op, val in filters]


def project_ref(supabase_url: str) -> str:
    host = urlparse(supabase_url).hostname or ""
    return host.split(".")[0]


def session_storage_key(supabase_url: str) -> str:
    """Key under which the browser persists the auth session."""
    return f"sb-{project_ref(supabase_url)}-auth-token"


def _error_text(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:300]
    if isinstance(data, dict):
        return str(data.get("error_description") or data.get("msg") or data.get("message") or data.get("error") or data)
    return str(data)


class SupabaseTables:
    """
    Thin client for the hosted PostgREST table API.

    With `access_token` the calls run as that user (row-level policies apply);
    without it they run with whatever role `api_key` carries.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        access_token: str | None = None,
        http: requests.Session | None = None,
        timeout: float | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self.http = http or requests.Session()
        self.timeout = timeout

    def _headers(self, *, representation: bool = False) -> dict:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Content-Type": "application/json",
        }
        if representation:
            headers["Prefer"] = "return=representation"
        return headers

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _send(self, method: str, table: str, **kwargs) -> Any:
        try:
            resp = self.http.request(method, self._url(table), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise StoreError(f"{table}: {e}", table=table) from e
        if resp.status_code // 100 != 2:
            raise StoreError(f"{table}: {_error_text(resp)}", status_code=resp.status_code, table=table)
        if not resp.content:
            return []
        return resp.json()

    def select(
        self,
        table: str,
        *filters: Filter,
        order: str | None = None,
        limit: int | None = None,
        columns: str = "*",
    ) -> list[dict]:
        params: list[tuple[str, str]] = [("select", columns)]
        params.extend(filter_params(filters))
        if order:
            params.append(("order", order))
        if limit is not None:
            params.append(("limit", str(limit)))
        return self._send("GET", table, params=params, headers=self._headers())

    def insert(self, table: str, row: dict) -> dict:
        data = self._send("POST", table, json=row, headers=self._headers(representation=True))
        if isinstance(data, list):
            return data[0] if data else {}
        return data

    def insert_many(self, table: str, rows: list[dict]) -> list[dict]:
        # One request, one statement: either every row lands or none does.
        data = self._send("POST", table, json=rows, headers=self._headers(representation=True))
        return data if isinstance(data, list) else [data]

    def update(self, table: str, values: dict, *filters: Filter) -> list[dict]:
        # PostgREST refuses unfiltered updates; so do we.
        if not filters:
            raise ValueError("update requires at least one filter")
        return self._send(
            "PATCH",
            table,
            params=filter_params(filters),
            json=values,
            headers=self._headers(representation=True),
        )


class SupabaseAuth:
    def __init__(self, base_url: str, api_key: str, *, http: requests.Session | None = None, timeout: float | None = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.http = http or requests.Session()
        self.timeout = timeout

    def _post(self, path: str, payload: dict | None = None, *, bearer: str | None = None) -> dict:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {bearer or self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            resp = self.http.post(f"{self.base_url}/auth/v1/{path}", json=payload or {}, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise AuthError(f"Network error during authentication: {e}") from e
        if resp.status_code // 100 != 2:
            raise AuthError(_error_text(resp), status_code=resp.status_code)
        return resp.json() if resp.content else {}

    def password_grant(self, email: str, password: str) -> dict:
        data = self._post("token?grant_type=password", {"email": email, "password": password})
        if not data.get("access_token") or not data.get("user"):
            raise AuthError("Invalid response from authentication server")
        return data

    def sign_up(self, email: str, password: str, *, data: dict | None = None) -> dict:
        return self._post("signup", {"email": email, "password": password, "data": data or {}})

    def logout(self, access_token: str) -> None:
        self._post("logout", bearer=access_token)

    def get_user(self, access_token: str) -> dict:
        headers = {"apikey": self.api_key, "Authorization": f"Bearer {access_token}"}
        try:
            resp = self.http.get(f"{self.base_url}/auth/v1/user", headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise AuthError(f"Network error during authentication: {e}") from e
        if resp.status_code // 100 != 2:
            raise AuthError(_error_text(resp), status_code=resp.status_code)
        return resp.json()


class SupabaseStorage:
    def __init__(self, base_url: str, api_key: str, *, http: requests.Session | None = None, timeout: float | None = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.http = http or requests.Session()
        self.timeout = timeout

    def upload(self, bucket: str, path: str, content: bytes, *, content_type: str) -> str:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": content_type or "application/octet-stream",
            "cache-control": "3600",
            "x-upsert": "true",
        }
        url = f"{self.base_url}/storage/v1/object/{bucket}/{quote(path)}"
        try:
            resp = self.http.post(url, data=content, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise StoreError(f"storage: {e}", table=bucket) from e
        if resp.status_code // 100 != 2:
            raise StoreError(f"storage: {_error_text(resp)}", status_code=resp.status_code, table=bucket)
        return path

    def remove(self, bucket: str, paths: list[str]) -> None:
        headers = {"apikey": self.api_key, "Authorization": f"Bearer {self.api_key}"}
        url = f"{self.base_url}/storage/v1/object/{bucket}"
        try:
            resp = self.http.delete(url, json={"prefixes": paths}, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise StoreError(f"storage: {e}", table=bucket) from e
        if resp.status_code // 100 != 2:
            raise StoreError(f"storage: {_error_text(resp)}", status_code=resp.status_code, table=bucket)


def service_tables() -> SupabaseTables:
    return SupabaseTables(settings.supabase_url, settings.supabase_service_role_key, timeout=settings.http_timeout_seconds)


def user_tables(access_token: str) -> SupabaseTables:
    return SupabaseTables(
        settings.supabase_url,
        settings.supabase_anon_key,
        access_token=access_token,
        timeout=settings.http_timeout_seconds,
    )


def auth_client() -> SupabaseAuth:
    return SupabaseAuth(settings.supabase_url, settings.supabase_anon_key, timeout=settings.http_timeout_seconds)


def storage_client() -> SupabaseStorage:
    return SupabaseStorage(settings.supabase_url, settings.supabase_service_role_key, timeout=settings.http_timeout_seconds)
