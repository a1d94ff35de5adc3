import json
import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from autoship.core.config import settings
from autoship.core.deps import get_auth, get_storage, get_store, get_user_store_factory
from autoship.core.errors import AuthError, StoreError
from autoship.core.supabase import PROFILES, QUOTES, TRANSPORTATION_REQUESTS
from autoship.domains.payments.gateway import PaymentGatewayError, WebhookSignatureError, get_payment_gateway
from autoship.main import app

VALID_VIN = "1HGCM82633A004352"

_EPOCH = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _matches(row: dict, filters) -> bool:
    for col, op, val in filters:
        if op == "eq" and row.get(col) != val:
            return False
        if op == "neq" and row.get(col) == val:
            return False
        if op == "is" and row.get(col) is not val:
            return False
        if op == "in" and row.get(col) not in val:
            return False
    return True


class FakeStore:
    """In-memory stand-in for the hosted table API with the same filter semantics."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = defaultdict(list)
        self.fail: set[tuple[str, str]] = set()
        self._tick = 0

    def now(self) -> str:
        self._tick += 1
        return (_EPOCH + timedelta(seconds=self._tick)).isoformat()

    def _check(self, method: str, table: str) -> None:
        if (method, table) in self.fail:
            raise StoreError(f"{table}: injected failure", status_code=500, table=table)

    def select(self, table, *filters, order=None, limit=None, columns="*"):
        self._check("select", table)
        rows = [dict(r) for r in self.tables[table] if _matches(r, filters)]
        if order:
            col, _, direction = order.partition(".")
            rows.sort(key=lambda r: r.get(col) or "", reverse=direction == "desc")
        if limit is not None:
            rows = rows[:limit]
        return rows

    def insert(self, table, row):
        self._check("insert", table)
        stored = dict(row)
        stored.setdefault("id", uuid.uuid4().hex)
        stored.setdefault("created_at", self.now())
        self.tables[table].append(stored)
        return dict(stored)

    def insert_many(self, table, rows):
        self._check("insert", table)
        return [self.insert(table, row) for row in rows]

    def update(self, table, values, *filters):
        if not filters:
            raise ValueError("update requires at least one filter")
        self._check("update", table)
        out = []
        for r in self.tables[table]:
            if _matches(r, filters):
                r.update(values)
                out.append(dict(r))
        return out

    def rows(self, table, **where) -> list[dict]:
        return [r for r in self.tables[table] if all(r.get(k) == v for k, v in where.items())]


class FakeAuth:
    def __init__(self):
        self.tokens: dict[str, dict] = {}
        self.passwords: dict[str, tuple[str, str]] = {}
        self.unreachable = False
        self.logged_out: list[str] = []

    def password_grant(self, email, password):
        entry = self.passwords.get(email)
        if entry is None or entry[0] != password:
            raise AuthError("Invalid login credentials", status_code=400)
        token = entry[1]
        return {"access_token": token, "refresh_token": "refresh", "expires_in": 3600, "user": self.tokens[token]}

    def sign_up(self, email, password, *, data=None):
        if email in self.passwords:
            raise AuthError("User already registered", status_code=422)
        uid = uuid.uuid4().hex
        return {"id": uid, "email": email, "user_metadata": data or {}}

    def logout(self, token):
        self.logged_out.append(token)

    def get_user(self, token):
        if self.unreachable:
            raise AuthError("auth: connection refused")
        user = self.tokens.get(token)
        if user is None:
            raise AuthError("invalid JWT", status_code=401)
        return user


class FakeStorage:
    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.fail_after: int | None = None
        self.removed: list[str] = []

    def upload(self, bucket, path, content, *, content_type):
        if self.fail_after is not None and len(self.objects) >= self.fail_after:
            raise StoreError(f"{bucket}: injected upload failure", status_code=500, table=bucket)
        self.objects[f"{bucket}/{path}"] = content
        return path

    def remove(self, bucket, paths):
        for path in paths:
            self.objects.pop(f"{bucket}/{path}", None)
            self.removed.append(path)


class FakeGateway:
    def __init__(self):
        self.intents: list[dict] = []
        self.broken = False

    def create_intent(self, *, amount, currency, metadata, description):
        if self.broken:
            raise PaymentGatewayError("card processor down")
        intent_id = f"pi_{len(self.intents) + 1}"
        self.intents.append({"id": intent_id, "amount": amount, "currency": currency, "metadata": metadata})
        return {"id": intent_id, "client_secret": f"{intent_id}_secret"}

    def verify_event(self, payload, signature):
        if signature != "valid":
            raise WebhookSignatureError("bad signature")
        return json.loads(payload)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def auth():
    return FakeAuth()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(store, auth, storage, gateway, monkeypatch):
    monkeypatch.setattr(settings, "supabase_jwt_secret", None)
    monkeypatch.setattr(settings, "admin_setup_token", None)
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_auth] = lambda: auth
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_user_store_factory] = lambda: (lambda token: store)
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(store, auth):
    def _make(role="customer", *, email=None, password="secret123", with_profile=True):
        uid = uuid.uuid4().hex
        token = f"tok-{uid}"
        email = email or f"{uid[:8]}@example.com"
        auth.tokens[token] = {"id": uid, "email": email}
        auth.passwords[email] = (password, token)
        if with_profile:
            store.tables[PROFILES].append(
                {"id": uid, "email": email, "role": role, "full_name": "Pat Driver", "created_at": store.now()}
            )
        return SimpleNamespace(id=uid, email=email, token=token, headers={"Authorization": f"Bearer {token}"})

    return _make


@pytest.fixture
def seed_request(store):
    def _seed(user_id, **overrides):
        row = {
            "order_number": f"TRQ_1767225600000_{uuid.uuid4().hex[:6]}",
            "user_id": user_id,
            "status": "pending",
            "assigned_admin_id": None,
            "pickup_company_name": "Acme Motors",
            "pickup_company_address": "1 Main St, Austin, TX",
            "pickup_contact_name": "Sam Lee",
            "pickup_contact_phone": "5125550100",
            "delivery_company_name": "Blue Auto",
            "delivery_company_address": "9 Elm Ave, Denver, CO",
            "delivery_contact_name": "Ana Ruiz",
            "delivery_contact_phone": "3035550199",
            "vin_number": VALID_VIN,
            "vehicle_make": "HONDA",
            "vehicle_model": "Accord",
            "vehicle_year": 2003,
            "updated_at": None,
        }
        row.update(overrides)
        return store.insert(TRANSPORTATION_REQUESTS, row)

    return _seed


@pytest.fixture
def seed_quote(store):
    def _seed(request_id, total=450.0, **overrides):
        row = {
            "transportation_request_id": request_id,
            "admin_id": None,
            "base_price": total,
            "fuel_surcharge": 0,
            "additional_fees": 0,
            "total_amount": total,
            "is_active": True,
        }
        row.update(overrides)
        return store.insert(QUOTES, row)

    return _seed
