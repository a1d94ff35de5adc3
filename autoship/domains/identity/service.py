import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

import jwt

from autoship.core.config import settings
from autoship.core.errors import AuthError, StoreError
from autoship.core.security import Principal, Role, decode_access_token, parse_role
from autoship.core.supabase import PROFILES, SupabaseAuth, SupabaseTables, eq, session_storage_key

logger = logging.getLogger(__name__)

UserStoreFactory = Callable[[str], SupabaseTables]


class SessionKind(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    AUTHENTICATED_WITHOUT_PROFILE = "authenticated_without_profile"
    ERROR = "error"


class AdminAccess(str, enum.Enum):
    LOADING = "loading"
    NOT_AUTHENTICATED = "not_authenticated"
    NOT_ADMIN = "not_admin"
    ADMIN = "admin"


@dataclass(frozen=True)
class SessionState:
    kind: SessionKind
    user: Principal | None = None
    profile: dict | None = None
    error: str | None = None

    @property
    def role(self) -> Role | None:
        if self.kind != SessionKind.AUTHENTICATED or self.profile is None:
            return None
        return parse_role(self.profile.get("role"))

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


UNAUTHENTICATED = SessionState(kind=SessionKind.UNAUTHENTICATED)


_AUTH_MESSAGES = (
    ("Invalid login credentials", "Invalid email or password. Please check your credentials."),
    ("Email not confirmed", "Please check your email and click the confirmation link before logging in."),
    ("Too many requests", "Too many login attempts. Please wait a moment and try again."),
)


def friendly_auth_error(message: str | None) -> str:
    text = message or "Login failed"
    for needle, friendly in _AUTH_MESSAGES:
        if needle.lower() in text.lower():
            return friendly
    return text


def resolve_user(token: str, *, auth: SupabaseAuth) -> Principal | None:
    """
    Map an access token to its user. Returns None for tokens that are invalid or
    expired; raises AuthError when the auth API cannot be reached.
    """
    if settings.supabase_jwt_secret:
        try:
            return decode_access_token(token)
        except (jwt.PyJWTError, KeyError):
            return None

    try:
        data = auth.get_user(token)
    except AuthError as e:
        if e.status_code in (401, 403):
            return None
        raise
    if not data.get("id"):
        return None
    return Principal(sub=str(data["id"]), email=data.get("email"), access_token=token)


def fetch_profile_privileged(store: SupabaseTables, user_id: str) -> dict | None:
    rows = store.select(PROFILES, eq("id", user_id), limit=1)
    return rows[0] if rows else None


def fetch_profile(
    user_id: str,
    access_token: str | None,
    *,
    store: SupabaseTables,
    user_store_factory: UserStoreFactory,
) -> dict | None:
    # Row policies on `profiles` can recurse and reject the user-scoped read,
    # so a miss falls back to the service-role lookup.
    if access_token:
        try:
            rows = user_store_factory(access_token).select(PROFILES, eq("id", user_id), limit=1)
            if rows:
                return rows[0]
            logger.info("profile not visible with user token; falling back user_id=%s", user_id)
        except StoreError as e:
            logger.warning("direct profile fetch failed (trying fallback): %s", e)

    try:
        return fetch_profile_privileged(store, user_id)
    except StoreError as e:
        logger.error("privileged profile fetch failed user_id=%s: %s", user_id, e)
        return None


def resolve_session(
    token: str | None,
    *,
    auth: SupabaseAuth,
    store: SupabaseTables,
    user_store_factory: UserStoreFactory,
) -> SessionState:
    if not token:
        return UNAUTHENTICATED
    try:
        user = resolve_user(token, auth=auth)
        if user is None:
            return UNAUTHENTICATED
        profile = fetch_profile(user.sub, token, store=store, user_store_factory=user_store_factory)
    except (AuthError, StoreError) as e:
        logger.warning("session resolution failed: %s", e)
        return SessionState(kind=SessionKind.ERROR, error=str(e) or "Failed to get session")

    if profile is None:
        return SessionState(kind=SessionKind.AUTHENTICATED_WITHOUT_PROFILE, user=user)
    return SessionState(kind=SessionKind.AUTHENTICATED, user=user, profile=profile)


def classify_admin_access(session: SessionState | None) -> AdminAccess:
    if session is None:
        return AdminAccess.LOADING
    if session.user is None:
        return AdminAccess.NOT_AUTHENTICATED
    if not session.is_admin:
        return AdminAccess.NOT_ADMIN
    return AdminAccess.ADMIN


def login(
    email: str,
    password: str,
    *,
    auth: SupabaseAuth,
    store: SupabaseTables,
    user_store_factory: UserStoreFactory,
) -> dict:
    try:
        data = auth.password_grant(email, password)
    except AuthError as e:
        logger.info("login failed email=%s: %s", email, e.message)
        raise AuthError(friendly_auth_error(e.message), status_code=e.status_code) from e

    user = data["user"]
    profile = fetch_profile(str(user["id"]), data["access_token"], store=store, user_store_factory=user_store_factory)
    return {
        "access_token": data["access_token"],
        "refresh_token": data.get("refresh_token"),
        "expires_in": data.get("expires_in"),
        "expires_at": data.get("expires_at"),
        "user": {"id": str(user["id"]), "email": user.get("email")},
        "profile": profile,
        "storage_key": session_storage_key(settings.supabase_url),
    }


def signup(
    *,
    auth: SupabaseAuth,
    email: str,
    password: str,
    full_name: str | None = None,
    phone: str | None = None,
    company_name: str | None = None,
) -> dict:
    meta = {k: v for k, v in {"full_name": full_name, "phone": phone, "company_name": company_name}.items() if v}
    data = auth.sign_up(email, password, data=meta)
    # The auth API returns the user object directly when confirmation is pending,
    # or a session with a nested user when it is not required.
    user = data.get("user") or data
    return {
        "user_id": str(user["id"]) if user.get("id") else None,
        "email": email,
        "confirmation_required": not data.get("access_token"),
    }


def grant_admin_role(store: SupabaseTables, user_id: str) -> list[dict]:
    rows = store.update(
        PROFILES,
        {"role": Role.ADMIN.value, "updated_at": datetime.now(timezone.utc).isoformat()},
        eq("id", user_id),
    )
    logger.info("granted admin role user_id=%s rows=%s", user_id, len(rows))
    return rows
