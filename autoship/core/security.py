import enum
from dataclasses import dataclass

import jwt

from autoship.core.config import settings


class Role(str, enum.Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


@dataclass(frozen=True)
class Principal:
    """The authenticated user behind a bearer token."""

    sub: str
    email: str | None
    access_token: str


def bearer_token(authorization: str | None) -> str | None:
    auth = authorization or ""
    prefix = "bearer "
    if not auth.lower().startswith(prefix):
        return None
    token = auth[len(prefix) :].strip()
    return token or None


def decode_access_token(token: str) -> Principal:
    payload = jwt.decode(
        token,
        settings.supabase_jwt_secret,
        algorithms=["HS256"],
        audience=settings.supabase_jwt_audience,
    )
    return Principal(sub=str(payload["sub"]), email=payload.get("email"), access_token=token)


def parse_role(value: object) -> Role:
    # Unknown or missing roles never grant admin.
    try:
        return Role(value)
    except ValueError:
        return Role.CUSTOMER
