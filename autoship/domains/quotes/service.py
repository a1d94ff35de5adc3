import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from fastapi import HTTPException, status

from autoship.core.supabase import QUOTES, SupabaseTables, eq, neq
from autoship.domains.orders.models import TERMINAL_STATUSES
from autoship.domains.orders.service import get_request, parse_status

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_decimal(value: object) -> Decimal:
    # str() first so float artifacts (0.1 + 0.2) do not leak into money math.
    return Decimal(str(value if value is not None else 0))


def quote_total(base_price: object, fuel_surcharge: object = 0, additional_fees: object = 0) -> Decimal:
    total = to_decimal(base_price) + to_decimal(fuel_surcharge) + to_decimal(additional_fees)
    return total.quantize(CENT, rounding=ROUND_HALF_UP)


def create_quote(
    store: SupabaseTables,
    *,
    request_id: str,
    admin_id: str,
    base_price: float,
    fuel_surcharge: float = 0,
    additional_fees: float = 0,
    estimated_pickup_date: str | None = None,
    estimated_delivery_date: str | None = None,
    terms_and_conditions: str | None = None,
    notes: str | None = None,
    expires_at: str | None = None,
) -> dict:
    if to_decimal(base_price) <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "INVALID_PRICE", "message": "Base price is required and must be greater than 0"},
        )

    req = get_request(store, request_id)
    if req.get("assigned_admin_id") != admin_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "NOT_ASSIGNED", "message": "Claim the order before quoting it."},
        )
    if parse_status(req.get("status")) in TERMINAL_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "ORDER_CLOSED", "message": f"Order is {req.get('status')}; it cannot be quoted."},
        )

    total = quote_total(base_price, fuel_surcharge, additional_fees)
    row = store.insert(
        QUOTES,
        {
            "transportation_request_id": request_id,
            "admin_id": admin_id,
            "base_price": float(to_decimal(base_price)),
            "fuel_surcharge": float(to_decimal(fuel_surcharge)),
            "additional_fees": float(to_decimal(additional_fees)),
            "total_amount": float(total),
            "estimated_pickup_date": estimated_pickup_date,
            "estimated_delivery_date": estimated_delivery_date,
            "terms_and_conditions": terms_and_conditions,
            "notes": notes,
            "expires_at": expires_at,
            "is_active": True,
        },
    )
    logger.info("quote created request_id=%s quote_id=%s total=%s", request_id, row.get("id"), total)
    return row


def list_quotes(store: SupabaseTables, request_id: str) -> list[dict]:
    return store.select(QUOTES, eq("transportation_request_id", request_id), order="created_at.desc")


def get_active_quote(store: SupabaseTables, quote_id: str) -> dict | None:
    rows = store.select(QUOTES, eq("id", quote_id), eq("is_active", True), limit=1)
    return rows[0] if rows else None


def deactivate_sibling_quotes(store: SupabaseTables, *, request_id: str, keep_quote_id: str) -> list[dict]:
    """Deactivate every quote of the request except `keep_quote_id`, which is left untouched."""
    return store.update(
        QUOTES,
        {"is_active": False, "updated_at": datetime.now(timezone.utc).isoformat()},
        eq("transportation_request_id", request_id),
        neq("id", keep_quote_id),
    )
