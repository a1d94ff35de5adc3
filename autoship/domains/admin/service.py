import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable

from fastapi import HTTPException, status
from fastapi.concurrency import run_in_threadpool

from autoship.core.errors import StoreError
from autoship.core.supabase import PROFILES, TRANSPORTATION_REQUESTS, SupabaseTables, eq, is_null
from autoship.domains.orders.models import TERMINAL_STATUSES, RequestStatus
from autoship.domains.orders.service import get_request, list_requests, parse_status

logger = logging.getLogger(__name__)


# Admin-driven moves. Claiming (pending -> quoted) and payment (-> paid) have their own paths.
ALLOWED_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.QUOTED: frozenset({RequestStatus.IN_PROGRESS, RequestStatus.CANCELLED}),
    RequestStatus.ACCEPTED: frozenset({RequestStatus.IN_PROGRESS, RequestStatus.CANCELLED}),
    RequestStatus.PAID: frozenset({RequestStatus.IN_PROGRESS, RequestStatus.CANCELLED}),
    RequestStatus.IN_PROGRESS: frozenset({RequestStatus.COMPLETED, RequestStatus.CANCELLED}),
}

UNASSIGNABLE_STATUSES = frozenset({RequestStatus.QUOTED, RequestStatus.IN_PROGRESS})


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def claim_request(store: SupabaseTables, *, request_id: str, admin_id: str) -> dict:
    """
    Assign an unclaimed pending request to `admin_id` and move it to quoted.

    The update only matches while the row is still unassigned, so when two
    admins race the second one affects zero rows and gets a 409.
    """
    rows = store.update(
        TRANSPORTATION_REQUESTS,
        {"assigned_admin_id": admin_id, "status": RequestStatus.QUOTED.value, "updated_at": _now_iso()},
        eq("id", request_id),
        is_null("assigned_admin_id"),
        eq("status", RequestStatus.PENDING.value),
    )
    if rows:
        logger.info("request claimed request_id=%s admin_id=%s", request_id, admin_id)
        return rows[0]

    current = get_request(store, request_id)
    logger.info(
        "claim lost request_id=%s admin_id=%s holder=%s status=%s",
        request_id,
        admin_id,
        current.get("assigned_admin_id"),
        current.get("status"),
    )
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"code": "ALREADY_CLAIMED", "message": "This order has already been claimed."},
    )


def _require_assigned(req: dict, admin_id: str) -> None:
    if req.get("assigned_admin_id") != admin_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "NOT_ASSIGNED", "message": "Order is not assigned to you."},
        )


def update_request_status(store: SupabaseTables, *, request_id: str, admin_id: str, new_status: RequestStatus) -> dict:
    req = get_request(store, request_id)
    _require_assigned(req, admin_id)

    current = parse_status(req.get("status"))
    allowed = ALLOWED_TRANSITIONS.get(current, frozenset()) if current else frozenset()
    if new_status not in allowed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "code": "INVALID_TRANSITION",
                "message": f"Cannot move order from {req.get('status')} to {new_status.value}.",
            },
        )

    rows = store.update(
        TRANSPORTATION_REQUESTS,
        {"status": new_status.value, "updated_at": _now_iso()},
        eq("id", request_id),
        eq("assigned_admin_id", admin_id),
        eq("status", current.value),  # type: ignore[union-attr]
    )
    if not rows:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "STATUS_CHANGED", "message": "Order changed while updating; reload and retry."},
        )
    logger.info("request status request_id=%s %s -> %s", request_id, current.value, new_status.value)  # type: ignore[union-attr]
    return rows[0]


def unassign_request(store: SupabaseTables, *, request_id: str, admin_id: str) -> dict:
    req = get_request(store, request_id)
    _require_assigned(req, admin_id)

    current = parse_status(req.get("status"))
    if current not in UNASSIGNABLE_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "CANNOT_UNASSIGN", "message": f"Orders in {req.get('status')} cannot be unassigned."},
        )

    # Back to the shared queue: pending and unassigned go together.
    rows = store.update(
        TRANSPORTATION_REQUESTS,
        {"assigned_admin_id": None, "status": RequestStatus.PENDING.value, "updated_at": _now_iso()},
        eq("id", request_id),
        eq("assigned_admin_id", admin_id),
        eq("status", current.value),  # type: ignore[union-attr]
    )
    if not rows:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "STATUS_CHANGED", "message": "Order changed while updating; reload and retry."},
        )
    logger.info("request unassigned request_id=%s admin_id=%s", request_id, admin_id)
    return rows[0]


def new_requests(store: SupabaseTables) -> list[dict]:
    return list_requests(store, status_filter=RequestStatus.PENDING, unassigned=True)


def compute_stats(rows: list[dict], *, admin_id: str) -> dict:
    return {
        "total_requests": len(rows),
        "new_requests": sum(1 for r in rows if r.get("status") == RequestStatus.PENDING.value and not r.get("assigned_admin_id")),
        "my_assigned_requests": sum(1 for r in rows if r.get("assigned_admin_id") == admin_id),
        "completed_requests": sum(1 for r in rows if r.get("status") == RequestStatus.COMPLETED.value),
        "active_requests": sum(1 for r in rows if parse_status(r.get("status")) not in TERMINAL_STATUSES),
    }


def admin_stats(store: SupabaseTables, *, admin_id: str) -> dict:
    return compute_stats(list_requests(store), admin_id=admin_id)


async def stats_events(
    fetch: Callable[[], dict],
    *,
    interval: float,
    is_disconnected: Callable[[], Awaitable[bool]],
) -> AsyncIterator[str]:
    """
    Server-sent events carrying fresh stats every `interval` seconds.

    Lives exactly as long as the subscribing view: it stops when the client
    disconnects, and cancellation of the response task ends the sleep.
    """
    while not await is_disconnected():
        try:
            stats = await run_in_threadpool(fetch)
            yield f"event: stats\ndata: {json.dumps(stats)}\n\n"
        except StoreError as e:
            logger.warning("stats refresh failed: %s", e)
            yield f"event: error\ndata: {json.dumps({'error': e.message})}\n\n"
        await asyncio.sleep(interval)


def list_customers(store: SupabaseTables) -> list[dict]:
    customers = store.select(PROFILES, eq("role", "customer"), order="created_at.desc")
    counts: dict[str, int] = {}
    for r in list_requests(store):
        uid = r.get("user_id")
        if uid:
            counts[uid] = counts.get(uid, 0) + 1
    return [{**c, "request_count": counts.get(c.get("id"), 0)} for c in customers]
