import logging
import secrets
import string
import time
from datetime import datetime, timezone

from fastapi import HTTPException, status

from autoship.core.supabase import TRANSPORTATION_REQUESTS, Filter, SupabaseTables, eq, is_null
from autoship.domains.identity.service import SessionState
from autoship.domains.orders.models import (
    PROGRESS_STEPS,
    STATUS_LABELS,
    TERMINAL_STATUSES,
    TIMELINE_MESSAGES,
    RequestStatus,
)

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_order_number(now_ms: int | None = None) -> str:
    ms = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"TRQ_{ms}_{suffix}"


def parse_status(value: str | None) -> RequestStatus | None:
    try:
        return RequestStatus(value)
    except ValueError:
        return None


def create_request(store: SupabaseTables, *, user_id: str, data: dict) -> dict:
    row = dict(data)
    row.update(
        {
            "user_id": user_id,
            "order_number": generate_order_number(),
            "status": RequestStatus.PENDING.value,
            "assigned_admin_id": None,
        }
    )
    created = store.insert(TRANSPORTATION_REQUESTS, row)
    logger.info("transportation request created order_number=%s user_id=%s", created.get("order_number"), user_id)
    return created


def list_requests(
    store: SupabaseTables,
    *,
    status_filter: RequestStatus | None = None,
    user_id: str | None = None,
    assigned_admin_id: str | None = None,
    unassigned: bool = False,
) -> list[dict]:
    filters: list[Filter] = []
    if status_filter is not None:
        filters.append(eq("status", status_filter.value))
    if unassigned:
        filters.append(is_null("assigned_admin_id"))
    elif assigned_admin_id:
        filters.append(eq("assigned_admin_id", assigned_admin_id))
    if user_id:
        filters.append(eq("user_id", user_id))
    return store.select(TRANSPORTATION_REQUESTS, *filters, order="created_at.desc")


def get_request(store: SupabaseTables, request_id: str) -> dict:
    rows = store.select(TRANSPORTATION_REQUESTS, eq("id", request_id), limit=1)
    if not rows:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")
    return rows[0]


def get_request_for_session(store: SupabaseTables, session: SessionState, request_id: str) -> dict:
    req = get_request(store, request_id)
    if session.is_admin or (session.user is not None and req.get("user_id") == session.user.sub):
        return req
    # Same answer as a missing row so order ids cannot be probed.
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")


def get_request_by_order_number(store: SupabaseTables, order_number: str) -> dict:
    rows = store.select(TRANSPORTATION_REQUESTS, eq("order_number", order_number), limit=1)
    if not rows:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return rows[0]


def status_label(value: str | None) -> str:
    st = parse_status(value)
    if st is None:
        return (value or "unknown").replace("_", " ").title()
    return STATUS_LABELS[st]


def progress_steps(value: str | None) -> list[dict]:
    st = parse_status(value)
    current = 0
    for idx, (_code, _label, members) in enumerate(PROGRESS_STEPS):
        if st in members:
            current = idx
            break

    terminal_off_path = st in (RequestStatus.CANCELLED, RequestStatus.DECLINED)
    steps = []
    for idx, (code, label, _members) in enumerate(PROGRESS_STEPS):
        if terminal_off_path:
            steps.append({"code": code, "label": label, "completed": idx == 0, "current": False})
            continue
        done = idx < current or (idx == current and st == RequestStatus.COMPLETED)
        steps.append({"code": code, "label": label, "completed": done, "current": idx == current})
    return steps


def tracking_timeline(req: dict) -> list[dict]:
    st = parse_status(req.get("status"))
    entries = []
    for step in progress_steps(req.get("status")):
        if not (step["completed"] or step["current"]):
            continue
        if step["code"] == "submitted":
            at = req.get("created_at")
        elif step["current"]:
            at = req.get("updated_at")
        else:
            at = None
        entries.append({"code": step["code"], "message": TIMELINE_MESSAGES[step["code"]], "at": at})
    if st in (RequestStatus.CANCELLED, RequestStatus.DECLINED):
        entries.append({"code": st.value, "message": f"Order {STATUS_LABELS[st].lower()}", "at": req.get("updated_at")})
    return entries


def tracking_view(req: dict) -> dict:
    st = parse_status(req.get("status"))
    vehicle_bits = [str(v) for v in (req.get("vehicle_year"), req.get("vehicle_make"), req.get("vehicle_model")) if v]
    return {
        "order_number": req["order_number"],
        "status": req.get("status"),
        "status_label": status_label(req.get("status")),
        "is_terminal": st in TERMINAL_STATUSES,
        "pickup_company_name": req.get("pickup_company_name"),
        "pickup_company_address": req.get("pickup_company_address"),
        "delivery_company_name": req.get("delivery_company_name"),
        "delivery_company_address": req.get("delivery_company_address"),
        "vehicle": " ".join(vehicle_bits) or None,
        "created_at": req.get("created_at"),
        "updated_at": req.get("updated_at"),
        "steps": progress_steps(req.get("status")),
        "timeline": tracking_timeline(req),
    }
