from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response, StreamingResponse

from autoship.core.config import settings
from autoship.core.deps import get_store, require_admin
from autoship.core.supabase import SupabaseTables
from autoship.domains.admin.schemas import (
    AdminOrderDetailOut,
    AdminStatsOut,
    CustomerListOut,
    SearchHitOut,
    SearchResultsOut,
    StatusUpdateIn,
)
from autoship.domains.admin.service import (
    admin_stats,
    claim_request,
    list_customers,
    new_requests,
    stats_events,
    unassign_request,
    update_request_status,
)
from autoship.domains.attachments.service import list_attachments
from autoship.domains.identity.service import SessionState, fetch_profile_privileged
from autoship.domains.orders.models import RequestStatus
from autoship.domains.orders.schemas import TransportRequestListOut, TransportRequestOut
from autoship.domains.orders.service import get_request, list_requests, status_label
from autoship.domains.payments.service import list_payments
from autoship.domains.quotes.service import list_quotes
from autoship.utils.export import rows_to_csv
from autoship.utils.search import filter_date_range, order_search_service


router = APIRouter(prefix="/admin")


def _admin_id(session: SessionState) -> str:
    return session.user.sub  # type: ignore[union-attr]


@router.get("/orders/new", response_model=TransportRequestListOut)
def new_orders(
    _: SessionState = Depends(require_admin),
    store: SupabaseTables = Depends(get_store),
) -> TransportRequestListOut:
    return TransportRequestListOut(items=new_requests(store))


@router.get("/orders/assigned", response_model=TransportRequestListOut)
def assigned_orders(
    session: SessionState = Depends(require_admin),
    store: SupabaseTables = Depends(get_store),
) -> TransportRequestListOut:
    return TransportRequestListOut(items=list_requests(store, assigned_admin_id=_admin_id(session)))


@router.get("/orders/all", response_model=SearchResultsOut)
def all_orders(
    status: RequestStatus | None = None,
    q: str | None = Query(default=None, max_length=256),
    created_from: date | None = None,
    created_to: date | None = None,
    _: SessionState = Depends(require_admin),
    store: SupabaseTables = Depends(get_store),
) -> SearchResultsOut:
    rows = list_requests(store, status_filter=status)
    if created_from or created_to:
        rows = filter_date_range(rows, "created_at", created_from, created_to)
    hits = order_search_service().search(rows, q or "")
    return SearchResultsOut(
        items=[
            SearchHitOut(
                request=TransportRequestOut(**h.item),
                score=round(h.score, 4),
                matched_fields=sorted({m.field for m in h.matches}),
            )
            for h in hits
        ]
    )


@router.get("/orders/{request_id}", response_model=AdminOrderDetailOut)
def order_detail(
    request_id: str,
    _: SessionState = Depends(require_admin),
    store: SupabaseTables = Depends(get_store),
) -> AdminOrderDetailOut:
    req = get_request(store, request_id)
    customer = fetch_profile_privileged(store, req["user_id"]) if req.get("user_id") else None
    return AdminOrderDetailOut(
        request=TransportRequestOut(**req),
        status_label=status_label(req.get("status")),
        customer=customer,
        quotes=list_quotes(store, request_id),
        attachments=list_attachments(store, request_id),
        payments=list_payments(store, request_id=request_id),
    )


@router.post("/orders/{request_id}/claim", response_model=TransportRequestOut)
def claim_order(
    request_id: str,
    session: SessionState = Depends(require_admin),
    store: SupabaseTables = Depends(get_store),
) -> TransportRequestOut:
    return TransportRequestOut(**claim_request(store, request_id=request_id, admin_id=_admin_id(session)))


@router.post("/orders/{request_id}/status", response_model=TransportRequestOut)
def change_status(
    request_id: str,
    payload: StatusUpdateIn,
    session: SessionState = Depends(require_admin),
    store: SupabaseTables = Depends(get_store),
) -> TransportRequestOut:
    row = update_request_status(store, request_id=request_id, admin_id=_admin_id(session), new_status=payload.status)
    return TransportRequestOut(**row)


@router.post("/orders/{request_id}/unassign", response_model=TransportRequestOut)
def unassign_order(
    request_id: str,
    session: SessionState = Depends(require_admin),
    store: SupabaseTables = Depends(get_store),
) -> TransportRequestOut:
    return TransportRequestOut(**unassign_request(store, request_id=request_id, admin_id=_admin_id(session)))


@router.get("/stats", response_model=AdminStatsOut)
def stats(
    session: SessionState = Depends(require_admin),
    store: SupabaseTables = Depends(get_store),
) -> AdminStatsOut:
    return AdminStatsOut(**admin_stats(store, admin_id=_admin_id(session)))


@router.get("/stats/stream")
def stats_stream(
    request: Request,
    session: SessionState = Depends(require_admin),
    store: SupabaseTables = Depends(get_store),
) -> StreamingResponse:
    admin_id = _admin_id(session)
    events = stats_events(
        lambda: admin_stats(store, admin_id=admin_id),
        interval=settings.admin_stats_refresh_seconds,
        is_disconnected=request.is_disconnected,
    )
    return StreamingResponse(events, media_type="text/event-stream", headers={"Cache-Control": "no-cache"})


@router.get("/export.csv")
def export_csv(
    status: RequestStatus | None = None,
    fields: str | None = Query(default=None, description="Comma-separated column names"),
    _: SessionState = Depends(require_admin),
    store: SupabaseTables = Depends(get_store),
) -> Response:
    cols = [f.strip() for f in fields.split(",") if f.strip()] if fields else None
    body = rows_to_csv(list_requests(store, status_filter=status), cols)
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="orders-{date.today().isoformat()}.csv"'},
    )


@router.get("/customers", response_model=CustomerListOut)
def customers(
    _: SessionState = Depends(require_admin),
    store: SupabaseTables = Depends(get_store),
) -> CustomerListOut:
    return CustomerListOut(items=list_customers(store))
