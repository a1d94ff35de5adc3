from fastapi import APIRouter, Depends

from autoship.core.deps import get_store, require_user
from autoship.core.supabase import SupabaseTables
from autoship.domains.identity.service import SessionState
from autoship.domains.orders.schemas import (
    TrackingOut,
    TransportRequestCreateIn,
    TransportRequestListOut,
    TransportRequestOut,
)
from autoship.domains.orders.service import (
    create_request,
    get_request_by_order_number,
    get_request_for_session,
    list_requests,
    tracking_view,
)


router = APIRouter()


@router.post("/requests", response_model=TransportRequestOut)
def create_request_route(
    payload: TransportRequestCreateIn,
    session: SessionState = Depends(require_user),
    store: SupabaseTables = Depends(get_store),
) -> TransportRequestOut:
    row = create_request(store, user_id=session.user.sub, data=payload.model_dump())  # type: ignore[union-attr]
    return TransportRequestOut(**row)


@router.get("/requests", response_model=TransportRequestListOut)
def my_requests(
    session: SessionState = Depends(require_user),
    store: SupabaseTables = Depends(get_store),
) -> TransportRequestListOut:
    rows = list_requests(store, user_id=session.user.sub)  # type: ignore[union-attr]
    return TransportRequestListOut(items=rows)


@router.get("/requests/{request_id}", response_model=TransportRequestOut)
def request_detail(
    request_id: str,
    session: SessionState = Depends(require_user),
    store: SupabaseTables = Depends(get_store),
) -> TransportRequestOut:
    return TransportRequestOut(**get_request_for_session(store, session, request_id))


@router.get("/track/{order_number}", response_model=TrackingOut)
def track_order(order_number: str, store: SupabaseTables = Depends(get_store)) -> TrackingOut:
    """Public lookup by order number; contact details are not exposed."""
    req = get_request_by_order_number(store, order_number.strip())
    return TrackingOut(**tracking_view(req))
