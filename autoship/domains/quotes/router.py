from fastapi import APIRouter, Depends

from autoship.core.deps import get_store, require_admin, require_user
from autoship.core.supabase import SupabaseTables
from autoship.domains.identity.service import SessionState
from autoship.domains.orders.service import get_request_for_session
from autoship.domains.quotes.schemas import QuoteCreateIn, QuoteListOut, QuoteOut
from autoship.domains.quotes.service import create_quote, list_quotes


router = APIRouter()


@router.post("/admin/orders/{request_id}/quotes", response_model=QuoteOut)
def create_quote_route(
    request_id: str,
    payload: QuoteCreateIn,
    session: SessionState = Depends(require_admin),
    store: SupabaseTables = Depends(get_store),
) -> QuoteOut:
    row = create_quote(store, request_id=request_id, admin_id=session.user.sub, **payload.model_dump())  # type: ignore[union-attr]
    return QuoteOut(**row)


@router.get("/requests/{request_id}/quotes", response_model=QuoteListOut)
def request_quotes(
    request_id: str,
    session: SessionState = Depends(require_user),
    store: SupabaseTables = Depends(get_store),
) -> QuoteListOut:
    get_request_for_session(store, session, request_id)
    return QuoteListOut(items=list_quotes(store, request_id))
