import logging

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.concurrency import run_in_threadpool

from autoship.core.deps import get_session, get_store, require_admin, require_user
from autoship.core.errors import ApiError
from autoship.core.supabase import SupabaseTables
from autoship.domains.identity.service import SessionState
from autoship.domains.payments.gateway import PaymentGateway, WebhookSignatureError, get_payment_gateway
from autoship.domains.payments.schemas import PaymentIntentIn, PaymentIntentOut, PaymentListOut
from autoship.domains.payments.service import create_payment_intent, list_payments, reconcile_event

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/create-payment-intent", response_model=PaymentIntentOut)
def create_intent_route(
    payload: PaymentIntentIn,
    session: SessionState = Depends(get_session),
    store: SupabaseTables = Depends(get_store),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PaymentIntentOut:
    if session.user is None:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Authentication required")
    data = create_payment_intent(
        store,
        gateway,
        session=session,
        quote_id=payload.quote_id,
        amount=payload.amount,
        metadata=payload.metadata,
    )
    return PaymentIntentOut(**data)


@router.post("/api/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    store: SupabaseTables = Depends(get_store),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    stripe_signature: str | None = Header(default=None),
) -> dict:
    payload = await request.body()
    if not stripe_signature:
        logger.error("webhook without signature")
        raise ApiError(status.HTTP_400_BAD_REQUEST, "No signature")

    try:
        event = gateway.verify_event(payload, stripe_signature)
    except WebhookSignatureError as e:
        logger.error("webhook signature verification failed: %s", e)
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid signature")

    logger.info("webhook event id=%s type=%s", event.get("id"), event.get("type"))
    try:
        await run_in_threadpool(reconcile_event, store, event)
    except Exception as e:
        # Non-2xx makes the provider redeliver; handlers are safe to re-run.
        logger.exception("webhook handler error event_id=%s", event.get("id"))
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook error") from e
    return {"received": True}


@router.get("/payments", response_model=PaymentListOut)
def my_payments(
    session: SessionState = Depends(require_user),
    store: SupabaseTables = Depends(get_store),
) -> PaymentListOut:
    return PaymentListOut(items=list_payments(store, user_id=session.user.sub))  # type: ignore[union-attr]


@router.get("/admin/payments", response_model=PaymentListOut)
def all_payments(
    _: SessionState = Depends(require_admin),
    store: SupabaseTables = Depends(get_store),
) -> PaymentListOut:
    return PaymentListOut(items=list_payments(store))
