import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from fastapi import status

from autoship.core.config import settings
from autoship.core.errors import ApiError, StoreError
from autoship.core.supabase import PAYMENTS, TRANSPORTATION_REQUESTS, Filter, SupabaseTables, eq, in_
from autoship.domains.identity.service import SessionState
from autoship.domains.orders.models import RequestStatus
from autoship.domains.payments.gateway import PaymentGateway, PaymentGatewayError
from autoship.domains.quotes.service import deactivate_sibling_quotes, get_active_quote

logger = logging.getLogger(__name__)

SUCCEEDED = "payment_intent.succeeded"
FAILED = "payment_intent.payment_failed"

PAYABLE_STATUSES = (RequestStatus.QUOTED.value, RequestStatus.ACCEPTED.value, RequestStatus.PAID.value)


def to_minor_units(total: object) -> int:
    return int((Decimal(str(total)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def create_payment_intent(
    store: SupabaseTables,
    gateway: PaymentGateway,
    *,
    session: SessionState,
    quote_id: str | None,
    amount: float | None,
    metadata: dict | None = None,
) -> dict:
    """
    Create a provider intent for an active quote.

    The claimed `amount` (minor units) must equal the quote's stored total;
    every check runs before the provider is called.
    """
    if not quote_id or not amount:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Quote ID and amount are required")

    quote = get_active_quote(store, quote_id)
    if not quote:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Quote not found or inactive")

    rows = store.select(TRANSPORTATION_REQUESTS, eq("id", quote.get("transportation_request_id")), limit=1)
    if not rows:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Transportation request not found")
    req = rows[0]

    owner = session.user is not None and req.get("user_id") == session.user.sub
    if not (owner or session.is_admin):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Not allowed to pay for this quote")

    expected = to_minor_units(quote.get("total_amount"))
    if amount != expected:
        logger.warning("amount mismatch quote_id=%s received=%s expected=%s", quote_id, amount, expected)
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Payment amount does not match quote total")

    order_number = req.get("order_number")
    intent_metadata = {
        **(metadata or {}),
        "quoteId": quote_id,
        "transportationRequestId": quote.get("transportation_request_id"),
        "orderNumber": order_number,
        "userId": req.get("user_id"),
    }
    try:
        intent = gateway.create_intent(
            amount=expected,
            currency=settings.stripe_currency,
            metadata=intent_metadata,
            description=f"Payment for Transportation Quote - Order {order_number}",
        )
    except PaymentGatewayError:
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to create payment intent")

    logger.info("payment intent created intent_id=%s order_number=%s", intent["id"], order_number)
    return {"clientSecret": intent["client_secret"], "paymentIntentId": intent["id"]}


def _charge_id(intent: dict) -> str | None:
    latest = intent.get("latest_charge")
    if isinstance(latest, dict):
        return latest.get("id")
    if latest:
        return latest
    charges = (intent.get("charges") or {}).get("data") or []
    return charges[0].get("id") if charges else None


def _payment_row(event: dict, intent: dict, meta: dict, *, payment_status: str) -> dict:
    return {
        "transportation_request_id": meta.get("transportationRequestId"),
        "quote_id": meta.get("quoteId"),
        "user_id": meta.get("userId"),
        "stripe_payment_intent_id": intent.get("id"),
        "stripe_charge_id": _charge_id(intent),
        "stripe_event_id": event.get("id"),
        "amount": (intent.get("amount") or 0) / 100,
        "currency": intent.get("currency"),
        "status": payment_status,
        "payment_method": "card",
        "metadata": {"order_number": meta.get("orderNumber"), "receipt_email": intent.get("receipt_email")},
    }


def _already_recorded(store: SupabaseTables, event_id: str | None) -> bool:
    if not event_id:
        return False
    return bool(store.select(PAYMENTS, eq("stripe_event_id", event_id), limit=1))


def _handle_succeeded(store: SupabaseTables, event: dict, intent: dict, meta: dict) -> str:
    request_id = meta["transportationRequestId"]
    quote_id = meta["quoteId"]

    if _already_recorded(store, event.get("id")):
        logger.info("payment already recorded event_id=%s; re-applying request updates", event.get("id"))
    else:
        row = store.insert(PAYMENTS, _payment_row(event, intent, meta, payment_status="completed"))
        logger.info("payment recorded payment_id=%s intent_id=%s", row.get("id"), intent.get("id"))

    # Only pre-payment orders move to paid; later or closed states are never reverted.
    updated = store.update(
        TRANSPORTATION_REQUESTS,
        {"status": RequestStatus.PAID.value, "updated_at": datetime.now(timezone.utc).isoformat()},
        eq("id", request_id),
        in_("status", PAYABLE_STATUSES),
    )
    if not updated:
        rows = store.select(TRANSPORTATION_REQUESTS, eq("id", request_id), limit=1, columns="id,status")
        current = rows[0].get("status") if rows else None
        logger.warning(
            "payment succeeded but request not updated request_id=%s status=%s event_id=%s",
            request_id,
            current,
            event.get("id"),
        )
        return "paid"
    logger.info("request paid request_id=%s", request_id)

    try:
        deactivate_sibling_quotes(store, request_id=request_id, keep_quote_id=quote_id)
    except StoreError as e:
        logger.warning("failed to deactivate other quotes request_id=%s: %s", request_id, e)
    return "paid"


def _handle_failed(store: SupabaseTables, event: dict, intent: dict, meta: dict) -> str:
    if _already_recorded(store, event.get("id")):
        logger.info("failed payment already recorded event_id=%s", event.get("id"))
        return "failed"
    row = _payment_row(event, intent, meta, payment_status="failed")
    row["failure_reason"] = (intent.get("last_payment_error") or {}).get("message") or "Unknown error"
    row["metadata"]["failure_reason"] = row["failure_reason"]
    store.insert(PAYMENTS, row)
    logger.info("payment failed intent_id=%s reason=%s", intent.get("id"), row["failure_reason"])
    return "failed"


def reconcile_event(store: SupabaseTables, event: dict) -> str:
    """
    Apply one verified provider event to payments, requests and quotes.

    Returns an outcome tag (`paid`, `failed`, `ignored`). Store errors
    propagate so the caller answers 500 and the provider redelivers.
    """
    kind = event.get("type")
    if kind not in (SUCCEEDED, FAILED):
        logger.info("unhandled event type=%s", kind)
        return "ignored"

    intent = (event.get("data") or {}).get("object") or {}
    meta = intent.get("metadata") or {}
    if not meta.get("transportationRequestId") or not meta.get("quoteId"):
        logger.warning("event without reconciliation metadata event_id=%s intent_id=%s", event.get("id"), intent.get("id"))
        return "ignored"

    if kind == SUCCEEDED:
        return _handle_succeeded(store, event, intent, meta)
    return _handle_failed(store, event, intent, meta)


def list_payments(store: SupabaseTables, *, user_id: str | None = None, request_id: str | None = None) -> list[dict]:
    filters: list[Filter] = []
    if user_id:
        filters.append(eq("user_id", user_id))
    if request_id:
        filters.append(eq("transportation_request_id", request_id))
    return store.select(PAYMENTS, *filters, order="created_at.desc")
