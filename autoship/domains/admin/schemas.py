from pydantic import BaseModel, ConfigDict

from autoship.domains.attachments.schemas import AttachmentOut
from autoship.domains.orders.models import RequestStatus
from autoship.domains.orders.schemas import TransportRequestOut
from autoship.domains.payments.schemas import PaymentOut
from autoship.domains.quotes.schemas import QuoteOut


class StatusUpdateIn(BaseModel):
    status: RequestStatus


class AdminOrderDetailOut(BaseModel):
    request: TransportRequestOut
    status_label: str
    customer: dict | None = None
    quotes: list[QuoteOut]
    attachments: list[AttachmentOut]
    payments: list[PaymentOut]


class AdminStatsOut(BaseModel):
    total_requests: int
    new_requests: int
    my_assigned_requests: int
    completed_requests: int
    active_requests: int


class SearchHitOut(BaseModel):
    request: TransportRequestOut
    score: float
    matched_fields: list[str]


class SearchResultsOut(BaseModel):
    items: list[SearchHitOut]


class CustomerOut(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    email: str | None = None
    full_name: str | None = None
    company_name: str | None = None
    request_count: int


class CustomerListOut(BaseModel):
    items: list[CustomerOut]
