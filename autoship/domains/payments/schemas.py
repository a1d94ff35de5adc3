from pydantic import BaseModel, ConfigDict, Field


class PaymentIntentIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    quote_id: str | None = Field(default=None, alias="quoteId")
    # Minor currency units (cents).
    amount: float | None = None
    metadata: dict[str, str] | None = None


class PaymentIntentOut(BaseModel):
    clientSecret: str
    paymentIntentId: str


class PaymentOut(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    transportation_request_id: str | None = None
    quote_id: str | None = None
    amount: float
    currency: str | None = None
    status: str
    created_at: str | None = None


class PaymentListOut(BaseModel):
    items: list[PaymentOut]
