from pydantic import BaseModel, ConfigDict, Field


class QuoteCreateIn(BaseModel):
    base_price: float = Field(gt=0)
    fuel_surcharge: float = Field(default=0, ge=0)
    additional_fees: float = Field(default=0, ge=0)
    estimated_pickup_date: str | None = None
    estimated_delivery_date: str | None = None
    terms_and_conditions: str | None = Field(default=None, max_length=8000)
    notes: str | None = Field(default=None, max_length=4000)
    expires_at: str | None = None


class QuoteOut(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    transportation_request_id: str
    admin_id: str | None = None
    base_price: float | None = None
    fuel_surcharge: float | None = None
    additional_fees: float | None = None
    total_amount: float
    is_active: bool
    expires_at: str | None = None
    created_at: str | None = None


class QuoteListOut(BaseModel):
    items: list[QuoteOut]
