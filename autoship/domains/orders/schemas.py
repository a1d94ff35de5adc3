from pydantic import BaseModel, ConfigDict, Field, field_validator

from autoship.domains.vehicles.service import is_valid_vin_format


class TransportRequestCreateIn(BaseModel):
    pickup_company_name: str = Field(min_length=1, max_length=256)
    pickup_company_address: str = Field(min_length=1, max_length=512)
    pickup_company_lat: float | None = None
    pickup_company_lng: float | None = None
    pickup_contact_name: str = Field(min_length=1, max_length=256)
    pickup_contact_phone: str = Field(min_length=7, max_length=32)

    delivery_company_name: str = Field(min_length=1, max_length=256)
    delivery_company_address: str = Field(min_length=1, max_length=512)
    delivery_company_lat: float | None = None
    delivery_company_lng: float | None = None
    delivery_contact_name: str = Field(min_length=1, max_length=256)
    delivery_contact_phone: str = Field(min_length=7, max_length=32)

    vin_number: str
    vehicle_make: str | None = Field(default=None, max_length=128)
    vehicle_model: str | None = Field(default=None, max_length=128)
    vehicle_year: int | None = Field(default=None, ge=1900, le=2100)
    notes: str | None = Field(default=None, max_length=4000)

    @field_validator("vin_number")
    @classmethod
    def _vin_format(cls, v: str) -> str:
        v = (v or "").strip().upper()
        if not is_valid_vin_format(v):
            raise ValueError("Invalid VIN format. VIN must be 17 characters.")
        return v


class TransportRequestOut(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    order_number: str
    user_id: str
    status: str
    assigned_admin_id: str | None = None
    vin_number: str | None = None
    vehicle_make: str | None = None
    vehicle_model: str | None = None
    vehicle_year: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


class TransportRequestListOut(BaseModel):
    items: list[TransportRequestOut]


class ProgressStepOut(BaseModel):
    code: str
    label: str
    completed: bool
    current: bool


class TimelineEntryOut(BaseModel):
    code: str
    message: str
    at: str | None = None


class TrackingOut(BaseModel):
    order_number: str
    status: str
    status_label: str
    is_terminal: bool
    pickup_company_name: str | None = None
    pickup_company_address: str | None = None
    delivery_company_name: str | None = None
    delivery_company_address: str | None = None
    vehicle: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    steps: list[ProgressStepOut]
    timeline: list[TimelineEntryOut]
