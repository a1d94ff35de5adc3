from pydantic import BaseModel, Field


class VehicleInfoOut(BaseModel):
    vin: str
    make: str
    model: str
    year: int
    body_class: str | None = None
    vehicle_type: str | None = None
    fuel_type: str | None = None
    engine_info: str | None = None
    valid: bool
    errors: list[str] = []
    warnings: list[str] = []


class BatchDecodeIn(BaseModel):
    vins: list[str] = Field(min_length=1, max_length=50)


class BatchDecodeOut(BaseModel):
    items: list[VehicleInfoOut]


class NameListOut(BaseModel):
    items: list[str]
