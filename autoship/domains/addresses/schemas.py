from typing import Literal

from pydantic import BaseModel

Mode = Literal["autocomplete", "manual"]


class AddressComponentsOut(BaseModel):
    street_number: str | None = None
    route: str | None = None
    locality: str | None = None
    administrative_area_level_1: str | None = None
    postal_code: str | None = None
    country: str | None = None


class PlaceOut(BaseModel):
    place_id: str | None = None
    formatted_address: str | None = None
    lat: float | None = None
    lng: float | None = None
    components: AddressComponentsOut


class PredictionOut(BaseModel):
    description: str | None = None
    place_id: str | None = None


class AutocompleteOut(BaseModel):
    mode: Mode
    predictions: list[PredictionOut] = []


class PlaceResultOut(BaseModel):
    mode: Mode
    place: PlaceOut | None = None
