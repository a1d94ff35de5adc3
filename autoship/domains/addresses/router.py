import logging

from fastapi import APIRouter, Query

from autoship.domains.addresses.schemas import AutocompleteOut, PlaceResultOut
from autoship.domains.addresses.service import MapsUnavailable, autocomplete, geocode_address, place_details

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/addresses")

# Every route answers 200; "manual" tells the form to accept plain text.


@router.get("/autocomplete", response_model=AutocompleteOut)
def autocomplete_route(input: str = Query(min_length=1, max_length=256)) -> AutocompleteOut:
    try:
        predictions = autocomplete(input)
    except MapsUnavailable as e:
        logger.info("address autocomplete degraded to manual: %s", e)
        return AutocompleteOut(mode="manual")
    return AutocompleteOut(mode="autocomplete", predictions=predictions)


@router.get("/place/{place_id}", response_model=PlaceResultOut)
def place_route(place_id: str) -> PlaceResultOut:
    try:
        place = place_details(place_id)
    except MapsUnavailable as e:
        logger.info("place details degraded to manual: %s", e)
        return PlaceResultOut(mode="manual")
    return PlaceResultOut(mode="autocomplete", place=place)


@router.get("/geocode", response_model=PlaceResultOut)
def geocode_route(address: str = Query(min_length=1, max_length=512)) -> PlaceResultOut:
    try:
        place = geocode_address(address)
    except MapsUnavailable as e:
        logger.info("geocode degraded to manual: %s", e)
        return PlaceResultOut(mode="manual")
    return PlaceResultOut(mode="autocomplete", place=place)
