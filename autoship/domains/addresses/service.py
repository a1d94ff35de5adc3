import logging
import time
from typing import Callable

import requests

from autoship.core.config import settings

logger = logging.getLogger(__name__)

# (component type, which name to keep)
COMPONENT_FIELDS: list[tuple[str, str]] = [
    ("street_number", "long_name"),
    ("route", "long_name"),
    ("locality", "long_name"),
    ("administrative_area_level_1", "short_name"),
    ("postal_code", "long_name"),
    ("country", "long_name"),
]

# Provider statuses worth another attempt.
TRANSIENT_STATUSES = {"UNKNOWN_ERROR", "OVER_QUERY_LIMIT"}
EMPTY_STATUSES = {"ZERO_RESULTS", "NOT_FOUND"}


class MapsUnavailable(Exception):
    """Maps service not configured, rejecting us, or still failing after retries."""


def normalize_address_components(components: list[dict] | None) -> dict:
    out: dict[str, str | None] = {name: None for name, _ in COMPONENT_FIELDS}
    for comp in components or []:
        types = comp.get("types") or []
        for name, which in COMPONENT_FIELDS:
            if name in types and out[name] is None:
                out[name] = comp.get(which) or comp.get("long_name")
                break
    return out


def _place_shape(result: dict) -> dict:
    location = ((result.get("geometry") or {}).get("location")) or {}
    return {
        "place_id": result.get("place_id"),
        "formatted_address": result.get("formatted_address"),
        "lat": location.get("lat"),
        "lng": location.get("lng"),
        "components": normalize_address_components(result.get("address_components")),
    }


def _call(
    endpoint: str,
    params: dict,
    *,
    http: requests.Session | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    """
    GET a maps web-service endpoint, retrying transient failures.

    Returns the decoded body for OK and empty statuses; raises MapsUnavailable
    otherwise so callers can fall back to manual entry.
    """
    if not settings.google_maps_api_key:
        raise MapsUnavailable("maps api key not configured")

    url = f"{settings.maps_api_url}/{endpoint}/json"
    query = {**params, "key": settings.google_maps_api_key}
    client = http or requests
    attempts = max(1, settings.maps_max_attempts)
    last_error = ""
    for attempt in range(1, attempts + 1):
        try:
            resp = client.get(url, params=query, timeout=settings.http_timeout_seconds)
            data = resp.json() if resp.status_code // 100 == 2 else {"status": "UNKNOWN_ERROR"}
        except (requests.RequestException, ValueError) as e:
            data = {"status": "UNKNOWN_ERROR"}
            last_error = str(e)

        st = data.get("status")
        if st == "OK" or st in EMPTY_STATUSES:
            return data
        if st not in TRANSIENT_STATUSES:
            logger.warning("maps %s rejected status=%s error=%s", endpoint, st, data.get("error_message"))
            raise MapsUnavailable(f"{endpoint}: {st}")

        last_error = last_error or st
        if attempt < attempts:
            sleep(settings.maps_retry_interval_seconds)

    logger.warning("maps %s unavailable after %s attempts: %s", endpoint, attempts, last_error)
    raise MapsUnavailable(f"{endpoint}: {last_error}")


def geocode_address(address: str, **kw) -> dict | None:
    data = _call("geocode", {"address": address}, **kw)
    results = data.get("results") or []
    return _place_shape(results[0]) if results else None


def autocomplete(text: str, **kw) -> list[dict]:
    data = _call("place/autocomplete", {"input": text, "types": "address", "components": "country:us"}, **kw)
    return [
        {"description": p.get("description"), "place_id": p.get("place_id")}
        for p in data.get("predictions") or []
    ]


def place_details(place_id: str, **kw) -> dict | None:
    data = _call(
        "place/details",
        {"place_id": place_id, "fields": "address_components,formatted_address,geometry,place_id"},
        **kw,
    )
    result = data.get("result")
    if not result:
        return None
    shaped = _place_shape(result)
    shaped["place_id"] = shaped["place_id"] or place_id
    return shaped
