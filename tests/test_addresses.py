import pytest
import requests

from autoship.core.config import settings
from autoship.domains.addresses.service import (
    MapsUnavailable,
    autocomplete,
    geocode_address,
    normalize_address_components,
    place_details,
)

COMPONENTS = [
    {"long_name": "1600", "short_name": "1600", "types": ["street_number"]},
    {"long_name": "Amphitheatre Parkway", "short_name": "Amphitheatre Pkwy", "types": ["route"]},
    {"long_name": "Mountain View", "short_name": "Mountain View", "types": ["locality", "political"]},
    {"long_name": "California", "short_name": "CA", "types": ["administrative_area_level_1", "political"]},
    {"long_name": "94043", "short_name": "94043", "types": ["postal_code"]},
    {"long_name": "United States", "short_name": "US", "types": ["country", "political"]},
]


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        return self._payload


class FakeHttp:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


@pytest.fixture(autouse=True)
def maps_key(monkeypatch):
    monkeypatch.setattr(settings, "google_maps_api_key", "test-key")
    monkeypatch.setattr(settings, "maps_max_attempts", 3)


def test_normalize_components():
    assert normalize_address_components(COMPONENTS) == {
        "street_number": "1600",
        "route": "Amphitheatre Parkway",
        "locality": "Mountain View",
        "administrative_area_level_1": "CA",
        "postal_code": "94043",
        "country": "United States",
    }
    assert normalize_address_components(None)["route"] is None


def test_geocode_shapes_result():
    http = FakeHttp(
        FakeResponse(
            {
                "status": "OK",
                "results": [
                    {
                        "place_id": "p1",
                        "formatted_address": "1600 Amphitheatre Pkwy, Mountain View, CA 94043, USA",
                        "geometry": {"location": {"lat": 37.42, "lng": -122.08}},
                        "address_components": COMPONENTS,
                    }
                ],
            }
        )
    )
    place = geocode_address("1600 Amphitheatre", http=http)
    assert place["lat"] == 37.42
    assert place["components"]["postal_code"] == "94043"
    assert http.calls[0][1]["key"] == "test-key"


def test_autocomplete_is_us_addresses_only():
    http = FakeHttp(FakeResponse({"status": "OK", "predictions": [{"description": "1 Main St", "place_id": "p"}]}))
    assert autocomplete("1 Main", http=http) == [{"description": "1 Main St", "place_id": "p"}]
    params = http.calls[0][1]
    assert params["components"] == "country:us"
    assert params["types"] == "address"


def test_transient_errors_are_retried():
    sleeps = []
    http = FakeHttp(
        requests.ConnectionError("reset"),
        FakeResponse({"status": "UNKNOWN_ERROR"}),
        FakeResponse({"status": "OK", "result": {"address_components": COMPONENTS}}),
    )
    place = place_details("p9", http=http, sleep=sleeps.append)
    assert place["place_id"] == "p9"
    assert len(http.calls) == 3
    assert sleeps == [settings.maps_retry_interval_seconds] * 2


def test_exhausted_retries_and_hard_errors_raise():
    http = FakeHttp(*[FakeResponse({"status": "UNKNOWN_ERROR"})] * 3)
    with pytest.raises(MapsUnavailable):
        geocode_address("x", http=http, sleep=lambda s: None)

    with pytest.raises(MapsUnavailable):
        geocode_address("x", http=FakeHttp(FakeResponse({"status": "REQUEST_DENIED"})), sleep=lambda s: None)


def test_zero_results_is_not_an_error():
    assert geocode_address("nowhere", http=FakeHttp(FakeResponse({"status": "ZERO_RESULTS", "results": []}))) is None


def test_routes_degrade_to_manual_entry(client, monkeypatch):
    monkeypatch.setattr(settings, "google_maps_api_key", None)
    for path, params in [
        ("/addresses/autocomplete", {"input": "1 Main"}),
        ("/addresses/geocode", {"address": "1 Main"}),
        ("/addresses/place/p1", None),
    ]:
        r = client.get(path, params=params)
        assert r.status_code == 200
        assert r.json()["mode"] == "manual"


def test_autocomplete_route(client, monkeypatch):
    monkeypatch.setattr(
        "autoship.domains.addresses.router.autocomplete",
        lambda text: [{"description": f"{text} St", "place_id": "p"}],
    )
    body = client.get("/addresses/autocomplete", params={"input": "1 Main"}).json()
    assert body == {"mode": "autocomplete", "predictions": [{"description": "1 Main St", "place_id": "p"}]}
