import logging
import re
from dataclasses import dataclass, field
from typing import Callable
from urllib.parse import quote

import requests

from autoship.core.config import settings

logger = logging.getLogger(__name__)

# I, O and Q are not legal VIN characters, but plenty of real-world entries carry
# them; the decoder is the authority on those.
_VIN_RE = re.compile(r"^[A-Z0-9]{17}$")

# NHTSA error codes that make a VIN unusable. Everything else is a warning.
SERIOUS_ERROR_CODES = frozenset({"5", "6", "7", "8"})


@dataclass
class VehicleInfo:
    vin: str
    make: str = ""
    model: str = ""
    year: int = 0
    body_class: str | None = None
    vehicle_type: str | None = None
    fuel_type: str | None = None
    engine_info: str | None = None
    valid: bool = False
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def is_valid_vin_format(vin: str) -> bool:
    return bool(_VIN_RE.match((vin or "").upper()))


def _invalid(vin: str, message: str) -> VehicleInfo:
    return VehicleInfo(vin=vin, valid=False, errors=[message])


def _to_year(value: str | None) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return 0


def parse_decode_results(vin: str, results: list[dict]) -> VehicleInfo:
    """Fold the decoder's `[{Variable, Value}, ...]` list into a VehicleInfo."""
    info = VehicleInfo(vin=vin.upper())
    for item in results:
        variable = item.get("Variable")
        value = item.get("Value") or ""
        if variable == "Make":
            info.make = value
        elif variable == "Model":
            info.model = value
        elif variable == "Model Year":
            info.year = _to_year(value)
        elif variable == "Body Class":
            info.body_class = value
        elif variable == "Vehicle Type":
            info.vehicle_type = value
        elif variable == "Fuel Type - Primary":
            info.fuel_type = value
        elif variable == "Engine Model":
            info.engine_info = value
        elif variable == "Error Code":
            if value and value != "0":
                for code in (c.strip() for c in value.split(",")):
                    if code in SERIOUS_ERROR_CODES:
                        info.errors.append(f"Serious validation error: {code}")
        elif variable == "Error Text":
            if value.strip():
                info.warnings.append(value.strip())

    if info.make and info.model and info.year > 0:
        info.valid = not info.errors
    else:
        info.valid = False
        if not info.make:
            info.errors.append("Vehicle make not found")
        if not info.model:
            info.errors.append("Vehicle model not found")
        if not info.year:
            info.errors.append("Vehicle year not found")
    return info


def decode_vin(vin: str, *, http: requests.Session | None = None) -> VehicleInfo:
    candidate = (vin or "").strip()
    if not is_valid_vin_format(candidate):
        return _invalid(candidate, "Invalid VIN format. VIN must be 17 characters.")

    client = http or requests
    url = f"{settings.nhtsa_api_url}/vehicles/DecodeVin/{candidate.upper()}"
    try:
        resp = client.get(url, params={"format": "json"}, timeout=settings.http_timeout_seconds)
        if resp.status_code // 100 != 2:
            raise RuntimeError(f"NHTSA API error: {resp.status_code}")
        data = resp.json()
    except (requests.RequestException, RuntimeError, ValueError) as e:
        logger.warning("NHTSA decode failed vin=%s: %s", candidate, e)
        return _invalid(candidate, "Failed to validate VIN. Please try again later.")

    results = data.get("Results") or []
    if not results:
        return _invalid(candidate, "No vehicle data found for this VIN")

    info = parse_decode_results(candidate, results)
    if info.warnings and info.valid:
        logger.info("VIN validated with warnings vin=%s warnings=%s", info.vin, info.warnings)
    return info


def batch_decode_vins(vins: list[str], *, decoder: Callable[[str], VehicleInfo] | None = None) -> list[VehicleInfo]:
    # One call per VIN keeps a single bad VIN from failing the whole batch.
    decode = decoder or decode_vin
    return [decode(v) for v in vins]


def get_vehicle_makes(*, http: requests.Session | None = None) -> list[str]:
    client = http or requests
    try:
        resp = client.get(
            f"{settings.nhtsa_api_url}/vehicles/GetMakesForVehicleType/car",
            params={"format": "json"},
            timeout=settings.http_timeout_seconds,
        )
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("NHTSA makes lookup failed: %s", e)
        return []
    return sorted(r["MakeName"] for r in data.get("Results") or [] if r.get("MakeName"))


def get_models_for_make_year(make: str, year: int, *, http: requests.Session | None = None) -> list[str]:
    client = http or requests
    url = f"{settings.nhtsa_api_url}/vehicles/GetModelsForMakeYear/make/{quote(make)}/modelyear/{year}"
    try:
        resp = client.get(url, params={"format": "json"}, timeout=settings.http_timeout_seconds)
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("NHTSA models lookup failed make=%s year=%s: %s", make, year, e)
        return []
    return sorted(r["Model_Name"] for r in data.get("Results") or [] if r.get("Model_Name"))
