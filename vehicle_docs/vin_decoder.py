"""
VIN decode collaborator.

The processors only need ``decode(vin) -> VehicleSpec | dict``. Any callable
with that shape works (tests inject stubs). ``NhtsaVinDecoder`` is the real
implementation against the free NHTSA vPIC API.

Contract: a decoder never raises for an unknown VIN, it returns
``VehicleSpec(error=...)``. ``safe_decode`` enforces that contract even for
decoders that do raise.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Optional, Union

import httpx
from pydantic import ValidationError

from .models import VehicleSpec
from .structured import normalize_keys

logger = logging.getLogger(__name__)

VinDecoder = Callable[[str], Union[VehicleSpec, dict[str, Any]]]

NHTSA_BASE_URL = "https://vpic.nhtsa.dot.gov/api"
DEFAULT_CACHE_TTL_SECONDS = 24 * 3600.0
DEFAULT_CACHE_SIZE = 256

# Values vPIC uses to mean "nothing here"
_EMPTY_VALUES = frozenset({"", "NOT APPLICABLE", "NULL"})

# Trim can live in any of these, depending on the manufacturer
_TRIM_FIELDS = ("Trim", "Trim2", "Series", "Series2", "Cab Type")

# Generic vehicle categories that show up in trim fields but are not trims
_NOT_A_TRIM = frozenset({
    "TRUCK", "PASSENGER CAR", "MPV", "SUV", "SEDAN", "COUPE", "WAGON",
    "HATCHBACK", "VAN", "BUS", "TRAILER", "MOTORCYCLE", "INCOMPLETE VEHICLE",
})


def safe_decode(decoder: Optional[VinDecoder], vin: str) -> VehicleSpec:
    """Call ``decoder`` and always come back with a VehicleSpec."""
    if decoder is None:
        return VehicleSpec(error="No VIN decoder configured")

    try:
        result = decoder(vin)
    except Exception as e:  # noqa: BLE001 - any decoder failure degrades to an error note
        logger.warning("VIN decode raised for %s: %s", vin, e)
        return VehicleSpec(error=str(e) or type(e).__name__)

    if isinstance(result, VehicleSpec):
        return result
    if isinstance(result, dict):
        try:
            return VehicleSpec.model_validate(normalize_keys(result))
        except ValidationError as e:
            logger.warning("VIN decode returned an unexpected payload for %s: %s", vin, e)
            return VehicleSpec(error=f"Unexpected VIN decode payload ({e.error_count()} invalid field(s))")

    return VehicleSpec(error=f"Unexpected VIN decode result: {type(result).__name__}")


class VinCache:
    """Bounded TTL cache of successful decodes, least recently used evicted first."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        max_size: int = DEFAULT_CACHE_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._max_size = max_size
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, VehicleSpec]] = OrderedDict()

    def get(self, vin: str) -> VehicleSpec | None:
        entry = self._entries.get(vin)
        if entry is None:
            return None
        expires_at, spec = entry
        if self._clock() >= expires_at:
            del self._entries[vin]
            return None
        self._entries.move_to_end(vin)
        return spec

    def put(self, vin: str, spec: VehicleSpec) -> None:
        if self._max_size <= 0 or self._ttl_seconds <= 0:
            return
        self._entries[vin] = (self._clock() + self._ttl_seconds, spec)
        self._entries.move_to_end(vin)
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class NhtsaVinDecoder:
    """Decode VINs with the NHTSA ``DecodeVinExtended`` endpoint (sync httpx)."""

    def __init__(
        self,
        base_url: str = NHTSA_BASE_URL,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
        cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        cache_size: int = DEFAULT_CACHE_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._base_url = base_url
        self._timeout_seconds = timeout_seconds
        self._transport = transport
        self._cache = VinCache(cache_ttl_seconds, cache_size, clock)

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self._base_url,
            timeout=self._timeout_seconds,
            headers={"User-Agent": "vehicle-docs/1.0"},
            transport=self._transport,
        )

    def __call__(self, vin: str) -> VehicleSpec:
        vin = vin.strip().upper()
        cached = self._cache.get(vin)
        if cached is not None:
            logger.debug("VIN %s served from cache", vin)
            return cached

        spec = self._fetch(vin)
        if spec.error is None:
            self._cache.put(vin, spec)
        return spec

    def _fetch(self, vin: str) -> VehicleSpec:
        logger.info("Decoding VIN %s via NHTSA", vin)
        try:
            with self._client() as client:
                resp = client.get(
                    f"/vehicles/DecodeVinExtended/{vin}", params={"format": "json"}
                )
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPError as e:
            logger.error("NHTSA request failed for %s: %s", vin, e)
            return VehicleSpec(error=f"NHTSA request failed: {e}")
        except ValueError as e:
            logger.error("NHTSA returned invalid JSON for %s: %s", vin, e)
            return VehicleSpec(error="NHTSA returned invalid JSON")

        return parse_nhtsa_results(payload)


def parse_nhtsa_results(payload: Any) -> VehicleSpec:
    """Turn a vPIC ``{"Results": [{"Variable", "Value"}, ...]}`` payload into a VehicleSpec."""
    results = payload.get("Results") if isinstance(payload, dict) else None
    if not isinstance(results, list):
        return VehicleSpec(error="NHTSA response has no Results")

    values: dict[str, str] = {}
    for item in results:
        if not isinstance(item, dict):
            continue
        variable = item.get("Variable")
        value = item.get("Value")
        if variable and value is not None and str(value).strip().upper() not in _EMPTY_VALUES:
            values[str(variable)] = str(value).strip()

    year = _to_int(values.get("Model Year"))
    make = values.get("Make")
    model = values.get("Model")

    if not (year and make and model):
        error_text = values.get("Error Text", "")
        logger.info("Incomplete NHTSA decode: %s", error_text)
        return VehicleSpec(error="Could not decode VIN: NHTSA returned incomplete data")

    return VehicleSpec(
        make=make.title(),
        model=model,
        year=year,
        trim=_extract_trim(values),
        body_type=values.get("Body Class"),
        engine=_describe_engine(values),
        fuel_type=values.get("Fuel Type - Primary"),
        transmission=values.get("Transmission Style"),
        drive_type=values.get("Drive Type"),
        manufacturer=values.get("Manufacturer Name"),
        plant_country=values.get("Plant Country"),
    )


# ─── Internal Helpers ────────────────────────────────────────────────


def _extract_trim(values: dict[str, str]) -> str | None:
    parts: list[str] = []
    for field in _TRIM_FIELDS:
        value = values.get(field)
        if value and value.upper() not in _NOT_A_TRIM and value not in parts:
            parts.append(value)
    return " ".join(parts) if parts else None


def _describe_engine(values: dict[str, str]) -> str | None:
    if values.get("Engine Model"):
        return values["Engine Model"]

    displacement = values.get("Displacement (L)")
    cylinders = values.get("Engine Number of Cylinders")
    parts = []
    if displacement:
        try:
            parts.append(f"{float(displacement):.1f}L")
        except ValueError:
            parts.append(f"{displacement}L")
    if cylinders:
        parts.append(f"{cylinders}-cylinder")
    return " ".join(parts) or None


def _to_int(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None
