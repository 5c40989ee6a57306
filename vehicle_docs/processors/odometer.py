"""
Odometer processor.

Readings are normalized to both miles and kilometers so mileage buckets are
always computed in miles, whatever the dashboard shows.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any

from ..exceptions import ExtractionError
from ..models import (
    DocumentKind,
    MileageCategory,
    ModelHint,
    OdometerDraft,
    OdometerEnriched,
    OdometerUnit,
    ProcessorMetadata,
    ValidationResult,
)
from ..structured import is_not_found
from .base import DocumentProcessor

logger = logging.getLogger(__name__)

# ─── Constants ───────────────────────────────────────────────────────

KM_PER_MILE = 1.60934

MAX_PLAUSIBLE_READING = 1_000_000
EXTREME_MILES = 500_000
VERY_LOW_MILES = 100
ROLLOVER_DIGITS = 6
ROLLOVER_READING = 10_000

# (upper bound in miles, category); the last bucket is open-ended
_MILEAGE_BUCKETS: tuple[tuple[int, MileageCategory], ...] = (
    (30_000, MileageCategory.LOW),
    (75_000, MileageCategory.MEDIUM),
    (150_000, MileageCategory.HIGH),
)

_NUMBER = r"\d{1,3}(?:[.,]\d{3})+|\d+"
_READING_WITH_UNIT = re.compile(
    rf"(?P<digits>{_NUMBER})(?:\.(?P<tenths>\d))?\s*"
    r"(?P<unit>MILES|MILE|MI|KILOMETERS|KILOMETRES|KMS|KM)\b"
)
_BARE_READING = re.compile(rf"(?P<digits>{_NUMBER})")

_KILOMETER_WORDS = frozenset({"KILOMETERS", "KILOMETRES", "KMS", "KM"})

PROMPT = """\
Read the odometer (total distance, not the trip meter) in this dashboard photo.
Reply with the reading and its unit, for example: 45123 miles  or  72345 km
Note DIGITAL or ANALOG if you can tell which display it is.
If no odometer is visible, reply with NOT_FOUND.
"""


class OdometerProcessor(DocumentProcessor[OdometerDraft, OdometerEnriched]):
    """Total-distance reading from the instrument cluster."""

    kind = DocumentKind.ODOMETER
    metadata = ProcessorMetadata(
        name="Odometer",
        description="Odometer reading with unit conversion and mileage category",
        prompt=PROMPT,
        model_hint=ModelHint(model="gpt-4o", max_tokens=100, temperature=0.0),
    )

    def extract(self, raw: Any) -> OdometerDraft:
        if is_not_found(raw):
            raise ExtractionError("No odometer reading found")

        text = str(raw).upper()
        is_digital = _detect_display(text)

        match = _READING_WITH_UNIT.search(text)
        if match:
            digits = re.sub(r"[.,]", "", match.group("digits"))
            unit = (
                OdometerUnit.KILOMETERS
                if match.group("unit") in _KILOMETER_WORDS
                else OdometerUnit.MILES
            )
            return OdometerDraft(
                reading=int(digits),
                unit=unit,
                digit_count=len(digits),
                is_digital=is_digital,
            )

        match = _BARE_READING.search(text)
        if not match:
            raise ExtractionError("No odometer reading found", details={"text": text[:80]})

        digits = re.sub(r"[.,]", "", match.group("digits"))
        logger.warning("Odometer unit not found in %r; assuming miles", text[:80])
        return OdometerDraft(
            reading=int(digits),
            unit=OdometerUnit.MILES,
            digit_count=len(digits),
            is_digital=is_digital,
            unit_assumed=True,
        )

    def validate(self, draft: OdometerDraft) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []

        # Zero is a real reading, so check for None explicitly
        if draft.reading is None:
            errors.append("Odometer reading is missing")
            return ValidationResult(errors=errors, warnings=warnings)

        reading = draft.reading
        if reading < 0:
            errors.append(f"Odometer reading cannot be negative (got {reading})")
            return ValidationResult(errors=errors, warnings=warnings)

        if reading > MAX_PLAUSIBLE_READING:
            warnings.append(f"Reading of {reading:,} exceeds {MAX_PLAUSIBLE_READING:,}; please verify")

        if draft.digit_count == ROLLOVER_DIGITS and reading < ROLLOVER_READING:
            warnings.append(
                f"6-digit display shows only {reading:,}; possible rollover or misread"
            )

        miles = to_miles(reading, draft.unit)
        if miles > EXTREME_MILES:
            warnings.append(f"Mileage is extremely high ({miles:,} miles); verify the reading")
        elif miles < VERY_LOW_MILES:
            warnings.append(
                f"Mileage is very low ({miles:,} miles); may be a new vehicle or a misread"
            )

        return ValidationResult(errors=errors, warnings=warnings)

    def enrich(self, draft: OdometerDraft) -> OdometerEnriched:
        reading = draft.reading or 0
        miles = to_miles(reading, draft.unit)
        kilometers = to_kilometers(reading, draft.unit)

        return OdometerEnriched(
            **draft.model_dump(),
            estimated_miles=miles,
            estimated_kilometers=kilometers,
            display=_display(reading, draft.unit),
            mileage_category=categorize_mileage(miles),
        )

    def format(self, record: OdometerDraft) -> str:
        display = getattr(record, "display", None)
        if display:
            return display
        if record.reading is None:
            return "Unknown reading"
        return _display(record.reading, record.unit)


# ─── Conversions ─────────────────────────────────────────────────────


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def to_miles(reading: int, unit: OdometerUnit) -> int:
    if unit == OdometerUnit.KILOMETERS:
        return round_half_up(reading / KM_PER_MILE)
    return reading


def to_kilometers(reading: int, unit: OdometerUnit) -> int:
    if unit == OdometerUnit.MILES:
        return round_half_up(reading * KM_PER_MILE)
    return reading


def categorize_mileage(miles: int) -> MileageCategory:
    """Buckets are inclusive at the low end: exactly 30,000 is MEDIUM."""
    for upper, category in _MILEAGE_BUCKETS:
        if miles < upper:
            return category
    return MileageCategory.VERY_HIGH


# ─── Internal Helpers ────────────────────────────────────────────────


def _display(reading: int, unit: OdometerUnit) -> str:
    return f"{reading:,} {unit.value}"


def _detect_display(text: str) -> bool | None:
    if "DIGITAL" in text or "LCD" in text:
        return True
    if "ANALOG" in text or "MECHANICAL" in text:
        return False
    return None
