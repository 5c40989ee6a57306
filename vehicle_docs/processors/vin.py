"""
VIN processor.

Extraction is conservative: an exact 17-character run of the VIN alphabet is
trusted as-is, and so is a 17-character window of a longer run when its check
digit holds. Anything else is a near-match and gets flagged as lower quality
so the user is asked to confirm it.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from ..exceptions import ExtractionError
from ..models import (
    CharacterQuality,
    DocumentKind,
    ModelHint,
    ProcessorMetadata,
    ValidationResult,
    VinDraft,
    VinEnriched,
)
from ..structured import is_not_found
from ..vin_checksum import (
    CHECK_DIGIT_INDEX,
    VIN_LENGTH,
    calculate_check_digit,
    decode_model_year,
    forbidden_characters,
    is_check_digit_valid,
    is_vin_format,
    parse_vin_structure,
)
from ..vin_decoder import VinDecoder, safe_decode
from ..wmi import lookup_wmi
from .base import DocumentProcessor

logger = logging.getLogger(__name__)


# ─── Prompt ──────────────────────────────────────────────────────────

PROMPT = """\
You are reading a Vehicle Identification Number (VIN) from a photo.
The VIN is exactly 17 characters: digits and capital letters, never I, O or Q.
It is usually on the driver-side door jamb, the dashboard near the windshield,
or on a title / registration / insurance document.

Reply with ONLY the 17 characters of the VIN, no spaces or punctuation.
If no VIN is visible, reply with NOT_FOUND.
"""


# ─── Patterns ────────────────────────────────────────────────────────

_VIN_CHAR = "[A-HJ-NPR-Z0-9]"
_NOT_AFTER = "(?<![A-HJ-NPR-Z0-9])"
_NOT_BEFORE = "(?![A-HJ-NPR-Z0-9])"

_EXACT_RUN = re.compile(rf"{_NOT_AFTER}{_VIN_CHAR}{{17}}{_NOT_BEFORE}")
_NEAR_RUN = re.compile(rf"{_NOT_AFTER}{_VIN_CHAR}{{15,16}}{_NOT_BEFORE}")
_LONG_RUN = re.compile(rf"{_VIN_CHAR}{{{VIN_LENGTH},}}")
_SEPARATORS = re.compile(r"[\s\-_]+")

_LOCATION_HINTS: tuple[tuple[str, str], ...] = (
    ("DOOR JAMB", "door_jamb"),
    ("DOORJAMB", "door_jamb"),
    ("WINDSHIELD", "windshield"),
    ("DASH", "dashboard"),
    ("REGISTRATION", "registration"),
    ("TITLE", "title"),
    ("INSURANCE", "insurance_card"),
)


class VinProcessor(DocumentProcessor[VinDraft, VinEnriched]):
    """Extract, validate and decode Vehicle Identification Numbers."""

    kind = DocumentKind.VIN
    metadata = ProcessorMetadata(
        name="VIN",
        description="17-character Vehicle Identification Number with check-digit validation and decode",
        prompt=PROMPT,
        model_hint=ModelHint(model="gpt-4o", max_tokens=50, temperature=0.0),
    )

    def __init__(self, vin_decoder: Optional[VinDecoder] = None):
        self._decoder = vin_decoder

    # ── Extract ─────────────────────────────────────────────────────

    def extract(self, raw: Any) -> VinDraft:
        if is_not_found(raw):
            raise ExtractionError("No VIN found")

        text = str(raw).upper()
        compact = _SEPARATORS.sub("", text)
        location = _find_location(text)

        for source in (text, compact):
            match = _EXACT_RUN.search(source)
            if match:
                return VinDraft(
                    vin=match.group(0),
                    location=location,
                    character_quality=CharacterQuality.GOOD,
                )

        # Stripping separators can glue the VIN to neighbouring words
        glued = _find_glued_vin(compact)
        if glued:
            vin, checked = glued
            if not checked:
                logger.warning("VIN %s cut from a longer run; check digit does not confirm it", vin)
            return VinDraft(
                vin=vin,
                location=location,
                character_quality=CharacterQuality.GOOD if checked else CharacterQuality.FAIR,
            )

        # Near-match: OCR dropped a character or two
        for source in (text, compact):
            match = _NEAR_RUN.search(source)
            if match:
                candidate = match.group(0)
                logger.warning(
                    "No exact VIN found; using %d-character near-match %s",
                    len(candidate), candidate,
                )
                return VinDraft(
                    vin=candidate,
                    location=location,
                    character_quality=CharacterQuality.FAIR,
                )

        raise ExtractionError("No VIN found", details={"raw_length": len(text)})

    # ── Validate ────────────────────────────────────────────────────

    def validate(self, draft: VinDraft) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []
        vin = draft.vin.strip().upper()

        if len(vin) != VIN_LENGTH:
            errors.append(f"VIN must be exactly {VIN_LENGTH} characters (got {len(vin)})")

        bad_chars = forbidden_characters(vin)
        if bad_chars:
            errors.append(
                f"VIN contains invalid characters: {', '.join(bad_chars)} "
                f"(I, O and Q are never used in VINs)"
            )

        if not errors and not is_vin_format(vin):
            errors.append("VIN contains characters outside the VIN alphabet (A-Z, 0-9)")

        if not errors:
            expected = calculate_check_digit(vin)
            actual = vin[CHECK_DIGIT_INDEX]
            if expected != actual:
                # OCR noise is the usual cause, so this does not block
                warnings.append(
                    f"Check digit mismatch: expected '{expected}', got '{actual}'. "
                    f"The VIN may have been misread; please verify it."
                )

        if draft.character_quality in (CharacterQuality.FAIR, CharacterQuality.POOR):
            warnings.append(
                f"Image quality was {draft.character_quality.value}; "
                f"please confirm the VIN manually"
            )

        return ValidationResult(errors=errors, warnings=warnings)

    # ── Enrich ──────────────────────────────────────────────────────

    def enrich(self, draft: VinDraft) -> VinEnriched:
        vin = draft.vin.strip().upper()
        spec = safe_decode(self._decoder, vin)
        structure = parse_vin_structure(vin)
        derived = {
            "check_digit_valid": is_check_digit_valid(vin),
            "structure": structure,
            "model_year_candidates": decode_model_year(structure.model_year_code) if structure else [],
        }

        if spec.error:
            logger.info("VIN decode failed for %s: %s", vin, spec.error)
            wmi = lookup_wmi(vin)
            return VinEnriched(
                **draft.model_dump(),
                **derived,
                manufacturer=wmi.manufacturer if wmi else None,
                plant_country=wmi.country if wmi else None,
                validated=False,
                error=spec.error,
            )

        decoded = spec.model_dump(exclude={"error"}, exclude_none=True)
        return VinEnriched(**draft.model_dump(), **decoded, **derived, validated=True)

    # ── Format ──────────────────────────────────────────────────────

    def format(self, record: VinDraft) -> str:
        make = getattr(record, "make", None)
        model = getattr(record, "model", None)
        if not (make and model):
            return record.vin

        parts = [getattr(record, "year", None), make, model, getattr(record, "trim", None)]
        return " ".join(str(p) for p in parts if p)


# ─── Internal Helpers ────────────────────────────────────────────────


def _find_glued_vin(compact: str) -> tuple[str, bool] | None:
    """First 17-character window of an over-long run, preferring one whose check digit holds.

    Returns (vin, check_digit_confirmed), or None when no run reaches 17 characters.
    """
    runs = [m.group(0) for m in _LONG_RUN.finditer(compact)]
    for run in runs:
        for start in range(len(run) - VIN_LENGTH + 1):
            window = run[start : start + VIN_LENGTH]
            if is_check_digit_valid(window):
                return window, True
    # Unconfirmed: keeps the first 17 characters, so extra LEADING noise truncates wrongly
    if runs:
        return runs[0][:VIN_LENGTH], False
    return None


def _find_location(text: str) -> str | None:
    for hint, location in _LOCATION_HINTS:
        if hint in text:
            return location
    return None
