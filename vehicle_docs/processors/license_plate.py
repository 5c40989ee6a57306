"""
License plate processor.

Plate formats vary too much between states to validate strictly, so only the
character set and length are hard rules. There is no enrichment stage for
plates: validation is the last step before formatting.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from ..exceptions import ExtractionError
from ..models import (
    DocumentKind,
    LicensePlateDraft,
    ModelHint,
    ProcessorMetadata,
    ValidationResult,
)
from ..structured import is_not_found
from .base import DocumentProcessor

logger = logging.getLogger(__name__)


# ─── Constants ───────────────────────────────────────────────────────

US_STATES: frozenset[str] = frozenset({
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
    "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
    "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
    "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
    "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
    "DC", "PR", "GU", "VI", "AS", "MP",
})

CANADIAN_PROVINCES: frozenset[str] = frozenset({
    "AB", "BC", "MB", "NB", "NL", "NS", "NT", "NU", "ON", "PE", "QC", "SK", "YT",
})

KNOWN_REGIONS = US_STATES | CANADIAN_PROVINCES

PLATE_MIN_LENGTH = 2
PLATE_MAX_LENGTH = 8

PROMPT = """\
Read the license plate in this photo.
Reply with the plate characters followed by a space and the 2-letter
state or province code, for example: 7ABC123 CA
If the state is not legible, reply with the plate characters only.
If no license plate is visible, reply with NOT_FOUND.
"""

_PLATE_WITH_STATE = re.compile(r"^(?P<plate>[A-Z0-9][A-Z0-9 \-]*?)\s+(?P<state>[A-Z]{2})$")
_PLATE_TOKEN = re.compile(r"[A-Z0-9]{2,8}")


class LicensePlateProcessor(DocumentProcessor[LicensePlateDraft, LicensePlateDraft]):
    """Read a plate and its issuing state."""

    kind = DocumentKind.LICENSE_PLATE
    metadata = ProcessorMetadata(
        name="License Plate",
        description="Plate number with issuing state or province",
        prompt=PROMPT,
        model_hint=ModelHint(model="gpt-4o", max_tokens=50, temperature=0.0),
    )

    def extract(self, raw: Any) -> LicensePlateDraft:
        if is_not_found(raw):
            raise ExtractionError("No license plate found")

        # Keep letters, digits, spaces and dashes; collapse the rest to spaces
        text = re.sub(r"[^A-Z0-9\-]+", " ", str(raw).upper()).strip()

        match = _PLATE_WITH_STATE.match(text)
        if match:
            plate = _pick_plate(match.group("plate"))
            if plate:
                state = match.group("state")
                return LicensePlateDraft(plate=plate, state=state, country=_country_for(state))

        plate = _pick_plate(text)
        if not plate:
            raise ExtractionError("No license plate found", details={"text": text[:80]})

        logger.info("No 'PLATE STATE' pattern; using plate only: %s", plate)
        return LicensePlateDraft(plate=plate)

    def validate(self, draft: LicensePlateDraft) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []
        plate = draft.plate.strip().upper()

        invalid = sorted(set(re.findall(r"[^A-Z0-9]", plate)))
        if invalid:
            errors.append(
                f"License plate contains invalid characters: {' '.join(repr(c) for c in invalid)}"
            )

        if not PLATE_MIN_LENGTH <= len(plate) <= PLATE_MAX_LENGTH:
            errors.append(
                f"License plate must be {PLATE_MIN_LENGTH}-{PLATE_MAX_LENGTH} "
                f"characters (got {len(plate)})"
            )

        if not draft.state:
            warnings.append("State not detected; add it manually if needed")
        elif draft.state.upper() not in KNOWN_REGIONS:
            warnings.append(f"Unrecognized state/province code '{draft.state}'")

        return ValidationResult(errors=errors, warnings=warnings)

    def enrich(self, draft: LicensePlateDraft) -> LicensePlateDraft:
        return draft.model_copy()

    def format(self, record: LicensePlateDraft) -> str:
        if record.state:
            return f"{record.plate} ({record.state})"
        return record.plate


def _pick_plate(text: str) -> str | None:
    """The whole text if it fits on a plate, else the most plate-like token."""
    compact = re.sub(r"[\s\-]", "", text)
    if PLATE_MIN_LENGTH <= len(compact) <= PLATE_MAX_LENGTH:
        return compact

    tokens = [t.replace("-", "") for t in text.split()]
    tokens = [t for t in tokens if _PLATE_TOKEN.fullmatch(t)]
    if not tokens:
        return None

    # Plates almost always carry a digit; labels ("PLATE", "STATE") do not
    with_digits = [t for t in tokens if any(c.isdigit() for c in t)]
    return (with_digits or tokens)[0]


def _country_for(state: str) -> str | None:
    if state in US_STATES:
        return "US"
    if state in CANADIAN_PROVINCES:
        return "CA"
    return None
