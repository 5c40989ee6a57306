"""
Insurance card processor.

Policy dates drive most of the rules: an inverted range is an error, an
expired or not-yet-effective policy is only a warning (the card is still the
card). If the card carries a VIN, enrichment tries to decode it and attach
the vehicle; a failed decode is tolerated silently.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, Optional

from ..dates import days_until, parse_date
from ..models import (
    DocumentKind,
    InsuranceDraft,
    InsuranceEnriched,
    ModelHint,
    ProcessorMetadata,
    ValidationResult,
    VinDraft,
)
from ..structured import normalize_keys
from ..vin_checksum import VIN_LENGTH, VIN_PATTERN, forbidden_characters
from ..vin_decoder import VinDecoder
from .base import DocumentProcessor, clean_str, load_card_fields
from .vin import VinProcessor

logger = logging.getLogger(__name__)

# ─── Constants ───────────────────────────────────────────────────────

EXPIRY_WARNING_DAYS = 30

_REQUIRED: dict[str, str] = {
    "policy_number": "Policy number",
    "carrier": "Insurance carrier",
    "policyholder_name": "Policyholder name",
}

_ALIASES: dict[str, str] = {
    "insurance_company": "carrier",
    "company": "carrier",
    "insurer": "carrier",
    "insured_name": "policyholder_name",
    "named_insured": "policyholder_name",
    "policy_holder": "policyholder_name",
    "effective": "effective_date",
    "expiration": "expiration_date",
    "year": "vehicle_year",
    "make": "vehicle_make",
    "model": "vehicle_model",
}

PROMPT = """\
Extract the fields of the auto insurance card in this photo.
Return ONLY a JSON object in a ```json code block, with these keys:
{
    "policy_number": "string",
    "carrier": "insurance company name",
    "policyholder_name": "string",
    "effective_date": "YYYY-MM-DD or null",
    "expiration_date": "YYYY-MM-DD or null",
    "vin": "17-character VIN or null",
    "vehicle_make": "string or null",
    "vehicle_model": "string or null",
    "vehicle_year": number or null,
    "coverage_type": "string or null",
    "liability_limits": "e.g. 100/300/100, or null",
    "deductible": "string or null",
    "agent_name": "string or null",
    "agent_phone": "string or null"
}
Copy values exactly as printed. Do not guess missing values; use null.
If no insurance card is visible, return {"error": "NOT_FOUND"}.
"""


class InsuranceProcessor(DocumentProcessor[InsuranceDraft, InsuranceEnriched]):
    """Policy, carrier, validity dates and insured vehicle from an insurance card."""

    kind = DocumentKind.INSURANCE
    metadata = ProcessorMetadata(
        name="Insurance Card",
        description="Policy number, carrier, policyholder, coverage dates and insured vehicle",
        prompt=PROMPT,
        model_hint=ModelHint(model="gpt-4o", max_tokens=600, temperature=0.0),
    )

    def __init__(self, vin_decoder: Optional[VinDecoder] = None):
        self._vin = VinProcessor(vin_decoder)

    def extract(self, raw: Any) -> InsuranceDraft:
        data = load_card_fields(raw, _REQUIRED, "insurance card", aliases=_ALIASES)
        _flatten_vehicle_info(data)

        fields: dict[str, Any] = {
            name: clean_str(data.get(name)) for name in InsuranceDraft.model_fields
        }
        fields["vehicle_year"] = _to_year(data.get("vehicle_year"))
        if fields["vin"]:
            fields["vin"] = re.sub(r"[\s\-]", "", fields["vin"]).upper()
        return InsuranceDraft(**fields)

    def validate(self, draft: InsuranceDraft) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []
        today = date.today()

        for field, display in _REQUIRED.items():
            if not clean_str(getattr(draft, field)):
                errors.append(f"Missing required field: {display}")

        # ── Coverage dates ──────────────────────────────────────────
        if draft.effective_date and draft.expiration_date:
            effective = parse_date(draft.effective_date)
            expires = parse_date(draft.expiration_date)

            if effective is None:
                errors.append(f"Effective date is not a valid date: '{draft.effective_date}'")
            if expires is None:
                errors.append(f"Expiration date is not a valid date: '{draft.expiration_date}'")

            if effective and expires:
                if effective > expires:
                    errors.append(
                        f"Effective date ({effective}) is after expiration date ({expires})"
                    )
                else:
                    remaining = days_until(expires, today)
                    if remaining < 0:
                        warnings.append(f"Policy expired {-remaining} day(s) ago ({expires})")
                    elif remaining <= EXPIRY_WARNING_DAYS:
                        warnings.append(f"Policy expires in {remaining} day(s) ({expires})")
                    if effective > today:
                        warnings.append(f"Policy is not yet effective (starts {effective})")
        else:
            missing = [
                label
                for label, value in (
                    ("effective date", draft.effective_date),
                    ("expiration date", draft.expiration_date),
                )
                if not value
            ]
            warnings.append(
                f"Policy {' and '.join(missing)} not found; coverage period could not be checked"
            )

        # ── VIN (optional on cards) ─────────────────────────────────
        if draft.vin:
            vin = draft.vin.strip().upper()
            if len(vin) != VIN_LENGTH:
                warnings.append(f"VIN should be {VIN_LENGTH} characters (got {len(vin)})")
            bad_chars = forbidden_characters(vin)
            if bad_chars:
                warnings.append(
                    f"VIN contains {', '.join(bad_chars)}, outside the VIN alphabet (no I, O or Q)"
                )
            elif len(vin) == VIN_LENGTH and not VIN_PATTERN.match(vin):
                warnings.append("VIN contains characters outside the VIN alphabet (A-Z, 0-9)")

        return ValidationResult(errors=errors, warnings=warnings)

    def enrich(self, draft: InsuranceDraft) -> InsuranceEnriched:
        today = date.today()
        effective = parse_date(draft.effective_date)
        expires = parse_date(draft.expiration_date)

        remaining = days_until(expires, today) if expires else None
        is_active = (
            remaining is not None
            and remaining >= 0
            and (effective is None or effective <= today)
        )

        vehicle = None
        if draft.vin:
            decoded = self._vin.enrich(VinDraft(vin=draft.vin))
            if decoded.validated:
                vehicle = decoded
            else:
                logger.debug("Insurance VIN %s not decoded: %s", draft.vin, decoded.error)

        return InsuranceEnriched(
            **draft.model_dump(),
            is_active=is_active,
            days_until_expiration=remaining,
            vehicle=vehicle,
        )

    def format(self, record: InsuranceDraft) -> str:
        vehicle = getattr(record, "vehicle", None)
        if vehicle is not None:
            parts = [vehicle.year, vehicle.make, vehicle.model]
        else:
            parts = [record.vehicle_year, record.vehicle_make, record.vehicle_model]
        description = " ".join(str(p) for p in parts if p)

        segments = [record.carrier or "Unknown carrier"]
        if description:
            segments.append(description)
        segments.append(f"Policy #{record.policy_number}")
        return " - ".join(segments)


# ─── Internal Helpers ────────────────────────────────────────────────


def _flatten_vehicle_info(data: dict[str, Any]) -> None:
    """Lift a nested ``vehicle_info`` object into the flat vehicle_* keys."""
    nested = data.get("vehicle_info")
    if not isinstance(nested, dict):
        return
    nested = normalize_keys(nested)
    for source, target in (
        ("vin", "vin"),
        ("year", "vehicle_year"),
        ("make", "vehicle_make"),
        ("model", "vehicle_model"),
    ):
        if nested.get(source) and not data.get(target):
            data[target] = nested[source]


def _to_year(value: Any) -> int | None:
    text = clean_str(value)
    if text is None:
        return None
    match = re.search(r"\b(19|20)\d{2}\b", text)
    return int(match.group(0)) if match else None
