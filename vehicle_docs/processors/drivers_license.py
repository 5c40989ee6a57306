"""
Driver's license processor.

The vision call returns a JSON object (see PROMPT). Dates are kept as the
strings the card shows and parsed during validation, so an unreadable date
is reported as a validation error instead of being silently dropped.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Optional

from ..dates import age_on, days_until, parse_date
from ..models import (
    DocumentKind,
    DriversLicenseDraft,
    DriversLicenseEnriched,
    ModelHint,
    ProcessorMetadata,
    ValidationResult,
)
from .base import DocumentProcessor, clean_str, load_card_fields

# ─── Constants ───────────────────────────────────────────────────────

MINIMUM_DRIVING_AGE = 16
MAXIMUM_REALISTIC_AGE = 120
EXPIRY_WARNING_DAYS = 30

_ZIP_PATTERN = re.compile(r"\d{5}(-\d{4})?")

_REQUIRED: dict[str, str] = {
    "license_number": "License number",
    "first_name": "First name",
    "last_name": "Last name",
    "date_of_birth": "Date of birth",
    "state": "State",
}

_ALIASES: dict[str, str] = {
    "dl_number": "license_number",
    "dob": "date_of_birth",
    "birth_date": "date_of_birth",
    "zip": "zip_code",
    "postal_code": "zip_code",
    "class": "license_class",
    "expiration": "expiration_date",
    "expiry_date": "expiration_date",
    "issued_date": "issue_date",
}

PROMPT = """\
Extract the fields of the driver's license in this photo.
Return ONLY a JSON object in a ```json code block, with these keys:
{
    "license_number": "string",
    "first_name": "string",
    "last_name": "string",
    "middle_name": "string or null",
    "date_of_birth": "YYYY-MM-DD",
    "address": "street address",
    "city": "string or null",
    "state": "2-letter state code",
    "zip_code": "string or null",
    "issue_date": "YYYY-MM-DD or null",
    "expiration_date": "YYYY-MM-DD or null",
    "class": "string or null",
    "restrictions": "string or null",
    "endorsements": "string or null",
    "height": "string or null",
    "weight": "string or null",
    "eye_color": "string or null",
    "sex": "string or null"
}
Copy values exactly as printed. Do not guess missing values; use null.
If no driver's license is visible, return {"error": "NOT_FOUND"}.
"""


class DriversLicenseProcessor(DocumentProcessor[DriversLicenseDraft, DriversLicenseEnriched]):
    """Holder identity, address and validity dates from a driver's license."""

    kind = DocumentKind.DRIVERS_LICENSE
    metadata = ProcessorMetadata(
        name="Driver's License",
        description="Holder name, license number, date of birth, address and expiration",
        prompt=PROMPT,
        model_hint=ModelHint(model="gpt-4o", max_tokens=600, temperature=0.0),
    )

    def extract(self, raw: Any) -> DriversLicenseDraft:
        data = load_card_fields(raw, _REQUIRED, "driver's license", aliases=_ALIASES)

        fields = {
            name: clean_str(data.get(name)) for name in DriversLicenseDraft.model_fields
        }
        if fields["state"]:
            fields["state"] = fields["state"].upper()
        return DriversLicenseDraft(**fields)

    def validate(self, draft: DriversLicenseDraft) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []
        today = date.today()

        for field, display in _REQUIRED.items():
            if not clean_str(getattr(draft, field)):
                errors.append(f"Missing required field: {display}")

        # ── Date of birth ───────────────────────────────────────────
        if draft.date_of_birth:
            birth = parse_date(draft.date_of_birth)
            if birth is None:
                errors.append(f"Date of birth is not a valid date: '{draft.date_of_birth}'")
            else:
                age = age_on(birth, today)
                if age > MAXIMUM_REALISTIC_AGE:
                    errors.append(f"Date of birth gives an unrealistic age of {age}")
                elif age < MINIMUM_DRIVING_AGE:
                    warnings.append(
                        f"Holder is under minimum driving age ({age} < {MINIMUM_DRIVING_AGE})"
                    )

        # ── Expiration ──────────────────────────────────────────────
        if draft.expiration_date:
            expires = parse_date(draft.expiration_date)
            if expires is None:
                errors.append(f"Expiration date is not a valid date: '{draft.expiration_date}'")
            else:
                remaining = days_until(expires, today)
                if remaining < 0:
                    warnings.append(f"License expired {-remaining} day(s) ago ({expires})")
                elif remaining <= EXPIRY_WARNING_DAYS:
                    warnings.append(f"License expires in {remaining} day(s) ({expires})")

        # ── State / ZIP ─────────────────────────────────────────────
        if draft.state and len(draft.state.strip()) != 2:
            errors.append(f"State must be a 2-letter code (got '{draft.state}')")

        if draft.zip_code and not _ZIP_PATTERN.fullmatch(draft.zip_code.strip()):
            warnings.append(f"ZIP code '{draft.zip_code}' is not in US format (12345 or 12345-6789)")

        return ValidationResult(errors=errors, warnings=warnings)

    def enrich(self, draft: DriversLicenseDraft) -> DriversLicenseEnriched:
        today = date.today()
        birth = parse_date(draft.date_of_birth)
        expires = parse_date(draft.expiration_date)

        remaining: Optional[int] = days_until(expires, today) if expires else None
        names = (draft.first_name, draft.middle_name, draft.last_name)

        return DriversLicenseEnriched(
            **draft.model_dump(),
            full_name=" ".join(n for n in names if n),
            age=age_on(birth, today) if birth else None,
            is_expired=(remaining < 0) if remaining is not None else None,
            days_until_expiration=remaining,
        )

    def format(self, record: DriversLicenseDraft) -> str:
        name = " ".join(n for n in (record.first_name, record.last_name) if n)
        return f"{name} ({record.state} {record.license_number})"
