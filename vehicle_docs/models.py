"""
Pydantic models for vehicle documents.

A document moves through three shapes:

    DraftRecord     what extraction found (kind-specific, unvalidated)
    EnrichedRecord  the draft plus derived / looked-up fields
    summary string  what the formatter shows the user

Enriched models SUBCLASS their drafts, so enrichment can only add fields,
never drop them.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, computed_field


# ─── Enumerations ───────────────────────────────────────────────────


class DocumentKind(str, Enum):
    """The document kinds the capture flow supports."""

    VIN = "vin"
    LICENSE_PLATE = "license-plate"
    DRIVERS_LICENSE = "drivers-license"
    INSURANCE = "insurance"
    ODOMETER = "odometer"


class CharacterQuality(str, Enum):
    """How legible the characters were when they were read."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class OdometerUnit(str, Enum):
    MILES = "miles"
    KILOMETERS = "kilometers"


class MileageCategory(str, Enum):
    LOW = "low"  # < 30k miles
    MEDIUM = "medium"  # < 75k
    HIGH = "high"  # < 150k
    VERY_HIGH = "very-high"


# ─── Validation Result ──────────────────────────────────────────────


class ValidationResult(BaseModel):
    """Errors block a document, warnings never do."""

    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def valid(self) -> bool:
        return not self.errors


# ─── Processor Metadata ─────────────────────────────────────────────


class ModelHint(BaseModel):
    """Which vision model to ask, and how."""

    model_config = ConfigDict(frozen=True)

    model: str = "gpt-4o"
    max_tokens: int = 300
    temperature: float = 0.0


class ProcessorMetadata(BaseModel):
    """Static description of a processor, fixed at registration time."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    name: str
    description: str
    prompt: str
    model_hint: ModelHint = Field(default_factory=ModelHint)


# ─── VIN ────────────────────────────────────────────────────────────


class VinDraft(BaseModel):
    vin: str
    location: Optional[str] = None
    character_quality: Optional[CharacterQuality] = None


class VinStructure(BaseModel):
    """Positional breakdown of a 17-character VIN."""

    model_config = ConfigDict(protected_namespaces=())

    wmi: str  # World Manufacturer Identifier, positions 1-3
    vds: str  # Vehicle Descriptor Section, positions 4-8
    check_digit: str  # position 9
    model_year_code: str  # position 10
    plant_code: str  # position 11
    sequential: str  # positions 12-17


class VehicleSpec(BaseModel):
    """What a VIN decode returns. ``error`` is set instead of raising."""

    model_config = ConfigDict(extra="ignore")

    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    trim: Optional[str] = None
    body_type: Optional[str] = None
    engine: Optional[str] = None
    fuel_type: Optional[str] = None
    transmission: Optional[str] = None
    drive_type: Optional[str] = None
    manufacturer: Optional[str] = None
    plant_country: Optional[str] = None
    error: Optional[str] = None


class VinEnriched(VinDraft):
    model_config = ConfigDict(protected_namespaces=())

    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    trim: Optional[str] = None
    body_type: Optional[str] = None
    engine: Optional[str] = None
    fuel_type: Optional[str] = None
    transmission: Optional[str] = None
    drive_type: Optional[str] = None
    manufacturer: Optional[str] = None
    plant_country: Optional[str] = None
    validated: bool = False
    check_digit_valid: bool = False
    structure: Optional[VinStructure] = None
    model_year_candidates: list[int] = Field(default_factory=list)
    error: Optional[str] = None


# ─── License Plate ──────────────────────────────────────────────────


class LicensePlateDraft(BaseModel):
    plate: str
    state: Optional[str] = None
    country: Optional[str] = None


# ─── Driver's License ───────────────────────────────────────────────


class DriversLicenseDraft(BaseModel):
    """Dates stay as the strings the card shows; validation parses them."""

    license_number: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    middle_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    issue_date: Optional[str] = None
    expiration_date: Optional[str] = None
    license_class: Optional[str] = None
    restrictions: Optional[str] = None
    endorsements: Optional[str] = None
    height: Optional[str] = None
    weight: Optional[str] = None
    eye_color: Optional[str] = None
    sex: Optional[str] = None


class DriversLicenseEnriched(DriversLicenseDraft):
    full_name: str = ""
    age: Optional[int] = None
    is_expired: Optional[bool] = None
    days_until_expiration: Optional[int] = None


# ─── Insurance Card ─────────────────────────────────────────────────


class InsuranceDraft(BaseModel):
    policy_number: Optional[str] = None
    carrier: Optional[str] = None
    policyholder_name: Optional[str] = None
    effective_date: Optional[str] = None
    expiration_date: Optional[str] = None
    vin: Optional[str] = None
    vehicle_make: Optional[str] = None
    vehicle_model: Optional[str] = None
    vehicle_year: Optional[int] = None
    coverage_type: Optional[str] = None
    liability_limits: Optional[str] = None
    deductible: Optional[str] = None
    agent_name: Optional[str] = None
    agent_phone: Optional[str] = None


class InsuranceEnriched(InsuranceDraft):
    is_active: bool = False
    days_until_expiration: Optional[int] = None
    vehicle: Optional[VinEnriched] = None


# ─── Odometer ───────────────────────────────────────────────────────


class OdometerDraft(BaseModel):
    """``reading`` is Optional so that a missing value (not zero) can be reported."""

    reading: Optional[int] = None
    unit: OdometerUnit = OdometerUnit.MILES
    location: str = "dashboard"
    digit_count: Optional[int] = None
    is_digital: Optional[bool] = None
    unit_assumed: bool = False


class OdometerEnriched(OdometerDraft):
    estimated_miles: int
    estimated_kilometers: int
    display: str
    mileage_category: MileageCategory


# ─── Processing Report ──────────────────────────────────────────────


class ProcessingReport(BaseModel):
    """Output of one extract → validate → enrich → format run."""

    kind: DocumentKind
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    draft: Optional[SerializeAsAny[BaseModel]] = None
    enriched: Optional[SerializeAsAny[BaseModel]] = None
    summary: str = ""
    processor_version: str = ""
    original_hash: str = ""  # SHA-256 of the raw input for audit trail
