"""One DocumentProcessor per document kind."""

from .base import DocumentProcessor
from .drivers_license import DriversLicenseProcessor
from .insurance import InsuranceProcessor
from .license_plate import LicensePlateProcessor
from .odometer import OdometerProcessor
from .vin import VinProcessor

__all__ = [
    "DocumentProcessor",
    "DriversLicenseProcessor",
    "InsuranceProcessor",
    "LicensePlateProcessor",
    "OdometerProcessor",
    "VinProcessor",
]
