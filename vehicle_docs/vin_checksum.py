"""
VIN alphabet, check digit and positional structure (ISO 3779 / 49 CFR 565).

The check digit at position 9 is derived from the other 16 characters:

    1. Transliterate every character to a number (letters via the table below)
    2. Multiply each by its position weight
    3. Sum, then take the remainder mod 11
    4. A remainder of 10 is written as 'X'

Everything here is a pure function over strings. No I/O.
"""

from __future__ import annotations

import re

from .models import VinStructure

# ─── Constants ───────────────────────────────────────────────────────

VIN_LENGTH = 17
CHECK_DIGIT_INDEX = 8

# I, O and Q are never used: they read too much like 1 and 0.
FORBIDDEN_CHARS: frozenset[str] = frozenset("IOQ")
VIN_PATTERN = re.compile(r"^[A-HJ-NPR-Z0-9]{17}$")

_TRANSLITERATION: dict[str, int] = {
    "A": 1, "B": 2, "C": 3, "D": 4, "E": 5, "F": 6, "G": 7, "H": 8,
    "J": 1, "K": 2, "L": 3, "M": 4, "N": 5, "P": 7, "R": 9,
    "S": 2, "T": 3, "U": 4, "V": 5, "W": 6, "X": 7, "Y": 8, "Z": 9,
    "0": 0, "1": 1, "2": 2, "3": 3, "4": 4,
    "5": 5, "6": 6, "7": 7, "8": 8, "9": 9,
}

_POSITION_WEIGHTS: tuple[int, ...] = (8, 7, 6, 5, 4, 3, 2, 10, 0, 9, 8, 7, 6, 5, 4, 3, 2)

# Position 10 cycles every 30 years through these codes.
_MODEL_YEAR_CODES = "ABCDEFGHJKLMNPRSTVWXY123456789"
_MODEL_YEAR_CYCLE_STARTS = (1980, 2010)


# ─── Public API ──────────────────────────────────────────────────────


def is_vin_format(vin: str) -> bool:
    """True if ``vin`` is 17 characters of the VIN alphabet."""
    return bool(VIN_PATTERN.match(vin))


def forbidden_characters(vin: str) -> list[str]:
    """Return the I/O/Q characters present in ``vin``, in order, without repeats."""
    found: list[str] = []
    for char in vin.upper():
        if char in FORBIDDEN_CHARS and char not in found:
            found.append(char)
    return found


def calculate_check_digit(vin: str) -> str:
    """Compute the expected position-9 character for a 17-character VIN.

    Raises:
        ValueError: if ``vin`` is not 17 characters or holds a character
            outside the transliteration table.
    """
    vin = vin.upper()
    if len(vin) != VIN_LENGTH:
        raise ValueError(f"VIN must be {VIN_LENGTH} characters, got {len(vin)}")

    total = 0
    for position, char in enumerate(vin):
        value = _TRANSLITERATION.get(char)
        if value is None:
            raise ValueError(f"Invalid character for check digit: {char!r}")
        total += value * _POSITION_WEIGHTS[position]

    remainder = total % 11
    return "X" if remainder == 10 else str(remainder)


def is_check_digit_valid(vin: str) -> bool:
    """True if position 9 matches the computed check digit. Never raises."""
    try:
        return vin.upper()[CHECK_DIGIT_INDEX] == calculate_check_digit(vin)
    except (ValueError, IndexError):
        return False


def parse_vin_structure(vin: str) -> VinStructure | None:
    """Split a 17-character VIN into its positional sections."""
    if len(vin) != VIN_LENGTH:
        return None
    vin = vin.upper()
    return VinStructure(
        wmi=vin[0:3],
        vds=vin[3:8],
        check_digit=vin[8],
        model_year_code=vin[9],
        plant_code=vin[10],
        sequential=vin[11:17],
    )


def decode_model_year(code: str) -> list[int]:
    """Candidate model years for a position-10 code.

    The code repeats every 30 years, so 'M' is both 1991 and 2021.
    Unknown codes return an empty list.
    """
    index = _MODEL_YEAR_CODES.find(code.upper()) if len(code) == 1 else -1
    if index < 0:
        return []
    return [start + index for start in _MODEL_YEAR_CYCLE_STARTS]
