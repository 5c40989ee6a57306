"""Date parsing and day arithmetic shared by the card processors."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

# US cards print MM/DD/YYYY; the vision prompts ask for ISO.
_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m-%d-%Y", "%Y/%m/%d", "%m/%d/%y")


def parse_date(value: Any) -> Optional[date]:
    """Parse a card date. Returns None for anything unparseable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    # Tolerate full ISO timestamps ("2025-06-01T00:00:00Z")
    if "T" in text and len(text) > 10:
        text = text.split("T", 1)[0]

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def days_until(target: date, today: Optional[date] = None) -> int:
    """Whole days from ``today`` to ``target`` (negative once passed)."""
    today = today or date.today()
    return (target - today).days


def age_on(birth: date, today: Optional[date] = None) -> int:
    """Age in full years, not counting a birthday that has not come yet this year."""
    today = today or date.today()
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age
