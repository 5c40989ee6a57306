"""
World Manufacturer Identifier (VIN positions 1-3) lookup.

Used when a full decode is unavailable, so a degraded VIN record still
names the manufacturer and country. Covers common passenger-car WMIs only.
"""

from __future__ import annotations

from typing import NamedTuple, Optional


class WmiInfo(NamedTuple):
    manufacturer: str
    country: str
    region: str


WMI_TABLE: dict[str, WmiInfo] = {
    # United States
    "1G1": WmiInfo("General Motors (Chevrolet)", "USA", "North America"),
    "1FA": WmiInfo("Ford Motor Company", "USA", "North America"),
    "1FT": WmiInfo("Ford Trucks", "USA", "North America"),
    "1HG": WmiInfo("Honda", "USA", "North America"),
    "1N4": WmiInfo("Nissan", "USA", "North America"),
    "4T1": WmiInfo("Toyota", "USA", "North America"),
    "5YJ": WmiInfo("Tesla", "USA", "North America"),
    # Canada / Mexico
    "2HG": WmiInfo("Honda (Canada)", "Canada", "North America"),
    "2T1": WmiInfo("Toyota", "Canada", "North America"),
    "3VW": WmiInfo("Volkswagen", "Mexico", "North America"),
    # Japan
    "JHM": WmiInfo("Honda", "Japan", "Asia"),
    "JN1": WmiInfo("Nissan", "Japan", "Asia"),
    "JT2": WmiInfo("Toyota", "Japan", "Asia"),
    "JF1": WmiInfo("Subaru", "Japan", "Asia"),
    # Germany
    "WAU": WmiInfo("Audi", "Germany", "Europe"),
    "WBA": WmiInfo("BMW", "Germany", "Europe"),
    "WDB": WmiInfo("Mercedes-Benz", "Germany", "Europe"),
    "WVW": WmiInfo("Volkswagen", "Germany", "Europe"),
    "WP0": WmiInfo("Porsche", "Germany", "Europe"),
    # Korea
    "KM8": WmiInfo("Hyundai", "South Korea", "Asia"),
    "KNA": WmiInfo("Kia", "South Korea", "Asia"),
    # Italy
    "ZAR": WmiInfo("Alfa Romeo", "Italy", "Europe"),
    "ZFF": WmiInfo("Ferrari", "Italy", "Europe"),
    "ZLA": WmiInfo("Lamborghini", "Italy", "Europe"),
}


def lookup_wmi(vin: str) -> Optional[WmiInfo]:
    """Manufacturer info for the first three characters of ``vin``, if known."""
    return WMI_TABLE.get(vin.strip().upper()[:3])
