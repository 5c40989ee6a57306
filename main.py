#!/usr/bin/env python3
"""
Vehicle Docs — Entry Point
===========================

Runs the capture pipeline on sample vision output for every document kind,
or on one kind + text given on the command line.

Usage:
    python main.py                                   # All samples
    python main.py vin "VIN: 1HGBH41JXMN109186"      # One document
    python main.py --offline                         # Skip the NHTSA VIN decode
"""

from __future__ import annotations

import logging
import sys

from vehicle_docs.config import load_settings
from vehicle_docs.exceptions import DocumentProcessingError
from vehicle_docs.models import ProcessingReport
from vehicle_docs.pipeline import DocumentPipeline
from vehicle_docs.registry import build_default_registry
from vehicle_docs.vin_decoder import NhtsaVinDecoder


# ─── Sample Vision Output (messy on purpose) ────────────────────────

SAMPLES: dict[str, str] = {
    "vin": "VEHICLE ID: 1HGBH41JXMN109186 LOCATED ON DOOR JAMB",
    "license-plate": "Plate: 7ABC-123 CA",
    "drivers-license": """\
```json
{"licenseNumber": "D1234567", "firstName": "Sarah", "lastName": "Connor",
 "dateOfBirth": "1985-05-13", "address": "123 Main St", "city": "Los Angeles",
 "state": "ca", "zipCode": "90001", "expirationDate": "2030-05-13", "class": "C"}
```""",
    "insurance": """\
{"policy_number": "PA-998877", "insurance_company": "Acme Mutual",
 "policyholder_name": "Sarah Connor", "effective_date": "2025-06-01",
 "expiration_date": "2025-01-01", "vin": "1HGBH41JXMN109186",
 "vehicle_year": "2002", "vehicle_make": "Honda", "vehicle_model": "Accord"}""",
    "odometer": "ODO 045,123 mi (digital)",
}


# ─── ANSI Color Constants ───────────────────────────────────────────

_RED = "\033[91m"
_YELLOW = "\033[93m"
_GREEN = "\033[92m"
_CYAN = "\033[96m"
_DIM = "\033[2m"
_BOLD = "\033[1m"
_RESET = "\033[0m"
_WIDTH = 72


# ─── Pretty Printer ─────────────────────────────────────────────────


def _print_messages(messages: list[str], color: str, label: str) -> None:
    if not messages:
        return
    print(f"\n  {color}{_BOLD}{label} ({len(messages)}){_RESET}")
    for message in messages:
        print(f"    {color}-{_RESET} {message}")


def print_report(report: ProcessingReport) -> int:
    """Pretty-print one report. Returns 0 if valid, 1 otherwise."""
    print(f"\n{'=' * _WIDTH}")
    print(f"{_BOLD}{_CYAN}  {report.kind.value.upper()}{_RESET}  {_DIM}v{report.processor_version}{_RESET}")
    print(f"{'=' * _WIDTH}")
    print(f"  Summary:     {_BOLD}{report.summary}{_RESET}")
    print(f"  Audit Hash:  {_DIM}{report.original_hash[:16]}...{_RESET}")

    record = report.enriched or report.draft
    if record is not None:
        print(f"{'─' * _WIDTH}")
        for key, value in record.model_dump(mode="json", exclude_none=True).items():
            print(f"  {key:<24} {value}")

    _print_messages(report.errors, _RED, "ERRORS")
    _print_messages(report.warnings, _YELLOW, "WARNINGS")

    print(f"{'─' * _WIDTH}")
    if report.is_valid:
        print(f"  {_GREEN}{_BOLD}VALID{_RESET}")
    else:
        print(f"  {_RED}{_BOLD}REJECTED  --  {len(report.errors)} error(s) found{_RESET}")

    return 0 if report.is_valid else 1


# ─── Main ────────────────────────────────────────────────────────────


def main() -> None:
    """Run the pipeline on the samples (or argv) and print the reports."""
    args = [a for a in sys.argv[1:] if a != "--offline"]
    offline = "--offline" in sys.argv[1:]

    settings = load_settings()
    logging.basicConfig(level=settings.log_level)

    decoder = None if offline else NhtsaVinDecoder(
        base_url=settings.nhtsa_base_url,
        timeout_seconds=settings.nhtsa_timeout_seconds,
        cache_ttl_seconds=settings.nhtsa_cache_ttl_seconds,
    )
    pipeline = DocumentPipeline(build_default_registry(decoder))

    if len(args) >= 2:
        inputs = {args[0]: " ".join(args[1:])}
    elif args:
        print(f"usage: {sys.argv[0]} [--offline] [KIND TEXT...]")
        sys.exit(2)
    else:
        inputs = SAMPLES

    exit_code = 0
    for kind, raw in inputs.items():
        try:
            exit_code |= print_report(pipeline.run(kind, raw))
        except DocumentProcessingError as e:
            print(f"\n  {_RED}{_BOLD}{kind}: [{e.code}] {e}{_RESET}")
            exit_code = 1

    print()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
