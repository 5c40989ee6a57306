"""
The DocumentProcessor interface.

Each document kind implements the same four stages:

    extract(raw)      raw vision output → draft record  (raises ExtractionError)
    validate(draft)   draft → ValidationResult          (never raises)
    enrich(draft)     draft → enriched record           (never raises)
    format(record)    record → one display string

plus static metadata (prompt + model hint) used by the vision call.
Processors hold no per-document state and can be shared freely.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel

from ..exceptions import ExtractionError
from ..models import DocumentKind, ProcessorMetadata, ValidationResult
from ..structured import ParseOutcome, parse_vision_json

logger = logging.getLogger(__name__)

DraftT = TypeVar("DraftT", bound=BaseModel)
EnrichedT = TypeVar("EnrichedT", bound=BaseModel)


class DocumentProcessor(ABC, Generic[DraftT, EnrichedT]):
    """Base class for the per-kind processors."""

    kind: ClassVar[DocumentKind]
    metadata: ClassVar[ProcessorMetadata]

    @abstractmethod
    def extract(self, raw: Any) -> DraftT:
        """Turn raw vision output into a draft record, or raise ExtractionError."""

    @abstractmethod
    def validate(self, draft: DraftT) -> ValidationResult:
        """Check a draft. Must not mutate it and must not raise."""

    @abstractmethod
    def enrich(self, draft: DraftT) -> EnrichedT:
        """Add derived fields. Lookup failures become an ``error`` field, not an exception."""

    @abstractmethod
    def format(self, record: DraftT) -> str:
        """One human-readable line for the record (draft or enriched)."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r})"


# ─── Shared Extraction Helper ────────────────────────────────────────


def load_card_fields(
    raw: Any,
    required: dict[str, str],
    document_name: str,
    aliases: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Decode a JSON card response and insist on the mandatory fields.

    Args:
        raw: The vision response (JSON text, fenced JSON, or a dict).
        required: field name → display name, checked for non-empty values.
        document_name: Used in error messages ("driver's license").
        aliases: alternative key → field name, applied before the required check.

    Raises:
        ExtractionError: with reason ``not_found``, ``malformed`` or ``missing_fields``.
    """
    parsed = parse_vision_json(raw)

    if parsed.outcome == ParseOutcome.MALFORMED:
        logger.warning("Unparseable %s response: %s", document_name, parsed.error)
        raise ExtractionError(
            f"Could not parse {document_name} data from the vision response",
            reason=ExtractionError.MALFORMED,
            details={"parse_error": parsed.error},
        )

    if parsed.outcome == ParseOutcome.NOT_FOUND:
        raise ExtractionError(
            f"No {document_name} found in image",
            reason=ExtractionError.NOT_FOUND,
            details={"vision_error": parsed.error},
        )

    data = dict(parsed.data)
    for alias, field in (aliases or {}).items():
        if alias in data and not _present(data.get(field)):
            data[field] = data.pop(alias)

    missing = [
        display for field, display in required.items() if not _present(data.get(field))
    ]
    if missing:
        raise ExtractionError(
            f"Incomplete {document_name} data: missing {', '.join(missing)}",
            reason=ExtractionError.MISSING_FIELDS,
            details={"missing_fields": missing},
        )

    return data


def clean_str(value: Any) -> str | None:
    """Strip a JSON value to a string; empty and null-ish values become None."""
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in {"null", "none", "n/a"}:
        return None
    return text


def _present(value: Any) -> bool:
    return clean_str(value) is not None
