"""
Exception hierarchy for document processing.

Only two failures are allowed to abort a pipeline run: extraction that finds
nothing usable, and a lookup of a document kind nobody registered. Everything
downstream of a successful extraction degrades into data (validation errors,
enrichment error notes) instead of raising.
"""

from __future__ import annotations


class DocumentProcessingError(Exception):
    """Base exception for all document processing failures."""

    def __init__(self, code: str, message: str, details: dict | None = None):
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ExtractionError(DocumentProcessingError):
    """No plausible structured value could be located in the raw input.

    ``reason`` tells the caller why:
      - ``not_found``       the input (or the vision service) says there is nothing there
      - ``malformed``       the vision service returned something we could not parse
      - ``missing_fields``  a document was found but mandatory fields are absent
    """

    NOT_FOUND = "not_found"
    MALFORMED = "malformed"
    MISSING_FIELDS = "missing_fields"

    def __init__(
        self,
        message: str,
        reason: str = NOT_FOUND,
        details: dict | None = None,
    ):
        self.reason = reason
        super().__init__("EXTRACTION_FAILED", message, details)


class RegistryLookupError(DocumentProcessingError):
    """A document kind was resolved that has no registered processor."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("PROCESSOR_NOT_FOUND", message, details)
