"""
Document pipeline: drives one document through its processor.

Flow:
  ┌──────────────┐
  │ Vision / raw │
  └──────┬───────┘
         │
  ┌──────▼──────┐
  │  Registry   │   ← resolve kind → processor  (RegistryLookupError)
  └──────┬──────┘
         │
  ┌──────▼──────┐
  │   Extract   │   ← raw → draft                (ExtractionError)
  └──────┬──────┘
         │
  ┌──────▼──────┐
  │  Validate   │   ← errors block, warnings don't
  └──────┬──────┘
         │ valid only
  ┌──────▼──────┐
  │   Enrich    │   ← VIN decode, derived fields (never raises)
  └──────┬──────┘
         │
  ┌──────▼──────┐
  │   Format    │   ← one display line
  └─────────────┘

Only registry lookup and extraction abort a run. Everything after a
successful extraction degrades into the report instead of raising, so a
user's capture is never thrown away over an enrichment hiccup.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any

from .exceptions import ExtractionError
from .models import ProcessingReport
from .registry import KindLike, ProcessorRegistry
from .vision_client import VisionClient

logger = logging.getLogger(__name__)


class DocumentPipeline:
    """Runs extract → validate → enrich → format for one document at a time.

    Usage:
        pipeline = DocumentPipeline(build_default_registry(decoder))
        report = pipeline.run("vin", "VEHICLE ID: 1HGBH41JXMN109186")
        print(report.summary)
    """

    def __init__(self, registry: ProcessorRegistry):
        self.registry = registry

    def run(self, kind: KindLike, raw: Any) -> ProcessingReport:
        """Process one raw vision response.

        Raises:
            RegistryLookupError: ``kind`` is not registered.
            ExtractionError: nothing usable was found in ``raw``.
        """
        processor = self.registry.resolve(kind)
        version = self.registry.version_of(processor.kind)
        doc_hash = _hash_input(raw)

        # ── Step 1: Extract ─────────────────────────────────────────
        logger.info("Extracting %s document", processor.kind.value)
        draft = processor.extract(raw)

        # ── Step 2: Validate ────────────────────────────────────────
        result = processor.validate(draft)
        logger.info(
            "Validated %s: valid=%s errors=%d warnings=%d",
            processor.kind.value, result.valid, len(result.errors), len(result.warnings),
        )

        # ── Step 3: Enrich (valid drafts only) ──────────────────────
        enriched = None
        if result.valid:
            enriched = processor.enrich(draft)
            error = getattr(enriched, "error", None)
            if error:
                logger.warning("Enrichment degraded for %s: %s", processor.kind.value, error)

        # ── Step 4: Format ──────────────────────────────────────────
        summary = processor.format(enriched if enriched is not None else draft)

        return ProcessingReport(
            kind=processor.kind,
            is_valid=result.valid,
            errors=result.errors,
            warnings=result.warnings,
            draft=draft,
            enriched=enriched,
            summary=summary,
            processor_version=version,
            original_hash=doc_hash,
        )

    def run_image(
        self,
        kind: KindLike,
        image: bytes,
        vision: VisionClient,
        mime_type: str = "image/jpeg",
    ) -> ProcessingReport:
        """Read an image with the vision service, then run the pipeline on its answer."""
        processor = self.registry.resolve(kind)
        raw = vision.read_document(image, processor.metadata, mime_type=mime_type)
        if raw is None:
            raise ExtractionError(
                f"Vision service returned nothing for {processor.metadata.name}",
                reason=ExtractionError.NOT_FOUND,
                details={"vision_enabled": vision.enabled},
            )
        return self.run(processor.kind, raw)


def _hash_input(raw: Any) -> str:
    if isinstance(raw, (dict, list)):
        text = json.dumps(raw, sort_keys=True, default=str)
    else:
        text = "" if raw is None else str(raw)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
