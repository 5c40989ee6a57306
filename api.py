"""
Vehicle Docs — FastAPI Server
==============================

RESTful API for vehicle document capture.

Endpoints:
    GET  /health                 Health check / readiness probe
    GET  /document-types         Registered document kinds
    POST /process/{kind}         Run the pipeline on raw vision output
    POST /capture/{kind}         Upload a photo; vision call + pipeline

Run:
    uvicorn api:app --reload              # Dev (http://localhost:8000)
    uvicorn api:app --host 0.0.0.0        # Production

Docs:
    http://localhost:8000/docs             # Swagger UI (auto-generated)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional, Union

from fastapi import FastAPI, HTTPException, UploadFile
from pydantic import BaseModel, Field

from vehicle_docs import __version__
from vehicle_docs.config import load_settings
from vehicle_docs.exceptions import ExtractionError, RegistryLookupError
from vehicle_docs.models import ProcessingReport
from vehicle_docs.pipeline import DocumentPipeline
from vehicle_docs.registry import build_default_registry
from vehicle_docs.vin_decoder import NhtsaVinDecoder
from vehicle_docs.vision_client import VisionClient

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 10 * 1_048_576


# ─── Application Lifespan (pre-warm pipeline) ───────────────────────

_pipeline: DocumentPipeline | None = None
_vision: VisionClient | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the registry, pipeline and vision client once on startup."""
    global _pipeline, _vision  # noqa: PLW0603
    settings = load_settings()
    logging.basicConfig(level=settings.log_level)

    decoder = NhtsaVinDecoder(
        base_url=settings.nhtsa_base_url,
        timeout_seconds=settings.nhtsa_timeout_seconds,
        cache_ttl_seconds=settings.nhtsa_cache_ttl_seconds,
    )
    _pipeline = DocumentPipeline(build_default_registry(decoder))
    _vision = VisionClient(
        api_key=settings.openai_api_key, model_override=settings.vision_model
    )
    logger.info("Pipeline ready with %d processors", len(_pipeline.registry))
    yield
    _pipeline = None
    _vision = None


# ─── FastAPI App ─────────────────────────────────────────────────────

app = FastAPI(
    title="Vehicle Docs API",
    description=(
        "Capture pipeline for vehicle documents: VIN, license plate, "
        "driver's license, insurance card and odometer. Extraction, "
        "deterministic validation, VIN decode enrichment and display formatting."
    ),
    version=__version__,
    lifespan=lifespan,
)


# ─── Request / Response Schemas ─────────────────────────────────────


class ProcessRequest(BaseModel):
    """Request body for the /process endpoint."""

    raw: Union[str, dict[str, Any]] = Field(
        ...,
        description="Raw vision output: free text, or a JSON object for card documents.",
        json_schema_extra={"example": "VEHICLE ID: 1HGBH41JXMN109186 LOCATED ON DOOR JAMB"},
    )


class ProcessResponse(BaseModel):
    """Pipeline report returned by the API."""

    kind: str
    is_valid: bool
    summary: str
    error_count: int
    warning_count: int
    errors: list[str]
    warnings: list[str]
    draft: Optional[dict[str, Any]] = None
    enriched: Optional[dict[str, Any]] = None
    processor_version: str
    original_hash: str = Field(description="SHA-256 hash of the raw input")


class DocumentTypeOut(BaseModel):
    kind: str
    name: str
    description: str
    version: str
    model: str


class HealthResponse(BaseModel):
    status: str
    version: str
    processors_loaded: int
    vision_enabled: bool


# ─── Helpers ─────────────────────────────────────────────────────────


def _get_pipeline() -> DocumentPipeline:
    if _pipeline is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialised")
    return _pipeline


def _build_response(report: ProcessingReport) -> ProcessResponse:
    """Convert the internal ProcessingReport to the API response schema."""
    return ProcessResponse(
        kind=report.kind.value,
        is_valid=report.is_valid,
        summary=report.summary,
        error_count=len(report.errors),
        warning_count=len(report.warnings),
        errors=report.errors,
        warnings=report.warnings,
        draft=report.draft.model_dump(mode="json") if report.draft else None,
        enriched=report.enriched.model_dump(mode="json") if report.enriched else None,
        processor_version=report.processor_version,
        original_hash=report.original_hash,
    )


def _extraction_failed(e: ExtractionError) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={"code": e.code, "reason": e.reason, "message": str(e), "details": e.details},
    )


def _not_registered(e: RegistryLookupError) -> HTTPException:
    return HTTPException(status_code=404, detail={"code": e.code, "message": str(e)})


# ─── Endpoints ───────────────────────────────────────────────────────


@app.get(
    "/health",
    summary="Health check",
    tags=["System"],
    responses={503: {"description": "Pipeline not yet initialised"}},
)
def health_check() -> HealthResponse:
    """Returns service status and configuration info."""
    pipeline = _get_pipeline()
    return HealthResponse(
        status="healthy",
        version=__version__,
        processors_loaded=len(pipeline.registry),
        vision_enabled=bool(_vision and _vision.enabled),
    )


@app.get("/document-types", summary="List registered document kinds", tags=["Documents"])
def document_types() -> list[DocumentTypeOut]:
    """Kinds the capture UI can offer, with their processor metadata."""
    registry = _get_pipeline().registry
    out = []
    for kind in registry.get_types():
        processor = registry.resolve(kind)
        out.append(
            DocumentTypeOut(
                kind=kind.value,
                name=processor.metadata.name,
                description=processor.metadata.description,
                version=registry.version_of(kind),
                model=processor.metadata.model_hint.model,
            )
        )
    return out


@app.post(
    "/process/{kind}",
    summary="Process raw vision output for one document",
    tags=["Documents"],
    responses={
        404: {"description": "Unknown document kind"},
        422: {"description": "Nothing usable found in the input"},
        503: {"description": "Pipeline not yet initialised"},
    },
)
async def process_document(kind: str, request: ProcessRequest) -> ProcessResponse:
    """Run extract → validate → enrich → format on already-read vision output.

    Returns a report with:
    - **is_valid**: `true` if there are no blocking errors
    - **warnings**: non-blocking issues worth showing the user
    - **enriched**: draft plus derived fields (VIN decode, expiry countdown, ...)
    - **summary**: one display line
    """
    pipeline = _get_pipeline()
    try:
        report = await asyncio.to_thread(pipeline.run, kind, request.raw)
    except RegistryLookupError as e:
        raise _not_registered(e)
    except ExtractionError as e:
        raise _extraction_failed(e)
    return _build_response(report)


@app.post(
    "/capture/{kind}",
    summary="Process a document photo",
    tags=["Documents"],
    responses={
        400: {"description": "Upload is not an image"},
        404: {"description": "Unknown document kind"},
        413: {"description": "Image too large (max 10 MB)"},
        422: {"description": "No document found in the image"},
        503: {"description": "Vision service not configured"},
    },
)
async def capture_document(kind: str, file: UploadFile) -> ProcessResponse:
    """Upload a JPEG/PNG/WebP photo; the vision model reads it, then the pipeline runs."""
    pipeline = _get_pipeline()
    if _vision is None or not _vision.enabled:
        raise HTTPException(status_code=503, detail="Vision service not configured")

    if file.size and file.size > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=413, detail="Image too large (max 10 MB)")

    mime_type = file.content_type or "image/jpeg"
    if not mime_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="Upload must be an image")

    image = await file.read()
    try:
        report = await asyncio.to_thread(pipeline.run_image, kind, image, _vision, mime_type)
    except RegistryLookupError as e:
        raise _not_registered(e)
    except ExtractionError as e:
        raise _extraction_failed(e)
    return _build_response(report)
