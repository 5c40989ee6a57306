"""
Registry, pipeline and vision client tests.

The vision service is replaced with fakes shaped like the OpenAI client;
the VIN decoder with plain functions.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest
from openai import OpenAIError

from vehicle_docs.config import load_settings
from vehicle_docs.exceptions import ExtractionError, RegistryLookupError
from vehicle_docs.models import DocumentKind
from vehicle_docs.pipeline import DocumentPipeline
from vehicle_docs.processors import OdometerProcessor, VinProcessor
from vehicle_docs.registry import ProcessorRegistry, build_default_registry, register_defaults
from vehicle_docs.vision_client import VisionClient


GOOD_VIN = "1HGBH41JXMN109186"
VIN_TEXT = "VEHICLE ID: 1HGBH41JXMN109186 LOCATED ON DOOR JAMB"


def _honda_decoder(vin: str) -> dict[str, Any]:
    return {"make": "Honda", "model": "Accord", "year": 2002}


def _failing_decoder(vin: str) -> dict[str, Any]:
    raise ConnectionError("network unreachable")


class _FakeCompletions:
    """Records calls and answers like ``client.chat.completions``."""

    def __init__(self, content: str | None = None, error: Exception | None = None):
        self.content = content
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _make_vision(content: str | None = None, error: Exception | None = None) -> tuple[VisionClient, _FakeCompletions]:
    completions = _FakeCompletions(content, error)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return VisionClient(client=client), completions


@pytest.fixture()
def pipeline() -> DocumentPipeline:
    return DocumentPipeline(build_default_registry(_honda_decoder))


# ═══════════════════════════════════════════════════════════════════════
# PROCESSOR REGISTRY
# ═══════════════════════════════════════════════════════════════════════


class TestRegistry:
    def test_defaults_in_registration_order(self):
        registry = build_default_registry()
        assert registry.get_types() == [
            DocumentKind.VIN,
            DocumentKind.LICENSE_PLATE,
            DocumentKind.DRIVERS_LICENSE,
            DocumentKind.INSURANCE,
            DocumentKind.ODOMETER,
        ]
        assert len(registry) == 5

    def test_resolve_by_enum_or_string(self):
        registry = build_default_registry()
        assert isinstance(registry.resolve("vin"), VinProcessor)
        assert isinstance(registry.resolve(" VIN "), VinProcessor)
        assert isinstance(registry.resolve(DocumentKind.ODOMETER), OdometerProcessor)

    def test_unknown_kind_string(self):
        with pytest.raises(RegistryLookupError) as exc_info:
            build_default_registry().resolve("passport")
        assert exc_info.value.code == "PROCESSOR_NOT_FOUND"

    def test_unregistered_kind(self):
        with pytest.raises(RegistryLookupError, match="No processor registered"):
            ProcessorRegistry().resolve(DocumentKind.VIN)

    def test_registering_defaults_twice_is_idempotent(self):
        registry = build_default_registry()
        register_defaults(registry)
        assert len(registry) == 5
        assert registry.version_of("vin") == "1.0.0"

    def test_newer_version_replaces(self):
        registry = build_default_registry()
        replacement = VinProcessor(_honda_decoder)
        registry.register(replacement, version="2.0.0")
        assert registry.resolve("vin") is replacement
        assert registry.version_of("vin") == "2.0.0"
        assert len(registry) == 5

    def test_unregister(self):
        registry = build_default_registry()
        registry.unregister("odometer")
        assert not registry.is_registered("odometer")
        assert DocumentKind.ODOMETER not in registry
        with pytest.raises(RegistryLookupError):
            registry.unregister("odometer")

    def test_membership(self):
        registry = build_default_registry()
        assert "insurance" in registry
        assert "passport" not in registry
        assert 42 not in registry


# ═══════════════════════════════════════════════════════════════════════
# DOCUMENT PIPELINE
# ═══════════════════════════════════════════════════════════════════════


class TestPipeline:
    def test_vin_end_to_end(self, pipeline: DocumentPipeline):
        report = pipeline.run("vin", VIN_TEXT)
        assert report.kind == DocumentKind.VIN
        assert report.is_valid is True
        assert report.warnings == []
        assert report.enriched is not None
        assert report.enriched.validated is True
        assert report.summary == "2002 Honda Accord"
        assert report.processor_version == "1.0.0"
        assert len(report.original_hash) == 64

    def test_hash_is_stable(self, pipeline: DocumentPipeline):
        first = pipeline.run("vin", VIN_TEXT).original_hash
        assert pipeline.run("vin", VIN_TEXT).original_hash == first
        assert pipeline.run("vin", VIN_TEXT.lower()).original_hash != first

    def test_dict_hash_ignores_key_order(self, pipeline: DocumentPipeline):
        card = {"policy_number": "P", "carrier": "C", "policyholder_name": "H"}
        reordered = dict(reversed(list(card.items())))
        assert (
            pipeline.run("insurance", card).original_hash
            == pipeline.run("insurance", reordered).original_hash
        )

    def test_decode_failure_does_not_block(self):
        pipeline = DocumentPipeline(build_default_registry(_failing_decoder))
        report = pipeline.run("vin", VIN_TEXT)
        assert report.is_valid is True
        assert report.enriched.validated is False
        assert "network unreachable" in report.enriched.error
        assert report.summary == GOOD_VIN

    def test_invalid_draft_is_not_enriched(self, pipeline: DocumentPipeline):
        # 16-character near-match: extracted, but fails the length rule
        report = pipeline.run("vin", "VIN: 1HGBH41JXMN10918")
        assert report.is_valid is False
        assert report.enriched is None
        assert report.draft is not None
        assert report.summary == "1HGBH41JXMN10918"

    def test_inverted_policy_is_rejected(self, pipeline: DocumentPipeline):
        report = pipeline.run(
            DocumentKind.INSURANCE,
            {
                "policy_number": "PA-1",
                "carrier": "Acme Mutual",
                "policyholder_name": "Sarah Connor",
                "effective_date": "2025-06-01",
                "expiration_date": "2025-01-01",
            },
        )
        assert report.is_valid is False
        assert report.enriched is None
        assert report.summary == "Acme Mutual - Policy #PA-1"

    def test_odometer(self, pipeline: DocumentPipeline):
        report = pipeline.run("odometer", "72,345 km")
        assert report.is_valid is True
        assert report.enriched.estimated_miles == 44_953
        assert report.summary == "72,345 kilometers"

    def test_extraction_error_propagates(self, pipeline: DocumentPipeline):
        with pytest.raises(ExtractionError):
            pipeline.run("vin", "NOT_FOUND")

    def test_unknown_kind_propagates(self, pipeline: DocumentPipeline):
        with pytest.raises(RegistryLookupError):
            pipeline.run("passport", "anything")

    def test_report_serializes_subclass_fields(self, pipeline: DocumentPipeline):
        dumped = pipeline.run("vin", VIN_TEXT).model_dump(mode="json")
        assert dumped["kind"] == "vin"
        assert dumped["enriched"]["make"] == "Honda"
        assert dumped["draft"]["character_quality"] == "good"


class TestPipelineWithVision:
    def test_image_is_read_then_processed(self, pipeline: DocumentPipeline):
        vision, completions = _make_vision(content=GOOD_VIN)
        report = pipeline.run_image("vin", b"\xff\xd8fake-jpeg", vision)
        assert report.summary == "2002 Honda Accord"
        assert len(completions.calls) == 1

    def test_no_answer_is_extraction_error(self, pipeline: DocumentPipeline):
        vision, _ = _make_vision(content=None)
        with pytest.raises(ExtractionError) as exc_info:
            pipeline.run_image("odometer", b"img", vision)
        assert exc_info.value.reason == ExtractionError.NOT_FOUND


# ═══════════════════════════════════════════════════════════════════════
# VISION CLIENT
# ═══════════════════════════════════════════════════════════════════════


class TestVisionClient:
    def test_disabled_without_key_or_client(self):
        vision = VisionClient()
        assert vision.enabled is False
        assert vision.read_document(b"img", VinProcessor.metadata) is None

    def test_request_uses_processor_metadata(self):
        vision, completions = _make_vision(content="45123 miles")
        answer = vision.read_document(b"img", OdometerProcessor.metadata, mime_type="image/png")
        assert answer == "45123 miles"

        call = completions.calls[0]
        assert call["model"] == "gpt-4o"
        assert call["max_tokens"] == OdometerProcessor.metadata.model_hint.max_tokens
        assert call["temperature"] == 0.0
        user_content = call["messages"][1]["content"]
        assert user_content[0]["text"] == OdometerProcessor.metadata.prompt
        assert user_content[1]["image_url"]["url"].startswith("data:image/png;base64,")

    def test_model_override(self):
        completions = _FakeCompletions(content="x")
        client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
        VisionClient(model_override="gpt-4o-mini", client=client).read_document(b"img", VinProcessor.metadata)
        assert completions.calls[0]["model"] == "gpt-4o-mini"

    def test_api_failure_returns_none(self):
        vision, _ = _make_vision(error=OpenAIError("rate limited"))
        assert vision.read_document(b"img", VinProcessor.metadata) is None

    def test_empty_answer_returns_none(self):
        vision, _ = _make_vision(content="")
        assert vision.read_document(b"img", VinProcessor.metadata) is None


# ═══════════════════════════════════════════════════════════════════════
# SETTINGS
# ═══════════════════════════════════════════════════════════════════════


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("NHTSA_BASE_URL", "NHTSA_TIMEOUT_SECONDS", "NHTSA_CACHE_TTL_SECONDS", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)
        settings = load_settings(dotenv=False)
        assert settings.openai_api_key is None
        assert settings.vision_enabled is False
        assert settings.nhtsa_base_url == "https://vpic.nhtsa.dot.gov/api"
        assert settings.nhtsa_timeout_seconds == 10.0
        assert settings.nhtsa_cache_ttl_seconds == 24 * 3600.0
        assert settings.log_level == "INFO"

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("VISION_MODEL", "gpt-4o-mini")
        monkeypatch.setenv("NHTSA_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("NHTSA_CACHE_TTL_SECONDS", "0")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        settings = load_settings(dotenv=False)
        assert settings.vision_enabled is True
        assert settings.vision_model == "gpt-4o-mini"
        assert settings.nhtsa_timeout_seconds == 2.5
        assert settings.nhtsa_cache_ttl_seconds == 0.0
        assert settings.log_level == "DEBUG"
