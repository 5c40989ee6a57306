"""
FastAPI endpoint tests for the Vehicle Docs API.

Uses httpx + FastAPI TestClient: no real server, no vision calls, no
NHTSA calls. The pipeline is built with a stub VIN decoder.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import api
import pytest
from api import app
from fastapi.testclient import TestClient

from vehicle_docs.pipeline import DocumentPipeline
from vehicle_docs.registry import build_default_registry
from vehicle_docs.vision_client import VisionClient

client = TestClient(app)

VIN_TEXT = "VEHICLE ID: 1HGBH41JXMN109186 LOCATED ON DOOR JAMB"


def _stub_decoder(vin: str) -> dict[str, Any]:
    return {"make": "Honda", "model": "Accord", "year": 2002}


class _FakeCompletions:
    def __init__(self, content: str | None):
        self.content = content

    def create(self, **kwargs: Any) -> Any:
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _fake_vision(content: str | None) -> VisionClient:
    completions = _FakeCompletions(content)
    return VisionClient(client=SimpleNamespace(chat=SimpleNamespace(completions=completions)))


@pytest.fixture(scope="module", autouse=True)
def _warm_pipeline() -> None:
    """Initialise the pipeline once for all API tests (bypasses lifespan)."""
    api._pipeline = DocumentPipeline(build_default_registry(_stub_decoder))
    yield  # type: ignore[misc]
    api._pipeline = None


@pytest.fixture(autouse=True)
def _reset_vision() -> None:
    api._vision = None
    yield  # type: ignore[misc]
    api._vision = None


class TestHealthEndpoint:
    def test_health_returns_200(self) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200

    def test_health_response_shape(self) -> None:
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"
        assert data["processors_loaded"] == 5
        assert data["vision_enabled"] is False

    def test_vision_enabled_flag(self) -> None:
        api._vision = _fake_vision("x")
        assert client.get("/health").json()["vision_enabled"] is True


class TestDocumentTypesEndpoint:
    def test_lists_all_kinds(self) -> None:
        data = client.get("/document-types").json()
        assert [d["kind"] for d in data] == [
            "vin",
            "license-plate",
            "drivers-license",
            "insurance",
            "odometer",
        ]

    def test_entry_shape(self) -> None:
        vin = client.get("/document-types").json()[0]
        assert vin["name"] == "VIN"
        assert vin["version"] == "1.0.0"
        assert vin["model"] == "gpt-4o"


class TestProcessEndpoint:
    def test_vin(self) -> None:
        resp = client.post("/process/vin", json={"raw": VIN_TEXT})
        assert resp.status_code == 200
        data = resp.json()
        assert data["is_valid"] is True
        assert data["summary"] == "2002 Honda Accord"
        assert data["enriched"]["validated"] is True
        assert data["draft"]["location"] == "door_jamb"
        assert data["warning_count"] == 0
        assert len(data["original_hash"]) == 64

    def test_card_as_json_object(self) -> None:
        resp = client.post(
            "/process/drivers-license",
            json={
                "raw": {
                    "licenseNumber": "D1234567",
                    "firstName": "Sarah",
                    "lastName": "Connor",
                    "dateOfBirth": "1985-05-13",
                    "state": "CA",
                }
            },
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["summary"] == "Sarah Connor (CA D1234567)"
        assert data["enriched"]["full_name"] == "Sarah Connor"

    def test_inverted_policy_is_rejected(self) -> None:
        raw = (
            '{"policy_number": "PA-1", "carrier": "Acme Mutual", "policyholder_name": "Sarah",'
            ' "effective_date": "2025-06-01", "expiration_date": "2025-01-01"}'
        )
        data = client.post("/process/insurance", json={"raw": raw}).json()
        assert data["is_valid"] is False
        assert data["error_count"] == 1
        assert data["enriched"] is None

    def test_unknown_kind_is_404(self) -> None:
        resp = client.post("/process/passport", json={"raw": "anything"})
        assert resp.status_code == 404
        assert resp.json()["detail"]["code"] == "PROCESSOR_NOT_FOUND"

    def test_nothing_found_is_422(self) -> None:
        resp = client.post("/process/vin", json={"raw": "NOT_FOUND"})
        assert resp.status_code == 422
        detail = resp.json()["detail"]
        assert detail["code"] == "EXTRACTION_FAILED"
        assert detail["reason"] == "not_found"

    def test_missing_fields_detail(self) -> None:
        resp = client.post("/process/insurance", json={"raw": {"policy_number": "PA-1"}})
        assert resp.status_code == 422
        detail = resp.json()["detail"]
        assert detail["reason"] == "missing_fields"
        assert detail["details"]["missing_fields"] == ["Insurance carrier", "Policyholder name"]

    def test_missing_body_returns_422(self) -> None:
        resp = client.post("/process/vin", json={})
        assert resp.status_code == 422


class TestCaptureEndpoint:
    def test_capture_without_vision_is_503(self) -> None:
        resp = client.post("/capture/vin", files={"file": ("vin.jpg", b"img", "image/jpeg")})
        assert resp.status_code == 503

    def test_capture_reads_image(self) -> None:
        api._vision = _fake_vision("45,123 miles")
        resp = client.post("/capture/odometer", files={"file": ("odo.jpg", b"img", "image/jpeg")})
        assert resp.status_code == 200
        data = resp.json()
        assert data["summary"] == "45,123 miles"
        assert data["enriched"]["mileage_category"] == "medium"

    def test_non_image_is_400(self) -> None:
        api._vision = _fake_vision("x")
        resp = client.post("/capture/vin", files={"file": ("notes.txt", b"hello", "text/plain")})
        assert resp.status_code == 400

    def test_vision_not_found_is_422(self) -> None:
        api._vision = _fake_vision("NOT_FOUND")
        resp = client.post("/capture/vin", files={"file": ("vin.jpg", b"img", "image/jpeg")})
        assert resp.status_code == 422

    def test_unknown_kind_is_404(self) -> None:
        api._vision = _fake_vision("x")
        resp = client.post("/capture/passport", files={"file": ("p.jpg", b"img", "image/jpeg")})
        assert resp.status_code == 404
