"""Pytest configuration: project root on sys.path, no live vision calls."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent))


@pytest.fixture(autouse=True)
def _vision_disabled(monkeypatch):
    """Strip the OpenAI key so nothing built in a test can reach the API."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("VISION_MODEL", raising=False)
    yield
