"""
Parsing of structured (JSON) responses from the vision service.

The card prompts ask the model for a fenced JSON object. What actually comes
back ranges from clean JSON to prose with a code block in the middle, so we
locate the object first and decode it second.

The outcome is explicit so callers can tell apart:
  - OK         a JSON object was decoded
  - MALFORMED  the service returned something that is not a JSON object
  - NOT_FOUND  the service correctly said "no document here"
"""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

NOT_FOUND_SENTINEL = "NOT_FOUND"

_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


class ParseOutcome(str, Enum):
    OK = "ok"
    MALFORMED = "malformed"
    NOT_FOUND = "not_found"


class JsonParseResult(BaseModel):
    outcome: ParseOutcome
    data: dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome == ParseOutcome.OK


def is_not_found(raw: Any) -> bool:
    """True for None, blank text and the literal NOT_FOUND sentinel."""
    if raw is None:
        return True
    if isinstance(raw, str):
        text = raw.strip()
        return not text or text.upper() == NOT_FOUND_SENTINEL
    return False


def parse_vision_json(raw: Any) -> JsonParseResult:
    """Decode a vision response into a snake_case dict."""
    if is_not_found(raw):
        return JsonParseResult(outcome=ParseOutcome.NOT_FOUND, error="Empty response")

    if isinstance(raw, dict):
        data: Any = raw
    else:
        candidate = _locate_json(str(raw))
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as e:
            return JsonParseResult(outcome=ParseOutcome.MALFORMED, error=str(e))

    if not isinstance(data, dict):
        return JsonParseResult(
            outcome=ParseOutcome.MALFORMED,
            error=f"Expected a JSON object, got {type(data).__name__}",
        )

    data = normalize_keys(data)

    # The prompts tell the model to answer {"error": "..."} when no card is visible
    if data.get("error"):
        return JsonParseResult(
            outcome=ParseOutcome.NOT_FOUND, data=data, error=str(data["error"])
        )

    return JsonParseResult(outcome=ParseOutcome.OK, data=data)


def normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    """camelCase / 'Spaced Keys' → snake_case, one level deep."""
    return {_to_snake(str(key)): value for key, value in data.items()}


# ─── Internal Helpers ────────────────────────────────────────────────


def _locate_json(text: str) -> str:
    fenced = _FENCE_PATTERN.search(text)
    if fenced:
        return fenced.group(1).strip()

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start : end + 1]
    return text.strip()


def _to_snake(key: str) -> str:
    key = _CAMEL_BOUNDARY.sub("_", key.strip())
    return re.sub(r"[\s\-]+", "_", key).lower()
