"""
Runtime configuration, read from the environment (and a local .env file).

    OPENAI_API_KEY          enables the vision call; without it capture is disabled
    VISION_MODEL            overrides every processor's model hint when set
    NHTSA_BASE_URL          VIN decode endpoint (default: public vPIC API)
    NHTSA_TIMEOUT_SECONDS   VIN decode timeout
    NHTSA_CACHE_TTL_SECONDS how long a successful VIN decode is reused (0 disables)
    LOG_LEVEL               logging level for the entry points
"""

from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from .vin_decoder import DEFAULT_CACHE_TTL_SECONDS, NHTSA_BASE_URL


class Settings(BaseModel):
    openai_api_key: Optional[str] = None
    vision_model: Optional[str] = None
    nhtsa_base_url: str = NHTSA_BASE_URL
    nhtsa_timeout_seconds: float = 10.0
    nhtsa_cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS
    log_level: str = "INFO"

    @property
    def vision_enabled(self) -> bool:
        return bool(self.openai_api_key)


def load_settings(dotenv: bool = True) -> Settings:
    """Build Settings from environment variables (after loading .env if present)."""
    if dotenv:
        load_dotenv()

    env = os.environ
    return Settings(
        openai_api_key=env.get("OPENAI_API_KEY") or None,
        vision_model=env.get("VISION_MODEL") or None,
        nhtsa_base_url=env.get("NHTSA_BASE_URL") or NHTSA_BASE_URL,
        nhtsa_timeout_seconds=float(env.get("NHTSA_TIMEOUT_SECONDS") or 10.0),
        nhtsa_cache_ttl_seconds=float(
            env.get("NHTSA_CACHE_TTL_SECONDS") or DEFAULT_CACHE_TTL_SECONDS
        ),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
