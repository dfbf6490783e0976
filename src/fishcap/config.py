"""Client configuration assembled from environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, Field

from fishcap.env import load_dotenv
from fishcap.generation.models import DEFAULT_MAX_ATTEMPTS, DEFAULT_TIMEOUT_MS

_TRUTHY = {"1", "true", "yes", "on"}

# field name -> environment variable
_ENV_VARS: dict[str, str] = {
    "api_key": "GEMINI_API_KEY",
    "provider": "FISHCAP_LLM_PROVIDER",
    "api_base": "FISHCAP_LLM_API_BASE",
    "default_timeout_ms": "FISHCAP_TIMEOUT_MS",
    "default_max_attempts": "FISHCAP_MAX_ATTEMPTS",
    "max_backoff_ms": "FISHCAP_MAX_BACKOFF_MS",
    "retry_on_parse_error": "FISHCAP_RETRY_ON_PARSE_ERROR",
    "cache_ttl_s": "FISHCAP_CACHE_TTL_S",
    "prompt_version": "FISHCAP_PROMPT_VERSION",
}


class ClientConfig(BaseModel):
    """Settings for the gateway, the attempt loop and the cache."""

    api_key: str | None = Field(default=None, repr=False)
    provider: str = "gemini"
    api_base: str | None = None
    default_timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    default_max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    max_backoff_ms: float = Field(default=30_000.0, gt=0.0)
    retry_on_parse_error: bool = False
    cache_ttl_s: float = Field(default=24 * 60 * 60, gt=0.0)
    prompt_version: str = "v1"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ClientConfig:
        """Build a config from ``environ`` (default: `.env` merged into ``os.environ``)."""
        if environ is None:
            load_dotenv()
            environ = os.environ

        values: dict[str, object] = {}
        for field_name, env_var in _ENV_VARS.items():
            raw = environ.get(env_var)
            if raw is None or raw.strip() == "":
                continue
            if field_name == "retry_on_parse_error":
                values[field_name] = raw.strip().lower() in _TRUTHY
            else:
                values[field_name] = raw.strip()
        return cls.model_validate(values)
