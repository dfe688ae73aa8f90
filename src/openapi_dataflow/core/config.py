"""
Service configuration

All settings come from environment variables (or a local ``.env`` file) and
are read once per process through :func:`get_settings`.  ``enable_decoding``
is switched off so list and mapping settings reach the validators as raw
strings; that lets operators write ``ALLOWED_API_KEYS=k1,k2`` as well as a
JSON array.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__: list[str] = [
    "Settings",
    "get_settings",
]


def _parse_csv_str(v: str) -> List[str]:
    """Parse a comma-separated string into a list of values, stripping whitespace."""
    return [x.strip() for x in v.split(",") if x.strip()]


def _json_or_none(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None


class Settings(BaseSettings):
    """Runtime configuration of the dataflow service."""

    debug: bool = False
    commit_sha: Optional[str] = None
    prometheus_enabled: bool = True

    # Empty list disables the x-api-key check
    allowed_api_keys: List[str] = Field(default_factory=list)

    # Keyed store holding routes, flows, request records and entity tables
    redis_url: str = "redis://localhost:6379/0"

    # Fixed deployment prefix in front of every dataflow route
    route_prefix: str = "api/dataflow"

    # Used when a request carries no usable ``Accept`` header
    default_accept: str = "application/json"

    # Extra ``[#name#]`` values available to every response template
    static_placeholders: Dict[str, str] = Field(default_factory=dict)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        enable_decoding=False,
    )

    @field_validator("route_prefix")
    @classmethod
    def _strip_route_prefix(cls, v: str) -> str:
        """Store the prefix without surrounding slashes (``api/dataflow``)."""
        stripped = v.strip("/")
        if not stripped:
            raise ValueError("ROUTE_PREFIX must not be empty")
        return stripped

    @field_validator("allowed_api_keys", mode="before")
    @classmethod
    def _coerce_allowed_api_keys(cls, v: Any) -> List[str]:
        """Accept a JSON array or a comma-separated string.

        A string that only looks like an array but does not parse is split on
        commas like any other string.
        """
        if v is None:
            return []
        if isinstance(v, str):
            stripped = v.strip()
            parsed = _json_or_none(stripped) if stripped.startswith("[") else None
            if not isinstance(parsed, list):
                return _parse_csv_str(v)
            v = parsed
        return [str(x).strip() for x in v if str(x).strip()]

    @field_validator("static_placeholders", mode="before")
    @classmethod
    def _coerce_static_placeholders(cls, v: Any) -> Dict[str, str]:
        """Accept a JSON object string; values are stored as text."""
        if v is None or v == "":
            return {}
        if isinstance(v, str):
            v = _json_or_none(v)
        if not isinstance(v, dict):
            raise ValueError("STATIC_PLACEHOLDERS must be a JSON object")
        return {str(key): "" if val is None else str(val) for key, val in v.items()}


_CACHED_SETTINGS: Optional[Settings] = None


def get_settings() -> Settings:  # noqa: D401 – accessor helper
    """Return the process-wide Settings instance.

    Under pytest (``PYTEST_CURRENT_TEST`` set) every call builds a fresh
    instance so tests can change the environment between calls.
    """

    global _CACHED_SETTINGS  # noqa: PLW0603 – module-level singleton

    if "PYTEST_CURRENT_TEST" in os.environ:
        return Settings()

    if _CACHED_SETTINGS is None:
        _CACHED_SETTINGS = Settings()

    return _CACHED_SETTINGS


def _clear_settings_cache() -> None:
    global _CACHED_SETTINGS
    _CACHED_SETTINGS = None


get_settings.cache_clear = _clear_settings_cache  # type: ignore[attr-defined]
