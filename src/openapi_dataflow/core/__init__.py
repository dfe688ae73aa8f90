"""Configuration, logging and the dataflow error hierarchy."""

from __future__ import annotations

from .config import Settings, get_settings  # noqa: F401
from .exceptions import DataflowError, error_envelope  # noqa: F401

__all__: list[str] = [
    "DataflowError",
    "Settings",
    "error_envelope",
    "get_settings",
]
