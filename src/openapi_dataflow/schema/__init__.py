"""OpenAPI schema interpretation: node classification, entity lookup, response
building, merging and validation."""

from __future__ import annotations

from .builder import build
from .defaults import find_default_response
from .locator import (
    extract_attribute_bindings,
    find_response_schema,
    locate,
    schemas_of,
)
from .merge import deep_merge
from .nodes import SchemaNode, parse_node
from .validator import ValidationReport, validate, validate_json

__all__: list[str] = [
    "build",
    "deep_merge",
    "extract_attribute_bindings",
    "find_default_response",
    "find_response_schema",
    "locate",
    "parse_node",
    "schemas_of",
    "SchemaNode",
    "validate",
    "validate_json",
    "ValidationReport",
]
