from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List

import structlog
from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for

__all__: list[str] = [
    "ValidationIssue",
    "ValidationReport",
    "validate",
    "validate_json",
]

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ValidationIssue:
    """One failed constraint, addressed by JSON pointer into the instance."""

    pointer: str
    message: str


@dataclass(frozen=True)
class ValidationReport:
    valid: bool
    errors: List[ValidationIssue] = field(default_factory=list)

    def as_swagger_errors(self) -> Dict[str, List[Dict[str, str]]]:
        """Render the report in the ``Invalid Swagger`` response body shape."""
        return {
            "Invalid Swagger": [
                {"source": issue.pointer, "message": issue.message}
                for issue in self.errors
            ]
        }


def _pointer(path: Any) -> str:
    parts = [str(p).replace("~", "~0").replace("/", "~1") for p in path]
    return "/" + "/".join(parts) if parts else ""


def validate(instance: Any, schema: Dict[str, Any]) -> ValidationReport:
    """Validate **instance** against **schema** structurally.

    The validator class follows the schema's ``$schema`` keyword and defaults
    to Draft 2020-12.  Errors are sorted by pointer so reports are stable.

    Args:
        instance: Parsed JSON document to check.
        schema: Parsed JSON-schema document.

    Returns:
        A :class:`ValidationReport`; ``valid`` is True exactly when no errors
        were found.
    """
    validator_cls = validator_for(schema, default=Draft202012Validator)
    try:
        validator_cls.check_schema(schema)
    except SchemaError as exc:
        logger.warning("type_schema_invalid", error=exc.message)
        return ValidationReport(
            valid=False,
            errors=[ValidationIssue(pointer=_pointer(exc.path), message=exc.message)],
        )

    issues = [
        ValidationIssue(pointer=_pointer(err.absolute_path), message=err.message)
        for err in validator_cls(schema).iter_errors(instance)
    ]
    issues.sort(key=lambda issue: (issue.pointer, issue.message))
    return ValidationReport(valid=not issues, errors=issues)


def validate_json(instance_text: str, schema_text: str) -> ValidationReport:
    """Parse both documents, then :func:`validate` them.

    Unparsable text yields a single issue with an empty pointer instead of an
    exception, so callers can answer with the usual ``Invalid Swagger`` body.
    """
    try:
        instance = json.loads(instance_text)
    except (TypeError, json.JSONDecodeError) as exc:
        return ValidationReport(
            valid=False,
            errors=[ValidationIssue(pointer="", message=f"Invalid JSON: {exc}")],
        )
    try:
        schema = json.loads(schema_text)
    except (TypeError, json.JSONDecodeError) as exc:
        return ValidationReport(
            valid=False,
            errors=[ValidationIssue(pointer="", message=f"Invalid JSON schema: {exc}")],
        )
    if not isinstance(schema, (dict, bool)):
        return ValidationReport(
            valid=False,
            errors=[ValidationIssue(pointer="", message="JSON schema must be an object")],
        )
    if isinstance(schema, bool):
        schema = {} if schema else {"not": {}}
    return validate(instance, schema)
