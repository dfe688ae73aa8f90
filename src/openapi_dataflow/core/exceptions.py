"""
Core Custom Exceptions

Every failure that can happen while a dataflow request is being processed is
expressed as a :class:`DataflowError` subclass.  Each class carries the HTTP
status it maps to, so the dispatcher can classify a failure with a single
``except`` boundary and the request log can record the status code even when
no response object was built yet.

Defined Exceptions:
- `RoutingError`: no stored route matches the requested path (404).
- `ContractValidationError`: an OpenAPI document does not satisfy its
  route-type JSON schema (400).
- `UnsupportedInputError`: a flow step received a task it cannot process,
  e.g. a non-HTTP task for a step that needs the HTTP request (400).
- `SchemaBindingError`: the OpenAPI document does not bind the requested
  entity or response schema, or its bindings contradict each other (500).
- `UnsupportedSchemaShapeError`: the bound schema has a shape the response
  builder does not implement, e.g. a non-object root (501).
- `ExecutionError`: any other failure from the flow engine or backend (500).
- `LifecycleTransitionError`: a request record was moved out of a terminal
  state or backwards (500).
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from openapi_dataflow.schema.validator import ValidationReport

__all__: list[str] = [
    "DataflowError",
    "RoutingError",
    "ContractValidationError",
    "UnsupportedInputError",
    "SchemaBindingError",
    "UnsupportedSchemaShapeError",
    "ExecutionError",
    "LifecycleTransitionError",
    "error_envelope",
]


class DataflowError(Exception):
    """Base class for all dataflow failures.

    Attributes:
        message: Human-readable description.
        status_code: HTTP status the failure maps to.
        code: Machine-readable snake_case identifier used in error envelopes.
        logid: Correlation id shared by the error response and the request log.
    """

    status_code: int = 500
    code: str = "dataflow_error"

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.logid = uuid.uuid4().hex
        if status_code is not None:
            self.status_code = status_code


class RoutingError(DataflowError):
    """Raised when no route configuration matches the requested path."""

    status_code = 404
    code = "route_not_found"


class ContractValidationError(DataflowError):
    """Raised when an OpenAPI document fails its route-type schema."""

    status_code = 400
    code = "invalid_swagger"

    def __init__(self, message: str, report: "ValidationReport") -> None:
        super().__init__(message)
        self.report = report


class UnsupportedInputError(DataflowError):
    status_code = 400
    code = "unsupported_input"


class SchemaBindingError(DataflowError):
    status_code = 500
    code = "schema_not_bound"


class UnsupportedSchemaShapeError(DataflowError):
    status_code = 501
    code = "unsupported_schema_shape"


class ExecutionError(DataflowError):
    """Generic flow or backend failure.

    Foreign exceptions are wrapped into this class before they reach the
    request log so that every failure carries a status code.
    """

    status_code = 500
    code = "execution_error"

    @classmethod
    def wrap(cls, exc: BaseException) -> "DataflowError":
        if isinstance(exc, DataflowError):
            return exc
        wrapped = cls(str(exc) or exc.__class__.__name__)
        wrapped.__cause__ = exc
        return wrapped


class LifecycleTransitionError(DataflowError):
    status_code = 500
    code = "invalid_lifecycle_transition"


def error_envelope(
    code: str | int,
    message: str,
    request_id: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Return the JSON error body shared by the dispatcher and the API handlers.

    ``{"error": {"code", "message", "request_id", ...extra}}``
    """
    body: Dict[str, Any] = {"code": code, "message": message, "request_id": request_id}
    if extra:
        body.update(extra)
    return {"error": body}
