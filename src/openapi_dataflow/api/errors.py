"""
Global exception handlers

Failures inside the dataflow dispatcher never get here: the dispatcher
answers them itself so it can record them on the request log.  These handlers
cover what surrounds it (authentication and other HTTP errors, request
validation, dataflow errors raised from dependencies and anything
unexpected) with the same envelope the dispatcher uses, built by
:func:`~openapi_dataflow.core.exceptions.error_envelope`.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Dict

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from openapi_dataflow.core.exceptions import DataflowError, error_envelope

__all__: list[str] = ["add_exception_handlers"]

logger = structlog.get_logger("errors")


def _request_id(request: Request) -> str | None:
    """Client-supplied id, else the one bound by RequestLoggingMiddleware."""
    return request.headers.get("x-request-id") or structlog.contextvars.get_contextvars().get(
        "request_id"
    )


def _error_response(
    request: Request,
    status_code: int,
    code: str | int,
    message: str,
    extra: Dict[str, Any] | None = None,
    **top_level: Any,
) -> JSONResponse:
    payload = error_envelope(code, message, _request_id(request), extra)
    payload.update(top_level)
    return JSONResponse(status_code=status_code, content=payload)


async def _http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Errors raised explicitly by routers and dependencies (401, 503, ...)."""

    detail = str(exc.detail)
    logger.warning(
        "http_exception",
        path=request.url.path,
        status_code=exc.status_code,
        detail=detail,
    )
    # Starlette clients read the top-level ``detail``
    return _error_response(request, exc.status_code, exc.status_code, detail, detail=detail)


async def _validation_error_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    logger.warning("validation_error", path=request.url.path, errors=exc.errors())
    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "validation_error",
        "Invalid request parameters.",
        extra={"details": exc.errors()},
    )


async def _dataflow_error_handler(
    request: Request,
    exc: DataflowError,
) -> JSONResponse:
    """Dataflow failures raised before the dispatcher took over the request."""

    logger.error(
        "dataflow_error",
        path=request.url.path,
        code=exc.code,
        logid=exc.logid,
        error=exc.message,
    )
    return _error_response(
        request, exc.status_code, exc.code, exc.message, extra={"logid": exc.logid}
    )


async def _unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:  # noqa: D401 – FastAPI handler sig
    logger.exception("unhandled_exception", path=request.url.path, error=str(exc))
    return _error_response(
        request,
        HTTPStatus.INTERNAL_SERVER_ERROR,
        "internal_server_error",
        "An unexpected error occurred.",
    )


def add_exception_handlers(app: FastAPI) -> None:  # noqa: D401 – imperative
    """Register all global exception handlers on **app**."""

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(DataflowError, _dataflow_error_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
