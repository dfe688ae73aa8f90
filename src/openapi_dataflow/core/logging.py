"""
Structured logging

Every log line is one JSON object rendered by structlog.  Lines written while
an HTTP request is served carry ``request_id``, ``method`` and ``path``; for
requests below the route prefix they also carry ``route_path``, the part of
the URL the route table is matched against.  The request lifecycle, the flow
engine and the steps log inside that context, so one request can be followed
from receipt to its terminal status by its ``request_id``.
"""

from __future__ import annotations

import logging
import sys
import time
import uuid
from typing import Any, Awaitable, Callable, Optional

# structlog must be imported before its typing helpers
import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp
from structlog.types import EventDict, Processor

__all__: list[str] = [
    "configure_logging",
    "RequestLoggingMiddleware",
]

_CONTEXT_KEYS: tuple[str, ...] = ("request_id", "path", "route_path")


def _ensure_request_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Give every entry the request context keys, ``None`` outside a request."""
    for key in _CONTEXT_KEYS:
        event_dict.setdefault(key, None)
    return event_dict


_JSON_PROCESSORS: list[Processor] = [
    structlog.contextvars.merge_contextvars,
    _ensure_request_context,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.format_exc_info,
    structlog.processors.JSONRenderer(),
]

# Per-request lines come from RequestLoggingMiddleware
_QUIET_LOGGERS: tuple[str, ...] = ("uvicorn.access",)


def _configure_stdlib_logging(level: int) -> None:
    """Send stdlib records (uvicorn, starlette, redis) to stderr unformatted."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


_LOGGING_CONFIGURED: bool = False


def configure_logging(debug: bool = False) -> None:
    """Initialise structlog for the process; later calls are no-ops.

    Parameters
    ----------
    debug:
        When *True* lowers the log level to ``DEBUG``; otherwise ``INFO``.
    """

    global _LOGGING_CONFIGURED

    if _LOGGING_CONFIGURED:
        return

    level: int = logging.DEBUG if debug else logging.INFO
    _configure_stdlib_logging(level)

    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        processors=_JSON_PROCESSORS,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _LOGGING_CONFIGURED = True


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind the request context and log one line per HTTP request.

    Requests below **route_prefix** are logged as ``dataflow_request_completed``
    with their ``route_path``; all others as ``request_completed``.  The
    ``X-Request-ID`` header is echoed, or generated when the client sent none.
    """

    def __init__(self, app: ASGIApp, route_prefix: str = "") -> None:
        super().__init__(app)
        prefix = route_prefix.strip("/")
        self._route_marker: Optional[str] = f"/{prefix}/" if prefix else None

    def _route_path(self, path: str) -> Optional[str]:
        if self._route_marker and path.startswith(self._route_marker):
            return path[len(self._route_marker) :]
        return None

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        start: float = time.perf_counter()
        request_id: str = request.headers.get("x-request-id") or uuid.uuid4().hex
        route_path = self._route_path(request.url.path)

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            route_path=route_path,
        )

        status_code = 500
        try:
            response: Response = await call_next(request)
            status_code = response.status_code
        finally:
            structlog.get_logger("http").info(
                "request_completed" if route_path is None else "dataflow_request_completed",
                status_code=status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
                user=getattr(request.state, "user", None),
            )
            structlog.contextvars.clear_contextvars()

        response.headers["X-Request-ID"] = request_id
        return response
