"""OpenAPI Dataflow ─ FastAPI application
========================================

This module hosts the **production ASGI application**.

Usage
-----
Run locally with::

    uvicorn openapi_dataflow.api.app:app --reload

Routes
------
* ``/{ROUTE_PREFIX}/{path}`` (any method): dataflow dispatcher.
* ``/v1/health``, ``/v1/version``: operational endpoints.
* ``/metrics``: Prometheus metrics when ``PROMETHEUS_ENABLED`` is set.
"""

from __future__ import annotations

# third-party
import structlog
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

# local imports
from openapi_dataflow.api.errors import add_exception_handlers
from openapi_dataflow.api.routes import admin as admin_router_module
from openapi_dataflow.api.routes import dataflow as dataflow_router_module
from openapi_dataflow.core.config import Settings, get_settings
from openapi_dataflow.core.logging import RequestLoggingMiddleware, configure_logging
from openapi_dataflow.storage.client import close_redis_client

__all__: list[str] = ["app", "create_app"]

# ---------------------------------------------------------------------------
# Initialise *process-wide* logging before any logger instantiation.
# ---------------------------------------------------------------------------
settings = get_settings()
configure_logging(settings.debug)
logger = structlog.get_logger(__name__)


def _register_routes(app_instance: FastAPI, app_settings: Settings) -> None:
    """Include the admin router and mount the dataflow catch-all under the prefix.

    The admin router goes first so ``/v1/...`` never reaches the dispatcher,
    even with a route prefix of ``v1``.
    """
    app_instance.include_router(admin_router_module.router)
    app_instance.include_router(
        dataflow_router_module.router,
        prefix=f"/{app_settings.route_prefix}",
    )


def create_app(app_settings: Settings | None = None) -> FastAPI:  # noqa: D401 – factory
    """Build the application for **app_settings** (module settings by default)."""

    app_settings = app_settings or settings

    app_instance = FastAPI(
        title="OpenAPI Dataflow",
        version="0.1.0",
        docs_url="/docs",
        redoc_url=None,
        openapi_url="/openapi.json",
    )

    # ------------------------------------------------------------------
    # Middleware – binds request_id/route_path for every downstream log line.
    # ------------------------------------------------------------------
    app_instance.add_middleware(RequestLoggingMiddleware, route_prefix=app_settings.route_prefix)

    # ------------------------------------------------------------------
    # Lifespan events
    # ------------------------------------------------------------------
    @app_instance.on_event("startup")
    async def _on_startup() -> None:  # pragma: no cover – trivial logging
        logger.info(
            "fastapi_startup",
            commit_sha=app_settings.commit_sha,
            route_prefix=app_settings.route_prefix,
        )

    @app_instance.on_event("shutdown")
    async def _on_shutdown() -> None:
        app_instance.state.route_resolver = None
        await close_redis_client()
        logger.info("fastapi_shutdown")

    @app_instance.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:  # noqa: D401
        return {"message": "OpenAPI Dataflow – FastAPI layer"}

    _register_routes(app_instance, app_settings)
    add_exception_handlers(app_instance)

    # ------------------------------------------------------------------
    # Prometheus metrics – gated behind PROMETHEUS_ENABLED; exposed under
    # **/metrics** and excluded from the OpenAPI schema.
    # ------------------------------------------------------------------
    if app_settings.prometheus_enabled:
        Instrumentator().instrument(app_instance).expose(
            app_instance,
            endpoint="/metrics",
            include_in_schema=False,
        )
        logger.info("prometheus_instrumentation_enabled")

    return app_instance


# ASGI entry point for uvicorn.
app: FastAPI = create_app()
