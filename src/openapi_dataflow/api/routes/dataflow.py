"""
Dataflow catch-all router

Every method on every path below the route prefix is handed to the
:class:`~openapi_dataflow.dispatcher.Dispatcher`.  The router is mounted by the
application under ``/{settings.route_prefix}``.

The route table cache (:class:`~openapi_dataflow.storage.routes.RouteResolver`)
belongs to the application instance: it is created on the first dataflow
request, kept on ``app.state`` and dropped on shutdown.  Everything else is
cheap and built per request.
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import Response

from openapi_dataflow.core.config import Settings, get_settings
from openapi_dataflow.dispatcher import Dispatcher
from openapi_dataflow.flows.engine import FlowInvoker, StepFlowEngine
from openapi_dataflow.lifecycle import RequestLifecycleLogger
from openapi_dataflow.storage.client import RedisT, get_redis_client
from openapi_dataflow.storage.flows import FlowStore
from openapi_dataflow.storage.requests import RequestLogStore
from openapi_dataflow.storage.routes import RouteResolver, RouteStore
from openapi_dataflow.storage.tables import RedisTableBackend
from openapi_dataflow.types import InboundRequest
from openapi_dataflow.utils.auth import verify_api_key

__all__: list[str] = [
    "router",
    "get_dispatcher",
    "get_route_resolver",
    "to_inbound_request",
]

logger = structlog.get_logger(__name__)

router = APIRouter(
    tags=["Dataflow"],
    dependencies=[Depends(verify_api_key)],
)

DATAFLOW_METHODS: list[str] = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def get_route_resolver(
    request: Request,
    redis_client: Annotated[RedisT, Depends(get_redis_client)],
) -> RouteResolver:
    """Return the application's route table cache, creating it on first use."""
    app: FastAPI = request.app
    resolver = getattr(app.state, "route_resolver", None)
    if resolver is None:
        resolver = RouteResolver(RouteStore(redis_client))
        app.state.route_resolver = resolver
        logger.debug("route_resolver_created")
    return resolver


def get_dispatcher(
    resolver: Annotated[RouteResolver, Depends(get_route_resolver)],
    redis_client: Annotated[RedisT, Depends(get_redis_client)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Dispatcher:
    request_log = RequestLogStore(redis_client)
    engine = StepFlowEngine(
        flows=FlowStore(redis_client),
        backend=RedisTableBackend(redis_client),
        requests=request_log,
        static_placeholders=settings.static_placeholders,
        default_accept=settings.default_accept,
    )
    return Dispatcher(
        resolver=resolver,
        lifecycle=RequestLifecycleLogger(request_log, settings.route_prefix),
        invoker=FlowInvoker(engine),
        route_prefix=settings.route_prefix,
    )


async def to_inbound_request(request: Request) -> InboundRequest:
    """Snapshot a Starlette request for the dispatcher."""
    body = await request.body()
    headers: dict[str, str] = {}
    for key, value in request.headers.items():
        headers[key] = f"{headers[key]},{value}" if key in headers else value
    return InboundRequest(
        method=request.method.upper(),
        url=str(request.url),
        path=request.url.path.lstrip("/"),
        headers=headers,
        query_params=dict(request.query_params),
        body=body.decode("utf-8", errors="replace"),
    )


@router.api_route(
    "/{route_path:path}",
    methods=DATAFLOW_METHODS,
    include_in_schema=False,
)
async def dataflow(
    request: Request,
    route_path: str,
    dispatcher: Annotated[Dispatcher, Depends(get_dispatcher)],
) -> Response:
    """Dispatch any request below the route prefix to its dataflow route."""
    inbound = await to_inbound_request(request)
    result = await dispatcher.dispatch(inbound)
    logger.debug(
        "dataflow_dispatched",
        route_path=route_path,
        status_code=result.status_code,
    )
    return Response(
        content=result.body,
        status_code=result.status_code,
        headers=result.headers,
    )
