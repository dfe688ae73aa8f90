"""
Operational endpoints under ``/v1``

``/v1/routes`` lists the stored route table in match order, which is the
quickest way to see why a path resolved to an unexpected route.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List

import structlog
from fastapi import APIRouter, Depends, Request

from openapi_dataflow.core.config import Settings, get_settings
from openapi_dataflow.storage.client import RedisT, get_redis_client
from openapi_dataflow.storage.routes import RouteStore
from openapi_dataflow.utils.auth import verify_api_key

__all__: list[str] = [
    "router",
]

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/v1",
    tags=["Admin"],
    dependencies=[Depends(verify_api_key)],
)

SettingsDep = Annotated[Settings, Depends(get_settings)]


@router.get("/health", response_model=Dict[str, str])
async def health(settings: SettingsDep) -> Dict[str, str]:
    return {"status": "ok", "commit_sha": settings.commit_sha or "unknown"}


@router.get("/version", summary="Application version information")
async def version(request: Request, settings: SettingsDep) -> Dict[str, Any]:
    """Application version, git commit and the prefix dataflow routes live under."""
    return {
        "version": request.app.version,
        "commit_sha": settings.commit_sha,
        "route_prefix": settings.route_prefix,
    }


@router.get("/routes", summary="Stored dataflow routes in match order")
async def list_routes(
    redis_client: Annotated[RedisT, Depends(get_redis_client)],
    settings: SettingsDep,
) -> List[Dict[str, Any]]:
    """Return every stored route; the first whose ``in_url`` prefixes a path wins."""
    routes = await RouteStore(redis_client).load_all()
    logger.debug("routes_listed", count=len(routes))
    return [
        {
            "uid": route.uid,
            "in_url": route.in_url,
            "flow_alias": route.flow_alias,
            "url": f"/{settings.route_prefix}/{route.in_url}",
            "has_openapi": bool(route.swagger_json),
            "has_type_schema": bool(route.type_schema_json),
        }
        for route in routes
    ]
