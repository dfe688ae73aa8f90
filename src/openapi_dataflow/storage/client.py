"""
Keyed store connection

One ``redis.asyncio`` client per process backs every store in this package
(routes, request log, flows, entity tables).  It is created by the first
request that needs it and closed by the application's shutdown hook.
Values are decoded to ``str`` on read (``decode_responses=True``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

import redis.asyncio as aioredis
import structlog
from fastapi import Depends, HTTPException, status
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from openapi_dataflow.core.config import Settings, get_settings

__all__: list[str] = [
    "RedisT",
    "get_redis_client",
    "close_redis_client",
]

logger = structlog.get_logger(__name__)

if TYPE_CHECKING:
    RedisT = aioredis.Redis[Any]
else:  # Runtime – plain class, avoids subscript TypeError
    RedisT = aioredis.Redis  # type: ignore[misc]

_REDIS_CLIENT: Optional[RedisT] = None


async def _connect(redis_url: str) -> RedisT:
    """Open a client and ping it; the client is closed again if the ping fails."""
    client = aioredis.from_url(redis_url, decode_responses=True)
    try:
        await client.ping()
    except (RedisConnectionError, RedisTimeoutError):
        await client.aclose()
        raise
    return client


async def get_redis_client(
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> RedisT:
    """FastAPI dependency returning the shared store client.

    Raises:
        HTTPException (503): If the store cannot be reached; the next request
            tries to connect again.
    """
    global _REDIS_CLIENT
    if _REDIS_CLIENT is not None:
        return _REDIS_CLIENT

    logger.info("store_connecting", url=settings.redis_url)
    try:
        _REDIS_CLIENT = await _connect(settings.redis_url)
    except (RedisConnectionError, RedisTimeoutError) as e:
        logger.error("store_connection_failed", error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not connect to the route store. Dataflow routes are unavailable.",
        ) from e
    logger.info("store_connected")
    return _REDIS_CLIENT


async def close_redis_client() -> None:
    global _REDIS_CLIENT
    if _REDIS_CLIENT is None:
        return
    client, _REDIS_CLIENT = _REDIS_CLIENT, None
    await client.aclose()
    logger.info("store_connection_closed")
