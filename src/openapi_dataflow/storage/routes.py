"""
Route table

Routes are stored as Redis hashes (``route:<uid>``); the list ``route:index``
records their storage order.  :class:`RouteResolver` loads the whole table
once, keeps it for its own lifetime and answers lookups from memory.  It is
owned by the dispatching context and passed around by reference, so its
lifetime is that of the application instance that created it.

Resolution is **first stored match**: the first route whose ``in_url`` is a
prefix of the requested path wins, even if a later route has a longer, more
specific prefix.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional

import structlog

from openapi_dataflow.core.exceptions import RoutingError
from openapi_dataflow.models import RouteConfig
from openapi_dataflow.storage.client import RedisT

__all__: list[str] = [
    "ROUTE_INDEX_KEY",
    "RouteStore",
    "RouteResolver",
]

logger = structlog.get_logger(__name__)

ROUTE_INDEX_KEY = "route:index"
_ROUTE_KEY_PREFIX = "route:"


def _route_key(uid: str) -> str:
    return f"{_ROUTE_KEY_PREFIX}{uid}"


class RouteStore:
    """Read/update access to persisted route configurations."""

    def __init__(self, redis_client: RedisT) -> None:
        self._redis = redis_client

    async def load_all(self) -> List[RouteConfig]:
        """Return all routes in storage order; dangling index entries are skipped."""
        uids = await self._redis.lrange(ROUTE_INDEX_KEY, 0, -1)
        routes: List[RouteConfig] = []
        for uid in uids:
            data = await self._redis.hgetall(_route_key(uid))
            if not data:
                logger.warning("route_index_dangling", route=uid)
                continue
            routes.append(RouteConfig.from_hash(data))
        return routes

    async def add(self, route: RouteConfig) -> RouteConfig:
        """Persist **route** and append it to the storage order."""
        await self._redis.hset(_route_key(route.uid), mapping=route.to_hash())
        await self._redis.rpush(ROUTE_INDEX_KEY, route.uid)
        logger.info("route_stored", route=route.uid, in_url=route.in_url)
        return route

    async def update_field(self, uid: str, field: str, value: str) -> None:
        await self._redis.hset(_route_key(uid), field, value)


class RouteResolver:
    """Lazily loaded, read-mostly cache of the route table."""

    def __init__(self, store: RouteStore) -> None:
        self._store = store
        self._routes: Optional[List[RouteConfig]] = None
        self._lock = asyncio.Lock()

    async def _table(self) -> List[RouteConfig]:
        if self._routes is None:
            async with self._lock:
                if self._routes is None:
                    self._routes = await self._store.load_all()
                    logger.info("route_table_loaded", routes=len(self._routes))
        return self._routes

    def invalidate(self) -> None:
        """Drop the cached table; the next lookup reloads it."""
        self._routes = None

    async def _find(self, path: str) -> tuple[int, RouteConfig]:
        for index, route in enumerate(await self._table()):
            if route.in_url and path.startswith(route.in_url):
                return index, route
        raise RoutingError(f'No route configuration found for "{path}"')

    async def resolve(self, path: str) -> RouteConfig:
        """Return the first stored route whose prefix matches **path**.

        Raises:
            RoutingError: If no route matches.
        """
        _, route = await self._find(path)
        return route

    async def update_field(self, path: str, field: str, value: str) -> RouteConfig:
        """Write **field** of the route matching **path** to cache and store.

        Returns:
            The updated route.

        Raises:
            RoutingError: If no route matches.
            ValueError: If **field** is not a route attribute.
        """
        if field not in RouteConfig.model_fields or field == "uid":
            raise ValueError(f"Route has no updatable field '{field}'")

        table = await self._table()
        index, route = await self._find(path)
        updated = route.model_copy(update={field: value})
        # Last write wins
        table[index] = updated
        await self._store.update_field(route.uid, field, value)
        logger.info("route_field_updated", route=route.uid, field=field)
        return updated
