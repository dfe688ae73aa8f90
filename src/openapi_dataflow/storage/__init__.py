"""Keyed persistence (Redis) for routes, request records, flows and entity tables."""

from __future__ import annotations

from .client import close_redis_client, get_redis_client
from .flows import FlowStore
from .requests import RequestLogStore
from .routes import RouteResolver, RouteStore
from .tables import RedisTableBackend, TabularBackend

__all__: list[str] = [
    "close_redis_client",
    "FlowStore",
    "get_redis_client",
    "RedisTableBackend",
    "RequestLogStore",
    "RouteResolver",
    "RouteStore",
    "TabularBackend",
]
