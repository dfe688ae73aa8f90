# ruff: noqa: E402
from __future__ import annotations

import sys
from pathlib import Path

# Ensure repository root (for ``tests.*``) and the src/ layout are importable
_repo_root: Path = Path(__file__).resolve().parent.parent  # tests/ -> repo root
for _path in (_repo_root / "src", _repo_root):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))

import copy
import fnmatch
from typing import Any, Dict, List, Mapping, Optional

import pytest


class MockSettings:  # Does NOT inherit from real Settings
    """Mock Settings class for testing."""

    debug: bool = False
    commit_sha: Optional[str] = None
    prometheus_enabled: bool = False

    # API key configuration
    allowed_api_keys: List[str] = []

    redis_url: str = "redis://localhost:6379/15"
    route_prefix: str = "api/dataflow"
    default_accept: str = "application/json"
    static_placeholders: Dict[str, str] = {}

    def __init__(self, **kwargs: Any) -> None:
        """Initialize with optional overrides for any attribute."""
        for key, value in self.__class__.__dict__.items():
            if not key.startswith("__") and not callable(value):
                setattr(self, key, copy.copy(value))

        for key, value in kwargs.items():
            setattr(self, key, value)


class InMemoryRedis:
    """Async stand-in for the subset of ``redis.asyncio.Redis`` the service uses.

    Values are stored as ``str`` like a client created with
    ``decode_responses=True``.
    """

    def __init__(self) -> None:
        self.strings: Dict[str, str] = {}
        self.hashes: Dict[str, Dict[str, str]] = {}
        self.lists: Dict[str, List[str]] = {}
        self.closed = False

    async def ping(self) -> bool:
        return True

    async def get(self, key: str) -> Optional[str]:
        return self.strings.get(key)

    async def set(self, key: str, value: Any, **_: Any) -> bool:
        self.strings[key] = str(value)
        return True

    async def hset(
        self,
        name: str,
        key: Optional[str] = None,
        value: Any = None,
        mapping: Optional[Mapping[str, Any]] = None,
    ) -> int:
        target = self.hashes.setdefault(name, {})
        items: Dict[str, Any] = dict(mapping or {})
        if key is not None:
            items[key] = value
        added = sum(1 for field in items if field not in target)
        target.update({field: str(val) for field, val in items.items()})
        return added

    async def hget(self, name: str, key: str) -> Optional[str]:
        return self.hashes.get(name, {}).get(key)

    async def hgetall(self, name: str) -> Dict[str, str]:
        return dict(self.hashes.get(name, {}))

    async def rpush(self, name: str, *values: Any) -> int:
        target = self.lists.setdefault(name, [])
        target.extend(str(v) for v in values)
        return len(target)

    async def lrange(self, name: str, start: int, end: int) -> List[str]:
        values = self.lists.get(name, [])
        stop = None if end == -1 else end + 1
        return list(values[start:stop])

    async def keys(self, pattern: str = "*") -> List[str]:
        every = [*self.strings, *self.hashes, *self.lists]
        return [key for key in every if fnmatch.fnmatchcase(key, pattern)]

    async def aclose(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Shared OpenAPI fixtures
# ---------------------------------------------------------------------------

ORDER_ALIAS = "shop.Order"

ORDERS_TYPE_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["openapi", "paths"],
    "properties": {
        "openapi": {"type": "string"},
        "paths": {"type": "object"},
    },
}


def orders_openapi() -> Dict[str, Any]:
    """An OpenAPI document binding ``GET /orders`` to the ``shop.Order`` entity."""
    return {
        "openapi": "3.0.3",
        "info": {"title": "Shop", "version": "1.0.0"},
        "paths": {
            "/orders": {
                "get": {
                    "responses": {
                        "200": {
                            "description": "Orders page",
                            "content": {
                                "application/json": {
                                    "schema": {
                                        "type": "object",
                                        "properties": {
                                            "orders": {
                                                "type": "array",
                                                "x-object-alias": ORDER_ALIAS,
                                                "items": {
                                                    "$ref": "#/components/schemas/Order"
                                                },
                                            },
                                            "limit": {
                                                "type": "integer",
                                                "nullable": True,
                                                "x-placeholder": "[#~parameter:limit#]",
                                            },
                                        },
                                    }
                                }
                            },
                        }
                    }
                }
            }
        },
        "components": {
            "schemas": {
                "Order": {
                    "type": "object",
                    "x-object-alias": ORDER_ALIAS,
                    "properties": {
                        "Id": {"type": "integer", "x-attribute-alias": "ID"},
                        "Customer": {
                            "type": "string",
                            "x-attribute-alias": "CUSTOMER__NAME",
                        },
                        "Total": {
                            "type": "number",
                            "x-attribute-alias": "POSITION__AMOUNT:SUM",
                        },
                    },
                }
            },
            "examples": {
                "empty": {"defaultResponse": {"value": {"orders": []}}},
            },
        },
    }


ORDER_ROWS: List[Dict[str, Any]] = [
    {"ID": 1, "CUSTOMER": {"NAME": "Ada"}, "POSITION": [{"AMOUNT": 10}, {"AMOUNT": 5}]},
    {"ID": 2, "CUSTOMER": {"NAME": "Grace"}, "POSITION": [{"AMOUNT": 7}]},
    {"ID": 3, "CUSTOMER": {"NAME": "Linus"}, "POSITION": []},
]


def orders_fixture(swagger: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Seed document: one ``shop`` route, its flow and the order table."""
    return {
        "routes": [
            {
                "uid": "route-shop",
                "flow": "flow-1",
                "flow_alias": "shop.orders",
                "in_url": "shop",
                "swagger": swagger if swagger is not None else orders_openapi(),
                "type_schema": ORDERS_TYPE_SCHEMA,
            }
        ],
        "flows": [
            {
                "alias": "shop.orders",
                "name": "Orders",
                "steps": [
                    {
                        "type": "DataSheetToOpenApi",
                        "name": "read orders",
                        "from_object": ORDER_ALIAS,
                        "row_limit": "[#~parameter:limit#]",
                        "row_offset": "[#~parameter:offset#]",
                    }
                ],
            }
        ],
        "entities": {ORDER_ALIAS: ORDER_ROWS},
    }


@pytest.fixture
def mock_settings() -> MockSettings:
    """Provide a plain MockSettings instance. Integration clients inject it via app.dependency_overrides."""
    return MockSettings()


@pytest.fixture
def fake_redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture(autouse=True)
def _disable_dotenv(monkeypatch: pytest.MonkeyPatch) -> None:
    """Prevent the application Settings class from reading the developer *.env* file.

    The fixture patches ``Settings.model_config['env_file']`` to ``None`` so
    that Pydantic skips dotenv processing entirely, and removes the variables
    that default-value assertions depend on.
    """

    from openapi_dataflow.core.config import Settings

    monkeypatch.setitem(Settings.model_config, "env_file", None)
    for name in (
        "ALLOWED_API_KEYS",
        "ROUTE_PREFIX",
        "REDIS_URL",
        "STATIC_PLACEHOLDERS",
        "DEFAULT_ACCEPT",
    ):
        monkeypatch.delenv(name, raising=False)
