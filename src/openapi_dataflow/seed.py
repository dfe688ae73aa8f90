"""Load routes, flows and entity tables into the keyed store.

The fixture is one JSON document::

    {
      "routes": [{"in_url": "shop", "flow_alias": "shop.orders",
                  "swagger": {...}, "type_schema": {...}}],
      "flows": [{"alias": "shop.orders", "steps": [...]}],
      "entities": {"shop.Order": [{"Id": 1}, ...]}
    }

``swagger``/``type_schema`` may be given as objects; they are stored as JSON
text in ``swagger_json``/``type_schema_json``.

Usage::

    openapi-dataflow-seed fixture.json --redis-url redis://localhost:6379/0
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Mapping

import redis.asyncio as aioredis
import structlog
from pydantic import ValidationError

from openapi_dataflow.core.config import get_settings
from openapi_dataflow.core.logging import configure_logging
from openapi_dataflow.models import FlowConfig, RouteConfig
from openapi_dataflow.storage.client import RedisT
from openapi_dataflow.storage.flows import FlowStore
from openapi_dataflow.storage.routes import RouteStore
from openapi_dataflow.storage.tables import RedisTableBackend

__all__: list[str] = ["seed_store", "main"]

logger = structlog.get_logger(__name__)


def _route_from_fixture(entry: Mapping[str, Any]) -> RouteConfig:
    data = dict(entry)
    for source, target in (("swagger", "swagger_json"), ("type_schema", "type_schema_json")):
        value = data.pop(source, None)
        if value is not None:
            data[target] = value if isinstance(value, str) else json.dumps(value)
    return RouteConfig.model_validate(data)


async def seed_store(redis_client: RedisT, fixture: Mapping[str, Any]) -> Dict[str, int]:
    """Persist every route, flow and entity table of **fixture**.

    Routes are appended in fixture order, which is also their match order.

    Returns:
        Number of routes, flows and entity tables written.

    Raises:
        pydantic.ValidationError: If a route or flow entry is malformed.
    """
    routes = RouteStore(redis_client)
    flows = FlowStore(redis_client)
    tables = RedisTableBackend(redis_client)

    for entry in fixture.get("routes", []):
        await routes.add(_route_from_fixture(entry))
    for entry in fixture.get("flows", []):
        await flows.save(FlowConfig.model_validate(entry))
    for alias, rows in fixture.get("entities", {}).items():
        await tables.put_rows(alias, rows)

    counts = {
        "routes": len(fixture.get("routes", [])),
        "flows": len(fixture.get("flows", [])),
        "entities": len(fixture.get("entities", {})),
    }
    logger.info("store_seeded", **counts)
    return counts


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:  # noqa: D401 – CLI helper
    parser = argparse.ArgumentParser(
        description="Seed routes, flows and entity tables into Redis",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("fixture", type=Path, help="JSON fixture to load.")
    parser.add_argument(
        "--redis-url",
        default=None,
        help="Redis URL; defaults to the REDIS_URL setting.",
    )
    return parser.parse_args(argv)


async def _run(fixture: Mapping[str, Any], redis_url: str) -> Dict[str, int]:
    client = aioredis.from_url(redis_url, decode_responses=True)
    try:
        return await seed_store(client, fixture)
    finally:
        await client.aclose()


def main(argv: list[str] | None = None) -> None:  # noqa: D401 – entry-point
    args = _parse_args(argv)
    settings = get_settings()
    configure_logging(settings.debug)

    try:
        fixture = json.loads(args.fixture.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        print(f"Error: cannot read fixture: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        counts = asyncio.run(_run(fixture, args.redis_url or settings.redis_url))
    except ValidationError as exc:
        print(f"Error: invalid fixture: {exc}", file=sys.stderr)
        sys.exit(1)

    print(
        f"Seeded {counts['routes']} route(s), {counts['flows']} flow(s), "
        f"{counts['entities']} entity table(s)."
    )


if __name__ == "__main__":  # pragma: no cover – CLI only
    main()
