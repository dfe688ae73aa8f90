from __future__ import annotations

from typing import Optional

from pydantic import ValidationError

from openapi_dataflow.core.exceptions import ExecutionError
from openapi_dataflow.models import FlowConfig
from openapi_dataflow.storage.client import RedisT

__all__: list[str] = [
    "FlowStore",
]

_FLOW_KEY_PREFIX = "flow:"


class FlowStore:
    """Flow definitions, one JSON document per alias under ``flow:<alias>``."""

    def __init__(self, redis_client: RedisT) -> None:
        self._redis = redis_client

    async def save(self, flow: FlowConfig) -> None:
        await self._redis.set(f"{_FLOW_KEY_PREFIX}{flow.alias}", flow.model_dump_json())

    async def get(self, alias: str) -> Optional[FlowConfig]:
        """Return the flow **alias**, or None when it is not defined.

        Raises:
            ExecutionError: If the stored definition is malformed.
        """
        raw = await self._redis.get(f"{_FLOW_KEY_PREFIX}{alias}")
        if raw is None:
            return None
        try:
            return FlowConfig.model_validate_json(raw)
        except ValidationError as exc:
            raise ExecutionError(f"Flow '{alias}' has an invalid definition: {exc}") from exc
