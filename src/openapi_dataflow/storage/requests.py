from __future__ import annotations

from typing import Any, Mapping, Optional

import structlog

from openapi_dataflow.models import RequestRecord
from openapi_dataflow.storage.client import RedisT

__all__: list[str] = [
    "RequestLogStore",
]

logger = structlog.get_logger(__name__)

# ``request:<uid>`` holds the record hash; ``request:flow_run:<uid>`` points
# from a flow run back to the request that started it.
_REQUEST_KEY_PREFIX = "request:"
_FLOW_RUN_KEY_PREFIX = "request:flow_run:"


def _request_key(uid: str) -> str:
    return f"{_REQUEST_KEY_PREFIX}{uid}"


class RequestLogStore:
    """Keyed create/update/read access to request log records."""

    def __init__(self, redis_client: RedisT) -> None:
        self._redis = redis_client

    async def create(self, record: RequestRecord) -> None:
        await self._redis.hset(_request_key(record.uid), mapping=record.to_hash())
        if record.flow_run:
            await self._index_flow_run(record.flow_run, record.uid)

    async def update(self, uid: str, fields: Mapping[str, Any]) -> None:
        """Persist only **fields** of the record **uid**."""
        encoded = RequestRecord.encode_fields(fields)
        if encoded:
            await self._redis.hset(_request_key(uid), mapping=encoded)
        flow_run = fields.get("flow_run")
        if flow_run:
            await self._index_flow_run(flow_run, uid)

    async def get(self, uid: str) -> Optional[RequestRecord]:
        data = await self._redis.hgetall(_request_key(uid))
        return RequestRecord.from_hash(data) if data else None

    async def find_by_flow_run(self, flow_run: str) -> Optional[RequestRecord]:
        uid = await self._redis.get(f"{_FLOW_RUN_KEY_PREFIX}{flow_run}")
        if not uid:
            logger.warning("request_for_flow_run_missing", flow_run=flow_run)
            return None
        return await self.get(uid)

    async def _index_flow_run(self, flow_run: str, uid: str) -> None:
        await self._redis.set(f"{_FLOW_RUN_KEY_PREFIX}{flow_run}", uid)
