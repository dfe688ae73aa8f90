from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException
from redis.exceptions import ConnectionError as RedisConnectionError

from openapi_dataflow.storage import client as client_module
from openapi_dataflow.storage.client import close_redis_client, get_redis_client
from tests.conftest import MockSettings


@pytest.fixture(autouse=True)
def _no_shared_client(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(client_module, "_REDIS_CLIENT", None)


@pytest.mark.asyncio
async def test_get_redis_client_connects_once(mock_settings: MockSettings) -> None:
    redis_instance = MagicMock()
    redis_instance.ping = AsyncMock(return_value=True)

    with patch("redis.asyncio.from_url", return_value=redis_instance) as mock_from_url:
        first = await get_redis_client(mock_settings)
        second = await get_redis_client(mock_settings)

    assert first is second is redis_instance
    mock_from_url.assert_called_once_with(mock_settings.redis_url, decode_responses=True)
    redis_instance.ping.assert_awaited_once()


@pytest.mark.asyncio
async def test_get_redis_client_initial_ping_fails(mock_settings: MockSettings) -> None:
    failing = MagicMock()
    failing.ping = AsyncMock(side_effect=RedisConnectionError("refused"))
    failing.aclose = AsyncMock()

    with patch("redis.asyncio.from_url", return_value=failing):
        with pytest.raises(HTTPException) as exc_info:
            await get_redis_client(mock_settings)

    assert exc_info.value.status_code == 503
    failing.aclose.assert_awaited_once()
    assert client_module._REDIS_CLIENT is None


@pytest.mark.asyncio
async def test_close_redis_client_when_initialized(monkeypatch: pytest.MonkeyPatch) -> None:
    redis_instance = MagicMock()
    redis_instance.aclose = AsyncMock()
    monkeypatch.setattr(client_module, "_REDIS_CLIENT", redis_instance)

    await close_redis_client()

    redis_instance.aclose.assert_awaited_once()
    assert client_module._REDIS_CLIENT is None


@pytest.mark.asyncio
async def test_close_redis_client_when_already_none() -> None:
    await close_redis_client()

    assert client_module._REDIS_CLIENT is None
