from __future__ import annotations

from typing import List
from unittest.mock import AsyncMock

import pytest

from openapi_dataflow.core.exceptions import ExecutionError, SchemaBindingError
from openapi_dataflow.flows.context import StepContext
from openapi_dataflow.flows.engine import FlowInvoker, StepFlowEngine, route_subpath
from openapi_dataflow.flows.progress import ProgressChannel
from openapi_dataflow.models import (
    FlowConfig,
    RequestRecord,
    RouteConfig,
    StepConfig,
)
from openapi_dataflow.storage.flows import FlowStore
from openapi_dataflow.storage.requests import RequestLogStore
from openapi_dataflow.storage.tables import RedisTableBackend
from openapi_dataflow.types import FlowResult, HttpTask, InboundRequest, StepResult, Task
from tests.conftest import InMemoryRedis


def _engine(fake_redis: InMemoryRedis, registry: dict) -> StepFlowEngine:
    return StepFlowEngine(
        flows=FlowStore(fake_redis),
        backend=RedisTableBackend(fake_redis),
        requests=RequestLogStore(fake_redis),
        static_placeholders={"~env:stage": "test"},
        registry=registry,
    )


async def _save_flow(fake_redis: InMemoryRedis, *steps: StepConfig) -> None:
    await FlowStore(fake_redis).save(FlowConfig(alias="demo", steps=list(steps)))


@pytest.mark.parametrize(
    ("url_path", "expected"),
    [
        ("shop/orders", "/orders"),
        ("shop/orders/", "/orders"),
        ("shop/orders/42", "/orders/42"),
        ("shop", "/"),
        ("shop/", "/"),
        ("", "/"),
    ],
)
def test_route_subpath(url_path: str, expected: str) -> None:
    assert route_subpath(url_path) == expected


@pytest.mark.asyncio
async def test_runs_enabled_steps_in_order(fake_redis: InMemoryRedis) -> None:
    calls: List[str] = []
    contexts: List[StepContext] = []

    async def counting(step: StepConfig, task: Task, ctx: StepContext) -> StepResult:
        calls.append(step.name)
        contexts.append(ctx)
        return StepResult(step_run_uid=ctx.step_run_uid, processed_rows=2)

    await _save_flow(
        fake_redis,
        StepConfig(type="count", name="first"),
        StepConfig(type="count", name="skipped", disabled=True),
        StepConfig(type="count", name="second"),
    )
    progress = ProgressChannel()

    result = await _engine(fake_redis, {"count": counting}).run(
        "demo", Task(record_uid="r", flow_run_uid="run-1"), progress
    )

    assert calls == ["first", "second"]
    assert result.processed_rows == 4
    assert len(result.steps) == 2
    assert "2 step(s), 4 row(s) processed" in result.message
    assert contexts[0].step_run_uid != contexts[1].step_run_uid
    assert contexts[0].progress is progress
    assert contexts[0].static_placeholders == {"~env:stage": "test"}


@pytest.mark.asyncio
async def test_missing_flow_raises(fake_redis: InMemoryRedis) -> None:
    with pytest.raises(ExecutionError, match="not found"):
        await _engine(fake_redis, {}).run("demo", Task(record_uid="r", flow_run_uid="x"))


@pytest.mark.asyncio
async def test_unknown_step_type_raises(fake_redis: InMemoryRedis) -> None:
    await _save_flow(fake_redis, StepConfig(type="Teleport"))

    with pytest.raises(ExecutionError, match="Unknown step type 'Teleport'"):
        await _engine(fake_redis, {}).run("demo", Task(record_uid="r", flow_run_uid="x"))


@pytest.mark.asyncio
async def test_dataflow_errors_propagate_unchanged(fake_redis: InMemoryRedis) -> None:
    failure = SchemaBindingError("not bound")
    await _save_flow(fake_redis, StepConfig(type="bad"))

    with pytest.raises(SchemaBindingError) as exc_info:
        await _engine(fake_redis, {"bad": AsyncMock(side_effect=failure)}).run(
            "demo", Task(record_uid="r", flow_run_uid="x")
        )

    assert exc_info.value is failure


@pytest.mark.asyncio
async def test_foreign_errors_are_wrapped(fake_redis: InMemoryRedis) -> None:
    await _save_flow(fake_redis, StepConfig(type="bad", name="explode"))

    with pytest.raises(ExecutionError, match="Step 'explode'") as exc_info:
        await _engine(fake_redis, {"bad": AsyncMock(side_effect=ZeroDivisionError("x"))}).run(
            "demo", Task(record_uid="r", flow_run_uid="x")
        )

    assert isinstance(exc_info.value.__cause__, ZeroDivisionError)


@pytest.mark.asyncio
async def test_invoker_builds_http_task() -> None:
    engine = AsyncMock()
    engine.run.return_value = FlowResult(message="done", processed_rows=1)
    route = RouteConfig(uid="r1", flow_alias="shop.orders", in_url="shop", swagger_json="{}")
    request = InboundRequest(method="GET", url="u", path="api/dataflow/shop/orders/")
    record = RequestRecord(uid="req-1", url_path="shop/orders/", flow_run="run-1")

    result = await FlowInvoker(engine).invoke(route, request, record)

    assert result.message == "done"
    flow_alias, task, progress = engine.run.call_args.args
    assert flow_alias == "shop.orders"
    assert isinstance(task, HttpTask)
    assert task.record_uid == "req-1"
    assert task.flow_run_uid == "run-1"
    assert task.route_path == "/orders"
    assert task.openapi_json == "{}"
    assert task.request is request
    assert progress is None


@pytest.mark.asyncio
async def test_invoker_requires_flow_run() -> None:
    route = RouteConfig(flow_alias="shop.orders", in_url="shop")
    record = RequestRecord(uid="req-1")

    with pytest.raises(ExecutionError, match="no flow run"):
        await FlowInvoker(AsyncMock()).invoke(
            route, InboundRequest(method="GET", url="u", path="p"), record
        )
