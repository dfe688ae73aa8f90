"""
Flow execution

:class:`FlowInvoker` is the only entry point the dispatcher uses: it binds
the request record and its flow run to an :class:`~openapi_dataflow.types.HttpTask`
and hands control to a :class:`FlowEngine`.  What happens inside the flow is
entirely the engine's business.

:class:`StepFlowEngine` is the engine shipped with the service.  A flow is an
ordered list of step configurations stored under ``flow:<alias>``; each step
``type`` is looked up in :data:`~openapi_dataflow.flows.steps.STEP_REGISTRY`
and executed sequentially with its own step-run id.
"""

from __future__ import annotations

import time
import uuid
from typing import List, Mapping, Optional, Protocol

import structlog

from openapi_dataflow.core.exceptions import DataflowError, ExecutionError
from openapi_dataflow.flows.context import StepContext
from openapi_dataflow.flows.progress import ProgressChannel
from openapi_dataflow.flows.steps import STEP_REGISTRY, StepFunc
from openapi_dataflow.models import RequestRecord, RouteConfig
from openapi_dataflow.storage.flows import FlowStore
from openapi_dataflow.storage.requests import RequestLogStore
from openapi_dataflow.storage.tables import TabularBackend
from openapi_dataflow.types import FlowResult, HttpTask, InboundRequest, StepResult, Task

__all__: list[str] = [
    "FlowEngine",
    "StepFlowEngine",
    "FlowInvoker",
    "generate_flow_run_uid",
    "route_subpath",
]

logger = structlog.get_logger(__name__)


def generate_flow_run_uid() -> str:
    return uuid.uuid4().hex


def route_subpath(url_path: str) -> str:
    """Return the OpenAPI path of a request below its route segment.

    ``shop/orders/`` → ``/orders``; a bare route segment maps to ``/``.
    """
    rest = url_path.strip("/").partition("/")[2].rstrip("/")
    return "/" + rest if rest else "/"


class FlowEngine(Protocol):
    async def run(
        self, flow_alias: str, task: Task, progress: Optional[ProgressChannel] = None
    ) -> FlowResult:
        ...


class StepFlowEngine:
    """Runs stored flows step by step."""

    def __init__(
        self,
        flows: FlowStore,
        backend: TabularBackend,
        requests: RequestLogStore,
        static_placeholders: Optional[Mapping[str, str]] = None,
        default_accept: str = "application/json",
        registry: Optional[Mapping[str, StepFunc]] = None,
    ) -> None:
        self._flows = flows
        self._backend = backend
        self._requests = requests
        self._static_placeholders = dict(static_placeholders or {})
        self._default_accept = default_accept
        self._registry = dict(registry if registry is not None else STEP_REGISTRY)

    async def run(
        self, flow_alias: str, task: Task, progress: Optional[ProgressChannel] = None
    ) -> FlowResult:
        """Execute every enabled step of **flow_alias** for **task**.

        Raises:
            ExecutionError: If the flow or a step type is unknown, or a step
                fails with a non-dataflow exception.
            DataflowError: Classified failures raised by a step propagate as-is.
        """
        flow = await self._flows.get(flow_alias)
        if flow is None:
            raise ExecutionError(f"Flow '{flow_alias}' not found")

        channel = progress if progress is not None else ProgressChannel()
        start = time.perf_counter()
        results: List[StepResult] = []

        for step in flow.steps:
            step_name = step.name or step.type
            if step.disabled:
                logger.debug("flow_step_skipped", flow=flow_alias, step=step_name)
                continue

            step_func = self._registry.get(step.type)
            if step_func is None:
                raise ExecutionError(f"Unknown step type '{step.type}' in flow '{flow_alias}'")

            ctx = StepContext(
                step_run_uid=uuid.uuid4().hex,
                progress=channel,
                backend=self._backend,
                requests=self._requests,
                static_placeholders=self._static_placeholders,
                default_accept=self._default_accept,
            )
            channel.emit(f"Running step '{step_name}'")
            try:
                result = await step_func(step, task, ctx)
            except DataflowError:
                raise
            except Exception as e:
                logger.error(
                    "flow_step_failed",
                    flow=flow_alias,
                    step=step_name,
                    error=str(e),
                    exc_info=True,
                )
                raise ExecutionError(f"Step '{step_name}' of flow '{flow_alias}' failed: {e}") from e
            results.append(result)

        processed = sum(result.processed_rows for result in results)
        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            "flow_completed",
            flow=flow_alias,
            flow_run=task.flow_run_uid,
            steps=len(results),
            processed_rows=processed,
            duration_ms=duration_ms,
        )
        return FlowResult(
            message=(
                f"Flow '{flow_alias}' finished: {len(results)} step(s), "
                f"{processed} row(s) processed."
            ),
            processed_rows=processed,
            steps=results,
        )


class FlowInvoker:
    """Binds a request record to a flow run and delegates to the engine."""

    def __init__(self, engine: FlowEngine) -> None:
        self._engine = engine

    async def invoke(
        self,
        route: RouteConfig,
        request: InboundRequest,
        record: RequestRecord,
        progress: Optional[ProgressChannel] = None,
    ) -> FlowResult:
        """Run the flow of **route** for **record**.

        Raises:
            ExecutionError: If the record has no flow run yet.
        """
        if not record.flow_run:
            raise ExecutionError(f"Request {record.uid} has no flow run assigned")

        task = HttpTask(
            record_uid=record.uid,
            flow_run_uid=record.flow_run,
            request=request,
            route_path=route_subpath(record.url_path),
            openapi_json=route.swagger_json,
        )
        logger.info(
            "flow_invoked",
            flow=route.flow_alias,
            flow_run=record.flow_run,
            request=record.uid,
        )
        return await self._engine.run(route.flow_alias, task, progress)
