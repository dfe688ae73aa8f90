"""
Dataflow dispatcher

Single entry point for every request below the route prefix.  The dispatcher
logs the request, resolves its route, checks the route's OpenAPI document and
then either serves the document itself (``…/openapi``) or runs the route's
flow and answers with the body the flow left on the request record.

Any failure after the request was logged is caught in exactly one place,
classified through the :mod:`openapi_dataflow.core.exceptions` hierarchy and
answered with a JSON error envelope.  The request record always ends in DONE
or ERROR before :meth:`Dispatcher.dispatch` returns.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

import structlog

from openapi_dataflow.core.exceptions import (
    ContractValidationError,
    ExecutionError,
    error_envelope,
)
from openapi_dataflow.flows.engine import FlowInvoker, generate_flow_run_uid
from openapi_dataflow.flows.progress import ProgressChannel
from openapi_dataflow.lifecycle import RequestLifecycleLogger
from openapi_dataflow.models import RequestRecord, RouteConfig
from openapi_dataflow.schema.defaults import find_default_response
from openapi_dataflow.schema.validator import validate_json
from openapi_dataflow.storage.routes import RouteResolver
from openapi_dataflow.types import DataflowResponse, InboundRequest

__all__: list[str] = [
    "Dispatcher",
    "GENERIC_SUCCESS_BODY",
    "OPENAPI_SEGMENT",
]

logger = structlog.get_logger(__name__)

OPENAPI_SEGMENT = "/openapi"
GENERIC_SUCCESS_BODY: Dict[str, str] = {"message": "Dataflow successful."}

_JSON_HEADERS: Dict[str, str] = {"Content-Type": "application/json"}


class Dispatcher:
    """Routes dataflow requests and owns their lifecycle from receipt to response."""

    def __init__(
        self,
        resolver: RouteResolver,
        lifecycle: RequestLifecycleLogger,
        invoker: FlowInvoker,
        route_prefix: str,
    ) -> None:
        self._resolver = resolver
        self._lifecycle = lifecycle
        self._invoker = invoker
        self._route_prefix = route_prefix.strip("/")

    async def dispatch(
        self, request: InboundRequest, progress: Optional[ProgressChannel] = None
    ) -> DataflowResponse:
        """Handle **request** and return the response to send.

        Never raises for failures after the request was logged; they are
        answered with an error response and recorded on the request log.
        """
        record = await self._lifecycle.receive(request)

        try:
            return await self._handle(request, record, progress)
        except Exception as exc:
            return await self._fail(request, record, exc)

    async def _handle(
        self,
        request: InboundRequest,
        record: RequestRecord,
        progress: Optional[ProgressChannel],
    ) -> DataflowResponse:
        path = record.url_path
        route = await self._resolver.resolve(path)
        self._ensure_valid(route.swagger_json, route)

        if OPENAPI_SEGMENT in path.lower():
            if request.method == "GET":
                response = DataflowResponse(
                    status_code=200, headers=dict(_JSON_HEADERS), body=route.swagger_json
                )
                await self._lifecycle.mark_done(
                    record, "Web service swagger json has been provided.", response
                )
                return response

            if request.method == "POST":
                self._ensure_valid(request.body, route, posted=True)
                updated = await self._resolver.update_field(path, "swagger_json", request.body)
                response = DataflowResponse(
                    status_code=201,
                    headers={**_JSON_HEADERS, "Path": f"GET {self._route_prefix}"},
                    body=updated.swagger_json,
                )
                await self._lifecycle.mark_done(
                    record, "Web service swagger json has been updated", response
                )
                return response

        return await self._run_flow(request, record, route, progress)

    def _ensure_valid(self, document: str, route: RouteConfig, posted: bool = False) -> None:
        """Raise ContractValidationError if **document** fails the route's type schema.

        Routes without a type schema only require well-formed JSON for posted
        documents; their stored document is not checked.
        """
        if route.type_schema_json:
            report = validate_json(document, route.type_schema_json)
        elif posted:
            report = validate_json(document, "{}")
        else:
            return
        if not report.valid:
            raise ContractValidationError(
                f"OpenApi definition of route '{route.in_url}' is invalid", report
            )

    async def _run_flow(
        self,
        request: InboundRequest,
        record: RequestRecord,
        route: RouteConfig,
        progress: Optional[ProgressChannel],
    ) -> DataflowResponse:
        flow_run_uid = generate_flow_run_uid()
        record = await self._lifecycle.mark_processing(record, route.uid, flow_run_uid)
        result = await self._invoker.invoke(route, request, record, progress)
        record = await self._lifecycle.reload(record)

        if record.response_body:
            body = record.response_body
        else:
            default = find_default_response(route.openapi())
            body = json.dumps(default if default is not None else GENERIC_SUCCESS_BODY)
            logger.info(
                "dataflow_default_response_used",
                request=record.uid,
                declared=default is not None,
            )

        response = DataflowResponse(status_code=200, headers=dict(_JSON_HEADERS), body=body)
        await self._lifecycle.mark_done(record, result.message, response)
        return response

    async def _fail(
        self, request: InboundRequest, record: RequestRecord, exc: Exception
    ) -> DataflowResponse:
        error = ExecutionError.wrap(exc)
        if isinstance(error, ContractValidationError):
            payload: Dict[str, Any] = error.report.as_swagger_errors()
        else:
            payload = error_envelope(
                error.code,
                error.message,
                request.header("x-request-id") or None,
                {"logid": error.logid},
            )
        response = DataflowResponse.json(error.status_code, payload)
        await self._lifecycle.mark_error(record, error, response)
        return response

