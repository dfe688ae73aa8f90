"""
Request Lifecycle Logger

Owns the request log record of every inbound dataflow call and moves it
through its states::

    RECEIVED ──► PROCESSING ──► DONE
        │             └───────► ERROR
        └─────────► DONE | ERROR

DONE and ERROR are terminal.  Every transition is written to the store and
awaited before the caller continues, so by the time a response leaves the
dispatcher its record is already terminal.  Each phase writes only the fields
it owns.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import structlog

from openapi_dataflow.core.exceptions import (
    DataflowError,
    ExecutionError,
    LifecycleTransitionError,
)
from openapi_dataflow.models import STATUS_ORDER, RequestRecord, RequestStatus
from openapi_dataflow.storage.requests import RequestLogStore
from openapi_dataflow.types import DataflowResponse, InboundRequest

__all__: list[str] = [
    "RequestLifecycleLogger",
    "strip_prefix",
]

logger = structlog.get_logger(__name__)


def strip_prefix(path: str, prefix: str, default: Optional[str] = None) -> str:
    """Return the part of **path** after ``prefix + "/"``.

    When the prefix does not occur, **default** is returned, or **path**
    itself if no default was given.
    """
    marker = f"{prefix.strip('/')}/"
    _, found, rest = path.partition(marker)
    if found:
        return rest
    return path if default is None else default


class RequestLifecycleLogger:
    """Persists the request log record at every phase of a request."""

    def __init__(self, store: RequestLogStore, route_prefix: str) -> None:
        self._store = store
        self._route_prefix = route_prefix

    async def _transition(
        self, record: RequestRecord, target: RequestStatus, fields: Dict[str, Any]
    ) -> RequestRecord:
        current = record.status
        if current.is_terminal:
            raise LifecycleTransitionError(
                f"Request {record.uid} is already {current.value}; cannot move to {target.value}"
            )
        if STATUS_ORDER[target] < STATUS_ORDER[current]:
            raise LifecycleTransitionError(
                f"Request {record.uid} cannot move back from {current.value} to {target.value}"
            )
        changes = {"status": target, **fields}
        await self._store.update(record.uid, changes)
        logger.info(
            "request_status_changed",
            request=record.uid,
            status_from=current.value,
            status_to=target.value,
        )
        return record.model_copy(update=changes)

    async def receive(self, request: InboundRequest) -> RequestRecord:
        """Create the record for **request** in state RECEIVED."""
        record = RequestRecord(
            status=RequestStatus.received,
            url=request.url,
            url_path=strip_prefix(request.path, self._route_prefix),
            http_method=request.method,
            http_headers=dict(request.headers),
            http_body=request.body,
            http_content_type=request.content_type,
        )
        await self._store.create(record)
        logger.info(
            "request_received",
            request=record.uid,
            method=record.http_method,
            url_path=record.url_path,
        )
        return record

    async def mark_processing(
        self, record: RequestRecord, route_uid: str, flow_run_uid: str
    ) -> RequestRecord:
        return await self._transition(
            record,
            RequestStatus.processing,
            {"route": route_uid, "flow_run": flow_run_uid},
        )

    async def mark_done(
        self, record: RequestRecord, result_text: str, response: DataflowResponse
    ) -> RequestRecord:
        return await self._transition(
            record,
            RequestStatus.done,
            {
                "result_text": result_text,
                "http_response_code": response.status_code,
                "response_header": dict(response.headers),
                "response_body": response.body,
            },
        )

    async def mark_error(
        self,
        record: RequestRecord,
        error: BaseException,
        response: Optional[DataflowResponse] = None,
    ) -> RequestRecord:
        """Move **record** to ERROR and store the failure.

        Foreign exceptions are wrapped into :class:`ExecutionError` so that the
        record always gets a status code and a correlation id.
        """
        failure: DataflowError = ExecutionError.wrap(error)
        logger.error(
            "request_failed",
            request=record.uid,
            logid=failure.logid,
            error=failure.message,
            error_type=type(error).__name__,
            exc_info=error,
        )
        fields: Dict[str, Any] = {
            "error_message": failure.message,
            "error_logid": failure.logid,
            "http_response_code": (
                response.status_code if response is not None else failure.status_code
            ),
        }
        if response is not None:
            fields["response_header"] = dict(response.headers)
            fields["response_body"] = response.body
        return await self._transition(record, RequestStatus.error, fields)

    async def reload(self, record: RequestRecord) -> RequestRecord:
        """Return the persisted state of **record**, e.g. after a flow wrote to it."""
        stored = await self._store.get(record.uid)
        return stored if stored is not None else record
