from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

__all__: list[str] = [
    "InboundRequest",
    "DataflowResponse",
    "Task",
    "HttpTask",
    "StepResult",
    "FlowResult",
]


@dataclass(frozen=True)
class InboundRequest:
    """
    Framework-independent snapshot of an HTTP request.

    Attributes:
        method: Upper-case HTTP method.
        url: Full request URL including query string.
        path: URL path without leading slash, e.g. ``api/dataflow/shop/orders``.
        headers: Request headers; multi-valued headers are joined with ``,``.
        query_params: Query string parameters (last value wins).
        body: Raw request body decoded as text.
    """

    method: str
    url: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, str] = field(default_factory=dict)
    body: str = ""

    def header(self, name: str, default: str = "") -> str:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    @property
    def content_type(self) -> str:
        return self.header("content-type")


@dataclass
class DataflowResponse:
    """Status, headers and text body of a response produced by the dispatcher."""

    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""

    @classmethod
    def json(
        cls, status_code: int, payload: Any, headers: Optional[Dict[str, str]] = None
    ) -> "DataflowResponse":
        merged = dict(headers or {})
        merged["Content-Type"] = "application/json"
        return cls(status_code=status_code, headers=merged, body=json.dumps(payload))


@dataclass
class Task:
    """Input handed to a flow: the request record it works for and its flow run."""

    record_uid: str
    flow_run_uid: str


@dataclass
class HttpTask(Task):
    """A task originating from an HTTP request routed to the flow."""

    request: InboundRequest = field(default_factory=lambda: InboundRequest("GET", "", ""))
    route_path: str = ""
    openapi_json: str = ""


@dataclass
class StepResult:
    """Outcome of a single flow step."""

    step_run_uid: str
    processed_rows: int = 0
    messages: List[str] = field(default_factory=list)


@dataclass
class FlowResult:
    """Summary returned by the flow engine for one flow run."""

    message: str
    processed_rows: int = 0
    steps: List[StepResult] = field(default_factory=list)
