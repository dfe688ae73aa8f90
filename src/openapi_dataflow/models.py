"""
Persisted records of the dataflow service.

All records live in the keyed store as Redis hashes (routes, request log) or
JSON strings (flows).  Hash fields are flat strings, so JSON-valued fields are
encoded on the way in and decoded on the way out by ``to_hash``/``from_hash``.
"""

from __future__ import annotations

import json
import uuid
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

__all__: list[str] = [
    "RequestStatus",
    "RequestRecord",
    "STATUS_ORDER",
    "RouteConfig",
    "StepConfig",
    "FlowConfig",
]


def _new_uid() -> str:
    return uuid.uuid4().hex


class RequestStatus(str, Enum):
    """Lifecycle status of an inbound dataflow request."""

    received = "RECEIVED"
    processing = "PROCESSING"
    done = "DONE"
    error = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.done, RequestStatus.error)


# Forward-only ordering used to reject backwards transitions
STATUS_ORDER: Dict[RequestStatus, int] = {
    RequestStatus.received: 0,
    RequestStatus.processing: 1,
    RequestStatus.done: 2,
    RequestStatus.error: 2,
}

_JSON_FIELDS = frozenset({"http_headers", "response_header"})
_INT_FIELDS = frozenset({"http_response_code"})


class RequestRecord(BaseModel):
    """One row of the request log, created on receipt and never deleted."""

    model_config = ConfigDict(use_enum_values=False)

    uid: str = Field(default_factory=_new_uid)
    status: RequestStatus = RequestStatus.received
    url: str = ""
    url_path: str = ""
    http_method: str = ""
    http_headers: Dict[str, Any] = Field(default_factory=dict)
    http_body: str = ""
    http_content_type: str = ""
    route: Optional[str] = None
    flow_run: Optional[str] = None
    response_header: Dict[str, str] = Field(default_factory=dict)
    response_body: Optional[str] = None
    http_response_code: Optional[int] = None
    error_message: Optional[str] = None
    error_logid: Optional[str] = None
    result_text: Optional[str] = None

    @staticmethod
    def encode_fields(fields: Mapping[str, Any]) -> Dict[str, str]:
        """Flatten **fields** into hash values; None values are skipped."""
        encoded: Dict[str, str] = {}
        for name, value in fields.items():
            if value is None:
                continue
            if name in _JSON_FIELDS:
                encoded[name] = json.dumps(value)
            elif isinstance(value, Enum):
                encoded[name] = str(value.value)
            else:
                encoded[name] = str(value)
        return encoded

    def to_hash(self) -> Dict[str, str]:
        return self.encode_fields(
            {name: getattr(self, name) for name in type(self).model_fields}
        )

    @classmethod
    def from_hash(cls, data: Mapping[str, str]) -> "RequestRecord":
        values: Dict[str, Any] = {}
        for name, raw in data.items():
            if name not in cls.model_fields:
                continue
            if name in _JSON_FIELDS:
                values[name] = json.loads(raw) if raw else {}
            elif name in _INT_FIELDS:
                values[name] = int(raw) if raw else None
            else:
                values[name] = raw
        return cls.model_validate(values)


class RouteConfig(BaseModel):
    """A URL prefix bound to a flow and an OpenAPI contract."""

    uid: str = Field(default_factory=_new_uid)
    flow: str = ""
    flow_alias: str
    in_url: str
    swagger_json: str = ""
    type_schema_json: str = ""

    def to_hash(self) -> Dict[str, str]:
        return {name: str(getattr(self, name)) for name in type(self).model_fields}

    @classmethod
    def from_hash(cls, data: Mapping[str, str]) -> "RouteConfig":
        return cls.model_validate(
            {name: raw for name, raw in data.items() if name in cls.model_fields}
        )

    def openapi(self) -> Dict[str, Any]:
        """Parsed OpenAPI document; an empty document parses as ``{}``."""
        if not self.swagger_json:
            return {}
        parsed = json.loads(self.swagger_json)
        return parsed if isinstance(parsed, dict) else {}


class StepConfig(BaseModel):
    """One step of a flow.

    ``row_limit``/``row_offset`` accept numbers or ``[#name#]`` templates that
    are rendered against the step's placeholders.
    """

    model_config = ConfigDict(extra="allow")

    type: str
    name: str = ""
    from_object: str = ""
    row_limit: Optional[Union[int, str]] = None
    row_offset: Optional[Union[int, str]] = 0
    disabled: bool = False


class FlowConfig(BaseModel):
    alias: str
    name: str = ""
    steps: List[StepConfig] = Field(default_factory=list)
