"""
Data sheet → OpenAPI step

Reads the rows of one backend entity and writes them into the response body of
the HTTP request that started the flow, shaped by the route's OpenAPI document.

The entity must be described under ``components.schemas`` with an
``x-object-alias`` and ``x-attribute-alias`` bindings (see
:mod:`openapi_dataflow.schema.locator`).  The response schema of the requested
path and method decides where the rows land: the node whose
``x-object-alias`` equals the entity receives them, ``x-placeholder``
properties receive request values::

    "schema": {
      "type": "object",
      "properties": {
        "orders": {
          "type": "object",
          "properties": {
            "rows": {
              "type": "array",
              "items": {"$ref": "#/components/schemas/Order"},
              "x-object-alias": "shop.Order"
            }
          }
        },
        "page_offset": {
          "type": "integer",
          "nullable": true,
          "x-placeholder": "[#~parameter:offset#]"
        }
      }
    }

``row_limit`` and ``row_offset`` of the step may be numbers or placeholder
templates such as ``[#~parameter:limit#]``.  Several steps of one flow can
target the same request: each merges its part into the body stored so far.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional, Union

import structlog

from openapi_dataflow.core.exceptions import (
    ExecutionError,
    SchemaBindingError,
    UnsupportedInputError,
)
from openapi_dataflow.flows.context import StepContext
from openapi_dataflow.models import StepConfig
from openapi_dataflow.schema.builder import build
from openapi_dataflow.schema.locator import (
    extract_attribute_bindings,
    find_response_schema,
    locate,
    schemas_of,
)
from openapi_dataflow.schema.merge import deep_merge
from openapi_dataflow.schema.placeholders import build_placeholders, render
from openapi_dataflow.types import HttpTask, StepResult, Task

__all__: list[str] = [
    "datasheet_to_openapi",
    "resolve_window_value",
]

logger = structlog.get_logger(__name__)

_LEADING_INT = re.compile(r"^\s*(\d+)")


def resolve_window_value(
    value: Optional[Union[int, str]], placeholders: Dict[str, str]
) -> Optional[int]:
    """Resolve a ``row_limit``/``row_offset`` setting; empty or zero means unset."""
    if value is None:
        return None
    if isinstance(value, int):
        return value or None
    rendered = render(value, placeholders)
    match = _LEADING_INT.match(rendered)
    if not match:
        return None
    return int(match.group(1)) or None


def _accepted_content_type(task: HttpTask, default: str) -> str:
    accept = task.request.header("accept")
    first = accept.split(",")[0].split(";")[0].strip() if accept else ""
    return default if not first or first == "*/*" else first


def _load_openapi(task: HttpTask) -> Dict[str, Any]:
    try:
        openapi = json.loads(task.openapi_json) if task.openapi_json else None
    except json.JSONDecodeError as exc:
        raise SchemaBindingError(f"OpenApi definition of the route is not valid JSON: {exc}") from exc
    if not isinstance(openapi, dict):
        raise SchemaBindingError("Route has no OpenApi definition!")
    return openapi


async def datasheet_to_openapi(step: StepConfig, task: Task, ctx: StepContext) -> StepResult:
    """Read **step.from_object** and merge it into the request's response body.

    Raises:
        UnsupportedInputError: If the flow was not started by an HTTP request.
        SchemaBindingError: If the entity or the response schema is not bound
            in the OpenAPI document.
        UnsupportedSchemaShapeError: If the entity schema is not an object.
        ExecutionError: If the step is misconfigured or the request record of
            the flow run cannot be found.
    """
    if not isinstance(task, HttpTask):
        raise UnsupportedInputError(
            "Http request needed to process OpenApi definitions! "
            f"Task type: {type(task).__name__}"
        )
    if not step.from_object:
        raise ExecutionError(f"Step '{step.name or step.type}' has no from_object configured")

    request = task.request
    placeholders = build_placeholders(
        method=request.method,
        path=request.path,
        url=request.url,
        query_params=request.query_params,
        headers=request.headers,
        flow_run_uid=task.flow_run_uid,
        step_run_uid=ctx.step_run_uid,
        static=ctx.static_placeholders,
    )

    limit = resolve_window_value(step.row_limit, placeholders)
    offset = resolve_window_value(step.row_offset, placeholders) or 0
    window = f"rows {offset + 1} - {offset + limit}" if limit else "all rows"
    ctx.progress.emit(f"Reading {window} requested in OpenApi definition")

    openapi = _load_openapi(task)
    qualified_alias = step.from_object
    short_alias = qualified_alias.rsplit(".", 1)[-1]
    object_schema = locate(schemas_of(openapi), qualified_alias, short_alias)
    columns = extract_attribute_bindings(object_schema)

    rows = await ctx.backend.read(qualified_alias, columns, limit=limit, offset=offset)

    record = await ctx.requests.find_by_flow_run(task.flow_run_uid)
    if record is None:
        raise ExecutionError(f"No request record found for flow run {task.flow_run_uid}")

    response_schema = find_response_schema(
        openapi,
        task.route_path,
        request.method,
        _accepted_content_type(task, ctx.default_accept),
    )
    new_body = build(
        response_schema,
        rows,
        object_schema.object_alias or qualified_alias,
        placeholders,
    )

    current_body = json.loads(record.response_body) if record.response_body else None
    body = new_body if current_body is None else deep_merge(current_body, new_body)

    await ctx.requests.update(
        record.uid,
        {
            "response_body": json.dumps(body),
            "response_header": {"Content-Type": "application/json"},
        },
    )
    logger.info(
        "datasheet_step_completed",
        step_run=ctx.step_run_uid,
        entity=qualified_alias,
        rows=len(rows),
        request=record.uid,
    )
    return StepResult(step_run_uid=ctx.step_run_uid, processed_rows=len(rows))
