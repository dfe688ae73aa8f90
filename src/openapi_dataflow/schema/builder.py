"""
Response Body Builder

Walks the response schema of a route and produces the part of the response
body that one flow step can populate:

- a node bound (``x-object-alias``) to the step's entity receives the rows
  read by that step;
- a property with ``x-placeholder`` receives its rendered template, coerced
  by the declared ``type``;
- nodes with a declared ``type`` of ``array`` or ``object`` are descended
  into (a node with ``properties`` or ``items`` but no ``type`` is not);
- everything else is illustrative schema content and stays out of the body.

Array nodes wrap a non-empty element result into a single-element list, so an
array whose ``items`` are bound to the entity yields ``[[row, row, ...]]``.
The output is partial; bodies from several steps are combined with
:func:`openapi_dataflow.schema.merge.deep_merge`.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional

from openapi_dataflow.schema.nodes import BindingKind, SchemaNode
from openapi_dataflow.schema.placeholders import resolve

__all__: list[str] = [
    "build",
    "coerce_placeholder_value",
]

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class _Absent:
    """Marks a node that contributes nothing to the body."""

    def __repr__(self) -> str:  # pragma: no cover – debugging aid
        return "<absent>"


_ABSENT = _Absent()


_EMPTY_VALUES = frozenset({"", "0"})
_CONTAINER_TYPES = frozenset({"array", "object"})


def _to_int(value: str) -> int:
    match = _LEADING_INT.match(value)
    return int(match.group(1)) if match else 0


def coerce_placeholder_value(value: Optional[str], declared_type: Optional[str]) -> Any:
    """Coerce a rendered placeholder by the property's declared type.

    Empty values (``None``, ``""`` and ``"0"``) become ``None``.  ``integer``
    takes the leading integer of the string (``0`` when there is none),
    ``boolean`` is True for any remaining value, anything else stays a string.
    """
    if value is None or value in _EMPTY_VALUES:
        return None
    if declared_type == "integer":
        return _to_int(value)
    if declared_type == "boolean":
        return bool(value)
    return value


def _is_empty_result(value: Any) -> bool:
    return value is _ABSENT or value == [] or value == {}


def _build_node(
    node: SchemaNode,
    rows: List[Dict[str, Any]],
    entity_alias: str,
    placeholders: Mapping[str, str],
) -> Any:
    if node.is_bound_to(entity_alias):
        return rows

    if node.declared_type == "array":
        if node.items is None:
            return []
        inner = _build_node(node.items, rows, entity_alias, placeholders)
        return [] if _is_empty_result(inner) else [inner]

    if node.declared_type == "object":
        body: Dict[str, Any] = {}
        for name, prop in node.properties.items():
            if prop.is_bound_to(entity_alias):
                body[name] = rows
            elif prop.binding is BindingKind.placeholder:
                rendered = resolve(prop.binding_value or "", placeholders)
                body[name] = coerce_placeholder_value(rendered, prop.declared_type)
            elif prop.declared_type in _CONTAINER_TYPES:
                value = _build_node(prop, rows, entity_alias, placeholders)
                if value is not _ABSENT:
                    body[name] = value
        return body

    return _ABSENT


def build(
    node: SchemaNode,
    rows: List[Dict[str, Any]],
    entity_alias: str,
    placeholders: Mapping[str, str],
) -> Any:
    """Build the partial response body for **node**.

    Args:
        node: Classified response schema.
        rows: Rows read for the bound entity, already mapped to property names.
        entity_alias: Qualified alias of the entity the rows belong to.
        placeholders: Values for ``[#name#]`` templates.

    Returns:
        A JSON-serialisable value; ``{}`` when nothing could be populated.
    """
    result = _build_node(node, rows, entity_alias, placeholders)
    return {} if result is _ABSENT else result
