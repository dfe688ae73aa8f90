"""
Schema Node Classification

OpenAPI schema fragments arrive as plain JSON dictionaries.  Before the locator
and the response builder walk them, every fragment is classified **once** into
a :class:`SchemaNode`: its structural kind (object, array, scalar, other) and
the single binding marker it carries, if any.  Recursive consumers then switch
on these tags instead of probing dictionary keys at every step.

Recognised binding markers:

- ``x-object-alias`` – ties a node to a backend entity alias.
- ``x-attribute-alias`` – ties a scalar property to a backend attribute
  expression (plain path, relation path with optional aggregation suffix, or
  formula).  The expression is opaque here.
- ``x-placeholder`` – ties a scalar property to a ``[#name#]`` template.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from openapi_dataflow.core.exceptions import SchemaBindingError

__all__: list[str] = [
    "OBJECT_ALIAS_MARKER",
    "ATTRIBUTE_ALIAS_MARKER",
    "PLACEHOLDER_MARKER",
    "NodeKind",
    "BindingKind",
    "SchemaNode",
    "parse_node",
]

OBJECT_ALIAS_MARKER = "x-object-alias"
ATTRIBUTE_ALIAS_MARKER = "x-attribute-alias"
PLACEHOLDER_MARKER = "x-placeholder"


class NodeKind(str, Enum):
    object = "object"
    array = "array"
    scalar = "scalar"
    other = "other"


class BindingKind(str, Enum):
    none = "none"
    entity = "entity"
    attribute = "attribute"
    placeholder = "placeholder"


_MARKERS: Dict[str, BindingKind] = {
    OBJECT_ALIAS_MARKER: BindingKind.entity,
    ATTRIBUTE_ALIAS_MARKER: BindingKind.attribute,
    PLACEHOLDER_MARKER: BindingKind.placeholder,
}

_SCALAR_TYPES = frozenset({"string", "integer", "number", "boolean", "null"})


@dataclass(frozen=True)
class SchemaNode:
    """A classified schema fragment.

    Attributes:
        kind: Structural kind derived from ``type`` (or from the presence of
            ``properties``/``items`` when ``type`` is missing).
        declared_type: The literal ``type`` value, or None.
        binding: Which marker the node carries.
        binding_value: The marker's value (alias, expression or template).
        properties: Ordered child nodes for object nodes.
        items: The element node for array nodes.
        has_properties: Whether the raw fragment declared ``properties`` at all.
        raw: The original fragment, kept for diagnostics.
    """

    kind: NodeKind
    declared_type: Optional[str] = None
    binding: BindingKind = BindingKind.none
    binding_value: Optional[str] = None
    properties: Dict[str, "SchemaNode"] = field(default_factory=dict)
    items: Optional["SchemaNode"] = None
    has_properties: bool = False
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def object_alias(self) -> Optional[str]:
        return self.binding_value if self.binding is BindingKind.entity else None

    def is_bound_to(self, entity_alias: str) -> bool:
        return self.binding is BindingKind.entity and self.binding_value == entity_alias


def _classify_kind(fragment: Mapping[str, Any], declared_type: Optional[str]) -> NodeKind:
    if declared_type == "object":
        return NodeKind.object
    if declared_type == "array":
        return NodeKind.array
    if declared_type in _SCALAR_TYPES:
        return NodeKind.scalar
    if declared_type is None:
        if isinstance(fragment.get("properties"), Mapping):
            return NodeKind.object
        if isinstance(fragment.get("items"), Mapping):
            return NodeKind.array
    return NodeKind.other


def _classify_binding(fragment: Mapping[str, Any]) -> tuple[BindingKind, Optional[str]]:
    found = [marker for marker in _MARKERS if marker in fragment]
    if not found:
        return BindingKind.none, None
    if len(found) > 1:
        raise SchemaBindingError(
            f"Schema node carries more than one binding marker: {', '.join(found)}"
        )
    marker = found[0]
    value = fragment[marker]
    return _MARKERS[marker], None if value is None else str(value)


def parse_node(fragment: Any) -> SchemaNode:
    """Classify **fragment** and all of its children.

    Non-mapping fragments (e.g. a stray list or string) classify as
    ``NodeKind.other`` so that the builder can skip them silently.

    Raises:
        SchemaBindingError: If a node carries more than one binding marker.
    """
    if not isinstance(fragment, Mapping):
        return SchemaNode(kind=NodeKind.other)

    raw_type = fragment.get("type")
    declared_type = raw_type if isinstance(raw_type, str) else None
    kind = _classify_kind(fragment, declared_type)
    binding, binding_value = _classify_binding(fragment)

    raw_properties = fragment.get("properties")
    has_properties = isinstance(raw_properties, Mapping)
    properties: Dict[str, SchemaNode] = {}
    if has_properties:
        for name, child in raw_properties.items():
            properties[str(name)] = parse_node(child)

    items: Optional[SchemaNode] = None
    if isinstance(fragment.get("items"), Mapping):
        items = parse_node(fragment["items"])

    return SchemaNode(
        kind=kind,
        declared_type=declared_type,
        binding=binding,
        binding_value=binding_value,
        properties=properties,
        items=items,
        has_properties=has_properties,
        raw=fragment,
    )
