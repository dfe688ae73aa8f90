"""
Object Schema Locator

Finds the schema under ``components.schemas`` that describes a backend entity
and extracts which of its properties map to which backend attribute.

A schema is bound to an entity through ``x-object-alias``; its properties are
bound to attributes through ``x-attribute-alias``::

    "Order": {
        "type": "object",
        "x-object-alias": "shop.Order",
        "properties": {
            "Id": {"type": "string", "x-attribute-alias": "UID"},
            "Customer": {"x-attribute-alias": "CUSTOMER__NAME"},
            "Total": {"x-attribute-alias": "POSITION__AMOUNT:SUM"},
            "Label": {"x-attribute-alias": "=CONCAT(NO, ' ', NAME)"}
        }
    }

Attribute expressions are forwarded verbatim to the tabular backend.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

import structlog

from openapi_dataflow.core.exceptions import (
    SchemaBindingError,
    UnsupportedSchemaShapeError,
)
from openapi_dataflow.schema.nodes import (
    OBJECT_ALIAS_MARKER,
    BindingKind,
    SchemaNode,
    parse_node,
)

__all__: list[str] = [
    "schemas_of",
    "locate",
    "extract_attribute_bindings",
    "find_response_schema",
]

logger = structlog.get_logger(__name__)


def schemas_of(openapi: Mapping[str, Any]) -> Dict[str, Any]:
    """Return the ``components.schemas`` mapping of an OpenAPI document.

    Raises:
        SchemaBindingError: If the document declares no schemas.
    """
    components = openapi.get("components") if isinstance(openapi, Mapping) else None
    schemas = components.get("schemas") if isinstance(components, Mapping) else None
    if not isinstance(schemas, Mapping):
        raise SchemaBindingError("OpenApi definition has no components.schemas section!")
    return dict(schemas)


def locate(
    schemas: Mapping[str, Any], qualified_alias: str, short_alias: str
) -> SchemaNode:
    """Find the object schema bound to the entity **qualified_alias**.

    Resolution order:

    1. a schema keyed exactly by the qualified alias;
    2. a schema keyed by the short alias, but only if its ``x-object-alias``
       equals the qualified alias;
    3. the first schema whose ``x-object-alias`` equals the qualified alias.

    Args:
        schemas: The ``components.schemas`` mapping.
        qualified_alias: Namespaced entity alias, e.g. ``shop.Order``.
        short_alias: The entity alias without namespace, e.g. ``Order``.

    Returns:
        The classified schema node.

    Raises:
        SchemaBindingError: If the short-alias schema is bound to another
            entity, or no schema is bound to the entity at all.
    """
    if qualified_alias in schemas:
        logger.debug("schema_located", entity=qualified_alias, via="qualified_key")
        return parse_node(schemas[qualified_alias])

    if short_alias in schemas:
        node = parse_node(schemas[short_alias])
        if node.object_alias != qualified_alias:
            raise SchemaBindingError(
                f"Entity '{qualified_alias}' does not match {OBJECT_ALIAS_MARKER} "
                f"'{node.object_alias}' of schema '{short_alias}' in the OpenApi definition!"
            )
        logger.debug("schema_located", entity=qualified_alias, via="short_key")
        return node

    for name, fragment in schemas.items():
        if not isinstance(fragment, Mapping):
            continue
        if fragment.get(OBJECT_ALIAS_MARKER) == qualified_alias:
            logger.debug("schema_located", entity=qualified_alias, via="scan", schema=name)
            return parse_node(fragment)

    raise SchemaBindingError(
        f"Entity '{qualified_alias}' not found in OpenApi schema!"
    )


def find_response_schema(
    openapi: Mapping[str, Any], route_path: str, method: str, content_type: str
) -> SchemaNode:
    """Return the 200-response schema of ``paths[route_path][method]``.

    Raises:
        SchemaBindingError: If any segment of the lookup is missing.
    """
    segments = (
        "paths",
        route_path,
        method.lower(),
        "responses",
        "200",
        "content",
        content_type,
        "schema",
    )
    current: Any = openapi
    for segment in segments:
        if not isinstance(current, Mapping) or segment not in current:
            raise SchemaBindingError(
                f"Cannot find response schema for {method.upper()} {route_path} "
                f"({content_type}) in OpenApi. Please check the route definition!"
            )
        current = current[segment]
    return parse_node(current)


def extract_attribute_bindings(node: SchemaNode) -> Dict[str, str]:
    """Map property names to attribute expressions, in declaration order.

    Raises:
        UnsupportedSchemaShapeError: If the schema declares no properties.
    """
    if not node.has_properties:
        raise UnsupportedSchemaShapeError(
            "Only schemas of type 'object' with declared properties can be bound to an entity"
        )

    return {
        name: prop.binding_value
        for name, prop in node.properties.items()
        if prop.binding is BindingKind.attribute and prop.binding_value is not None
    }
