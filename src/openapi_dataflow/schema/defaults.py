"""
Default-response fallback

When a flow finishes without writing a response body, the dispatcher answers
with the first ``defaultResponse`` entry found anywhere in the route's OpenAPI
document.  The search is purely by key name, depth-first: the keys of a
mapping are checked before its children are descended into.  An empty match
abandons that mapping without descending further, and the search continues
with the next sibling branch.
"""

from __future__ import annotations

from typing import Any, Mapping

__all__: list[str] = [
    "DEFAULT_RESPONSE_KEY",
    "find_default_response",
]

DEFAULT_RESPONSE_KEY = "defaultResponse"

_NOT_FOUND = object()


def _search(node: Any, key: str) -> Any:
    if isinstance(node, Mapping):
        if key in node:
            return node[key] if node[key] else _NOT_FOUND
        children = list(node.values())
    elif isinstance(node, list):
        children = node
    else:
        return _NOT_FOUND

    for child in children:
        found = _search(child, key)
        if found is not _NOT_FOUND:
            return found
    return _NOT_FOUND


def find_default_response(openapi: Any, key: str = DEFAULT_RESPONSE_KEY) -> Any:
    """Return the body declared under the first non-empty **key**, or None.

    A match shaped like an OpenAPI Example Object (``{"value": ...}``) is
    unwrapped to its ``value``.
    """
    found = _search(openapi, key)
    if found is _NOT_FOUND:
        return None
    if isinstance(found, Mapping) and "value" in found:
        return found["value"]
    return found
