"""
Tabular read backend

The flow steps read entity rows through the :class:`TabularBackend` protocol:
given an entity alias, a mapping of output column names to attribute
expressions, and an optional page window, return the projected rows.

:class:`RedisTableBackend` is the backend shipped with the service.  Each
entity is a JSON list of row objects under ``entity:<alias>``.  Supported
attribute expressions:

- ``NAME`` – a plain attribute;
- ``ORDER__CUSTOMER__NAME`` – a relation path, walking nested objects and
  fanning out over nested lists;
- ``POSITION__AMOUNT:SUM`` – a path with an aggregation suffix (``SUM``,
  ``COUNT``, ``MIN``, ``MAX``, ``AVG``, ``LIST``).

Formula expressions (``=...``) need a formula engine and are rejected.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, Final, List, Mapping, Optional, Protocol

import structlog

from openapi_dataflow.core.exceptions import ExecutionError
from openapi_dataflow.storage.client import RedisT

__all__: list[str] = [
    "TabularBackend",
    "RedisTableBackend",
    "AGGREGATORS",
    "evaluate_expression",
]

logger = structlog.get_logger(__name__)

_ENTITY_KEY_PREFIX = "entity:"
_RELATION_SEPARATOR = "__"
_AGGREGATION_SEPARATOR = ":"


class TabularBackend(Protocol):
    async def read(
        self,
        entity_alias: str,
        columns: Mapping[str, str],
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        ...


def _numbers(values: List[Any]) -> List[float]:
    numbers: List[float] = []
    for value in values:
        try:
            numbers.append(float(value))
        except (TypeError, ValueError):
            continue
    return numbers


def _sum(values: List[Any]) -> Any:
    total = sum(_numbers(values))
    return int(total) if float(total).is_integer() else total


def _avg(values: List[Any]) -> Optional[float]:
    numbers = _numbers(values)
    return sum(numbers) / len(numbers) if numbers else None


# Dispatch table – maps aggregation suffixes to reducers over non-null values.
AGGREGATORS: Final[Dict[str, Callable[[List[Any]], Any]]] = {
    "SUM": _sum,
    "COUNT": len,
    "MIN": lambda values: min(values) if values else None,
    "MAX": lambda values: max(values) if values else None,
    "AVG": _avg,
    "LIST": lambda values: ", ".join(str(v) for v in values),
}


def _walk(value: Any, parts: List[str]) -> Any:
    if not parts:
        return value
    if isinstance(value, list):
        return [_walk(item, parts) for item in value]
    if isinstance(value, Mapping):
        return _walk(value.get(parts[0]), parts[1:])
    return None


def _flatten(value: Any) -> List[Any]:
    if isinstance(value, list):
        flat: List[Any] = []
        for item in value:
            flat.extend(_flatten(item))
        return flat
    return [] if value is None else [value]


def evaluate_expression(row: Mapping[str, Any], expression: str) -> Any:
    """Evaluate one attribute expression against a stored row.

    Raises:
        ExecutionError: For formulas and unknown aggregation suffixes.
    """
    if expression.startswith("="):
        raise ExecutionError(f"Formula expressions are not supported: {expression}")

    path, _, aggregation = expression.partition(_AGGREGATION_SEPARATOR)
    value = _walk(row, path.split(_RELATION_SEPARATOR))
    if not aggregation:
        return value

    reducer = AGGREGATORS.get(aggregation.upper())
    if reducer is None:
        raise ExecutionError(f"Unknown aggregation '{aggregation}' in '{expression}'")
    return reducer(_flatten(value))


class RedisTableBackend:
    """Entity tables kept as JSON lists in Redis."""

    def __init__(self, redis_client: RedisT) -> None:
        self._redis = redis_client

    async def put_rows(self, entity_alias: str, rows: List[Dict[str, Any]]) -> None:
        await self._redis.set(f"{_ENTITY_KEY_PREFIX}{entity_alias}", json.dumps(rows))

    async def read(
        self,
        entity_alias: str,
        columns: Mapping[str, str],
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Read a page of **entity_alias** projected onto **columns**.

        Raises:
            ExecutionError: If the stored table is not a JSON list, or an
                expression cannot be evaluated.
        """
        raw = await self._redis.get(f"{_ENTITY_KEY_PREFIX}{entity_alias}")
        if raw is None:
            logger.info("entity_table_empty", entity=entity_alias)
            return []
        try:
            stored = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ExecutionError(f"Entity table '{entity_alias}' is not valid JSON") from exc
        if not isinstance(stored, list):
            raise ExecutionError(f"Entity table '{entity_alias}' must be a JSON list")

        window = stored[offset:] if limit is None else stored[offset : offset + limit]
        rows = [
            {name: evaluate_expression(row, expr) for name, expr in columns.items()}
            for row in window
            if isinstance(row, Mapping)
        ]
        logger.debug(
            "entity_rows_read",
            entity=entity_alias,
            rows=len(rows),
            offset=offset,
            limit=limit,
        )
        return rows
