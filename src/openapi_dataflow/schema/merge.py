from __future__ import annotations

from typing import Any, Dict, List, Mapping

__all__: list[str] = ["deep_merge"]


def _merge_entry(existing: Any, incoming: Any) -> Any:
    if isinstance(existing, list) and isinstance(incoming, list):
        return existing + incoming
    return incoming


def deep_merge(existing: Any, incoming: Any) -> Any:
    """Combine a persisted partial body with a newly built one.

    One level only.  Both bodies are either mappings or lists; list positions
    are treated like mapping keys.  For a key (or position) on both sides, two
    lists are concatenated (existing first, duplicates kept) and any other
    pair is resolved by taking the incoming value.  Keys present on one side
    only are kept as they are, so a shorter incoming list never truncates the
    existing one.  Nested mappings are never merged recursively.

    When the two bodies are of different shapes the incoming body replaces the
    existing one, unless it is empty.
    """
    # TODO: lists grow on every partial update of the same request; decide with
    # API consumers whether same-key lists should be de-duplicated.
    if isinstance(existing, list) and isinstance(incoming, list):
        merged_list: List[Any] = list(existing)
        for index, value in enumerate(incoming):
            if index < len(merged_list):
                merged_list[index] = _merge_entry(merged_list[index], value)
            else:
                merged_list.append(value)
        return merged_list

    if isinstance(existing, Mapping) and isinstance(incoming, Mapping):
        merged: Dict[str, Any] = dict(existing)
        for key, value in incoming.items():
            merged[key] = _merge_entry(merged[key], value) if key in merged else value
        return merged

    if incoming in ({}, []) and existing is not None:
        return existing
    return incoming
