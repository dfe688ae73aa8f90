from __future__ import annotations

import re
from typing import Dict, Mapping, Optional

__all__: list[str] = [
    "PLACEHOLDER_PATTERN",
    "render",
    "resolve",
    "build_placeholders",
]

# ``[#~parameter:limit#]`` → ``~parameter:limit``
PLACEHOLDER_PATTERN = re.compile(r"\[#(.+?)#\]")


def render(template: str, placeholders: Mapping[str, str]) -> str:
    """Replace every ``[#name#]`` in **template**; unknown names render empty."""
    return PLACEHOLDER_PATTERN.sub(
        lambda match: str(placeholders.get(match.group(1), "") or ""), template
    )


def resolve(expression: str, placeholders: Mapping[str, str]) -> Optional[str]:
    """Resolve an ``x-placeholder`` expression.

    An expression containing ``[#name#]`` templates is rendered; a bare
    expression is looked up as a placeholder name and yields None when the
    name is unknown.
    """
    if PLACEHOLDER_PATTERN.search(expression):
        return render(expression, placeholders)
    value = placeholders.get(expression)
    return None if value is None else str(value)


def build_placeholders(
    *,
    method: str,
    path: str,
    url: str,
    query_params: Mapping[str, str],
    headers: Mapping[str, str],
    flow_run_uid: Optional[str] = None,
    step_run_uid: Optional[str] = None,
    static: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Collect the values a response template may reference.

    Static placeholders come first so that request-derived names always win.
    Header names are lower-cased.
    """
    values: Dict[str, str] = dict(static or {})
    for name, value in query_params.items():
        values[f"~parameter:{name}"] = value
    for name, value in headers.items():
        values[f"~header:{name.lower()}"] = value
    values["~request:method"] = method
    values["~request:path"] = path
    values["~request:url"] = url
    if flow_run_uid is not None:
        values["~flow_run:uid"] = flow_run_uid
    if step_run_uid is not None:
        values["~step_run:uid"] = step_run_uid
    return values
