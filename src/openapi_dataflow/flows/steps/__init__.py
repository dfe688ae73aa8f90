"""Flow step implementations.

Each step is an async callable ``(step_config, task, context) -> StepResult``
registered in :data:`STEP_REGISTRY` under the ``type`` name used in flow
definitions.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Dict, Final

from openapi_dataflow.flows.context import StepContext
from openapi_dataflow.models import StepConfig
from openapi_dataflow.types import StepResult, Task

from .datasheet_to_openapi import datasheet_to_openapi

__all__: list[str] = [
    "StepFunc",
    "STEP_REGISTRY",
    "datasheet_to_openapi",
]

StepFunc = Callable[[StepConfig, Task, StepContext], Awaitable[StepResult]]

# Dispatch table – maps step ``type`` names to their implementations.
STEP_REGISTRY: Final[Dict[str, StepFunc]] = {
    "DataSheetToOpenApi": datasheet_to_openapi,
}
