from __future__ import annotations

from .engine import FlowEngine, FlowInvoker, StepFlowEngine, generate_flow_run_uid
from .progress import ProgressChannel

__all__: list[str] = [
    "FlowEngine",
    "FlowInvoker",
    "generate_flow_run_uid",
    "ProgressChannel",
    "StepFlowEngine",
]
