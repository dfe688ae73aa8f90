from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from openapi_dataflow.flows.progress import ProgressChannel
from openapi_dataflow.storage.requests import RequestLogStore
from openapi_dataflow.storage.tables import TabularBackend

__all__: list[str] = ["StepContext"]


@dataclass
class StepContext:
    """
    Collaborators and settings a flow step runs with.

    Attributes:
        step_run_uid: Unique id of this step execution.
        progress: Channel for human-readable progress notes.
        backend: Tabular read layer for entity rows.
        requests: Request log, used to read and extend the response body.
        static_placeholders: Configured ``[#name#]`` values.
        default_accept: Content type assumed when the request has no ``Accept``.
    """

    step_run_uid: str
    progress: ProgressChannel
    backend: TabularBackend
    requests: RequestLogStore
    static_placeholders: Dict[str, str] = field(default_factory=dict)
    default_accept: str = "application/json"
