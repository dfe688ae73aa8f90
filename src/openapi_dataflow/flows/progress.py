from __future__ import annotations

from typing import Callable, List

import structlog

__all__: list[str] = [
    "ProgressObserver",
    "ProgressChannel",
]

logger = structlog.get_logger(__name__)

ProgressObserver = Callable[[str], None]


class ProgressChannel:
    """Human-readable progress notes of a flow run.

    Steps call :meth:`emit`; observers are optional.  Every note is logged and
    kept in :attr:`messages`, so nothing depends on an observer being attached,
    and a failing observer never interrupts the step that emitted the note.
    """

    def __init__(self) -> None:
        self._observers: List[ProgressObserver] = []
        self._messages: List[str] = []

    @property
    def messages(self) -> List[str]:
        return list(self._messages)

    def subscribe(self, observer: ProgressObserver) -> None:
        self._observers.append(observer)

    def emit(self, message: str) -> None:
        self._messages.append(message)
        logger.info("flow_progress", message=message)
        for observer in self._observers:
            try:
                observer(message)
            except Exception as e:  # noqa: BLE001 – observers must not break the flow
                logger.warning(
                    "progress_observer_failed",
                    observer=getattr(observer, "__name__", repr(observer)),
                    error=str(e),
                )
