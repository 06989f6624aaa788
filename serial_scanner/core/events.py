"""Observer seam between the state machines and a presentation layer."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)

# Event kinds
STATE = "state"
STATUS = "status"
ERROR = "error"
MATCHED = "matched"
SERIAL_ADDED = "serial_added"
SUBMITTED = "submitted"


@dataclass(slots=True, frozen=True)
class ScanEvent:
    kind: str
    state: Any = None
    message: Optional[str] = None
    serial: Any = None


Listener = Callable[[ScanEvent], None]


class EventEmitter:
    """Mixin keeping a listener list and publishing ScanEvents to it."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._listeners: List[Listener] = []

    def add_listener(self, cb: Listener) -> None:
        self._listeners.append(cb)

    def remove_listener(self, cb: Listener) -> None:
        if cb in self._listeners:
            self._listeners.remove(cb)

    def _emit(self, kind: str, state: Any = None, message: Optional[str] = None,
              serial: Any = None) -> None:
        event = ScanEvent(kind=kind, state=state, message=message, serial=serial)
        for cb in list(self._listeners):
            try:
                cb(event)
            except Exception:
                logger.exception(f"Listener failed handling {kind} event")
