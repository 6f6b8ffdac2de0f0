"""Minimal observer used by the store and the playback session."""

import logging
from typing import Any, Callable

logger = logging.getLogger("radioshelf.events")

Listener = Callable[..., None]


class EventEmitter:
    """Named-event fan-out. A failing listener is logged, never propagated."""

    def __init__(self):
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event: str, listener: Listener) -> Callable[[], None]:
        self._listeners.setdefault(event, []).append(listener)
        return lambda: self.off(event, listener)

    def off(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(*args)
            except Exception:
                logger.exception("Listener for %s failed", event)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))
