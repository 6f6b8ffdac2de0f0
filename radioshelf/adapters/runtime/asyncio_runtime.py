"""Timers on an asyncio event loop, plus the wall/monotonic clock."""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from radioshelf.domain.ports import Cancellable, ClockPort, SchedulerPort

logger = logging.getLogger("radioshelf.runtime")


class SystemClock(ClockPort):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic_ms(self) -> int:
        return int(time.monotonic() * 1000)


class _OneShot(Cancellable):

    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()


class _Repeating(Cancellable):
    """Re-arms itself after every run until cancelled."""

    def __init__(self, loop: asyncio.AbstractEventLoop, interval_ms: int, callback: Callable[[], None]):
        self._loop = loop
        self._interval = interval_ms / 1000
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self._cancelled = False
        self._arm()

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _arm(self) -> None:
        self._handle = self._loop.call_later(self._interval, self._run)

    def _run(self) -> None:
        if self._cancelled:
            return
        try:
            self._callback()
        except Exception:
            logger.exception("Repeating timer callback failed")
        if not self._cancelled:
            self._arm()


class AsyncioScheduler(SchedulerPort):

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.loop = loop

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> Cancellable:
        return _OneShot(self.loop.call_later(delay_ms / 1000, callback))

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> Cancellable:
        return _Repeating(self.loop, interval_ms, callback)
