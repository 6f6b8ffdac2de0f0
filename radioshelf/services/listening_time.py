"""Per-station listening time: a persisted ledger and the tick-based accumulator."""

import logging
from typing import Optional

from radioshelf.config import LISTENING_TICK_MS, LISTENING_TIMES_KEY
from radioshelf.domain.model import ListeningTime
from radioshelf.domain.ports import Cancellable, ClockPort, KeyValueStorePort, SchedulerPort

logger = logging.getLogger("radioshelf.listening")


class ListeningLedger:
    """Listening totals keyed by dedup identity, stored apart from the records."""

    def __init__(self, storage: KeyValueStorePort):
        self.storage = storage
        self._entries: dict[str, ListeningTime] = {}
        self._load()

    def total_for(self, identity: str) -> int:
        entry = self._entries.get(identity)
        return entry.total_time_ms if entry else 0

    def entry_for(self, identity: str) -> ListeningTime:
        entry = self._entries.get(identity)
        return ListeningTime(entry.total_time_ms, entry.session_count) if entry else ListeningTime()

    def add_time(self, identity: str, elapsed_ms: int) -> None:
        if elapsed_ms <= 0:
            return
        self._entries.setdefault(identity, ListeningTime()).total_time_ms += elapsed_ms
        self._save()

    def record_session(self, identity: str) -> None:
        self._entries.setdefault(identity, ListeningTime()).session_count += 1
        self._save()

    def total_ms(self) -> int:
        return sum(entry.total_time_ms for entry in self._entries.values())

    def _load(self) -> None:
        raw = self.storage.get(LISTENING_TIMES_KEY, {}) or {}
        if not isinstance(raw, dict):
            logger.warning("Ignoring malformed listening times (type=%s)", type(raw).__name__)
            return
        for identity, item in raw.items():
            if not isinstance(item, dict):
                logger.warning("Dropping malformed listening time for %s", identity)
                continue
            try:
                entry = ListeningTime(
                    total_time_ms=max(int(item.get("totalTimeMs", item.get("totalTime", 0)) or 0), 0),
                    session_count=max(int(item.get("sessionCount", 0) or 0), 0),
                )
            except (TypeError, ValueError):
                logger.warning("Dropping malformed listening time for %s: %r", identity, item)
                continue
            self._entries[str(identity)] = entry

    def _save(self) -> None:
        payload = {
            identity: {"totalTimeMs": entry.total_time_ms, "sessionCount": entry.session_count}
            for identity, entry in self._entries.items()
        }
        try:
            self.storage.set(LISTENING_TIMES_KEY, payload)
        except Exception:
            logger.exception("Failed to persist listening times")


class ListeningTimeAccumulator:
    """Adds elapsed playing time to the ledger on a fixed tick and on flush."""

    def __init__(
        self,
        ledger: ListeningLedger,
        scheduler: SchedulerPort,
        clock: ClockPort,
        tick_interval_ms: int = LISTENING_TICK_MS,
    ):
        self.ledger = ledger
        self.scheduler = scheduler
        self.clock = clock
        self.tick_interval_ms = tick_interval_ms
        self._identity: Optional[str] = None
        self._anchor_ms: Optional[int] = None
        self._timer: Optional[Cancellable] = None

    @property
    def active_identity(self) -> Optional[str]:
        return self._identity

    @property
    def running(self) -> bool:
        return self._anchor_ms is not None

    def start(self, identity: str) -> None:
        if self.running:
            self.flush()
        self._identity = identity
        self._anchor_ms = self.clock.monotonic_ms()
        self._timer = self.scheduler.call_every(self.tick_interval_ms, self._tick)

    def flush(self) -> None:
        """Record the partial interval since the last tick and stop ticking."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._anchor_ms is not None and self._identity is not None:
            self.ledger.add_time(self._identity, self.clock.monotonic_ms() - self._anchor_ms)
        self._anchor_ms = None
        self._identity = None

    def _tick(self) -> None:
        if self._anchor_ms is None or self._identity is None:
            return
        now = self.clock.monotonic_ms()
        self.ledger.add_time(self._identity, now - self._anchor_ms)
        self._anchor_ms = now
