"""Shared in-memory adapters and fixtures for all bounded contexts."""

import copy
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import pytest

from radioshelf.domain.errors import CatalogUnavailableError
from radioshelf.domain.model import StationCandidate, StreamFailure
from radioshelf.domain.ports import (
    Cancellable,
    CatalogPort,
    ClockPort,
    KeyValueStorePort,
    SchedulerPort,
    ShortenerPort,
    StarterPackPort,
    StreamBackendPort,
    StreamHandle,
)
from radioshelf.services.library_store import LibraryStore
from radioshelf.services.listening_time import ListeningLedger, ListeningTimeAccumulator
from radioshelf.services.merge_resolver import MergeResolver
from radioshelf.services.playback_session import PlaybackSession


# ── In-memory adapters ──────────────────────────────────────────────


class InMemoryStore(KeyValueStorePort):
    def __init__(self, data: Optional[dict] = None):
        self.data: dict[str, Any] = copy.deepcopy(data or {})
        self.writes: list[str] = []
        self.fail_writes = False

    def get(self, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self.data.get(key, default))

    def set(self, key: str, value: Any) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.data[key] = copy.deepcopy(value)
        self.writes.append(key)

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class FakeClock(ClockPort):
    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        self._monotonic = 0

    def now(self) -> datetime:
        return self._now

    def monotonic_ms(self) -> int:
        return self._monotonic

    def advance(self, ms: int) -> None:
        self._monotonic += ms
        self._now += timedelta(milliseconds=ms)


class _Timer(Cancellable):
    def __init__(self, due: int, callback: Callable[[], None], interval: Optional[int] = None):
        self.due = due
        self.callback = callback
        self.interval = interval
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(SchedulerPort):
    """Timers fire only when the test advances time; it also moves the clock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.timers: list[_Timer] = []

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> Cancellable:
        timer = _Timer(self.clock.monotonic_ms() + delay_ms, callback)
        self.timers.append(timer)
        return timer

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> Cancellable:
        timer = _Timer(self.clock.monotonic_ms() + interval_ms, callback, interval_ms)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> list[_Timer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, ms: int) -> None:
        target = self.clock.monotonic_ms() + ms
        while True:
            due = [t for t in self.active if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.clock.advance(timer.due - self.clock.monotonic_ms())
            if timer.interval is None:
                timer.cancelled = True
            else:
                timer.due += timer.interval
            timer.callback()
        self.clock.advance(target - self.clock.monotonic_ms())


class FakeHandle(StreamHandle):
    def __init__(self, url: str, on_ready, on_error, volume: float, muted: bool):
        self.url = url
        self.on_ready = on_ready
        self.on_error = on_error
        self.volume = volume
        self.muted = muted
        self.buffered = False
        self.paused = False
        self.stopped = False

    def play(self) -> None:
        self.paused = False

    def pause(self) -> None:
        self.paused = True

    def stop(self) -> None:
        self.stopped = True

    def set_volume(self, volume: float) -> None:
        self.volume = volume

    def set_muted(self, muted: bool) -> None:
        self.muted = muted

    def is_buffered(self) -> bool:
        return self.buffered

    # Test helpers: simulate what the media pipeline reports.

    def ready(self) -> None:
        self.buffered = True
        self.on_ready()

    def fail(self, kind, message: str = "boom") -> None:
        self.on_error(StreamFailure(kind, message))


class FakeBackend(StreamBackendPort):
    def __init__(self):
        self.handles: list[FakeHandle] = []

    def open(self, url, on_ready, on_error, volume, muted) -> FakeHandle:
        handle = FakeHandle(url, on_ready, on_error, volume, muted)
        self.handles.append(handle)
        return handle

    @property
    def last(self) -> FakeHandle:
        return self.handles[-1]

    @property
    def live(self) -> list[FakeHandle]:
        return [h for h in self.handles if not h.stopped]


class FakeCatalog(CatalogPort):
    def __init__(self, stations: Optional[dict[str, StationCandidate]] = None):
        self.stations = stations or {}
        self.unavailable = False
        self.lookups: list[str] = []

    def lookup(self, remote_id: str) -> Optional[StationCandidate]:
        self.lookups.append(remote_id)
        if self.unavailable:
            raise CatalogUnavailableError("all servers down")
        return self.stations.get(remote_id)

    def search(self, query: str, by: str = "name", limit: int = 20) -> list[StationCandidate]:
        needle = query.lower()
        return [c for c in self.stations.values() if needle in c.display_name.lower()][:limit]


class FakeShortener(ShortenerPort):
    def __init__(self, short_url: Optional[str] = "https://s.example/abc"):
        self.short_url = short_url
        self.requests: list[str] = []

    def shorten(self, long_url: str) -> Optional[str]:
        self.requests.append(long_url)
        return self.short_url


class FakeStarterPacks(StarterPackPort):
    def __init__(self, packs: dict[str, list[StationCandidate]]):
        self.packs = packs

    def load(self, name: str) -> list[StationCandidate]:
        return list(self.packs[name])


# ── Shared fixtures ─────────────────────────────────────────────────


def candidate(name: str, url: Optional[str] = None, remote_id: Optional[str] = None, **fields) -> StationCandidate:
    slug = name.lower().replace(" ", "-")
    return StationCandidate(
        stream_url=url or f"http://streams.example/{slug}",
        display_name=name,
        remote_id=remote_id,
        **fields,
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture
def ledger(store):
    return ListeningLedger(store)


@pytest.fixture
def library(store, ledger, clock):
    return LibraryStore(store, ledger, clock)


@pytest.fixture
def resolver(library):
    return MergeResolver(library)


@pytest.fixture
def accumulator(ledger, scheduler, clock):
    return ListeningTimeAccumulator(ledger, scheduler, clock, tick_interval_ms=30_000)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def session(backend, library, accumulator, store, clock):
    session = PlaybackSession(backend, library, accumulator, store, clock)
    yield session
    session.close()


@pytest.fixture
def jazz(library):
    return library.add(candidate("Jazz FM", remote_id="uuid-jazz"))


@pytest.fixture
def rock(library):
    return library.add(candidate("Rock Radio", url="https://rock.example/live"))


@pytest.fixture
def make_candidate():
    return candidate


@pytest.fixture
def catalog():
    return FakeCatalog(
        {
            "uuid-jazz": candidate("Jazz FM", remote_id="uuid-jazz", country_code="GB", bitrate_kbps=128),
            "uuid-fip": candidate("FIP", url="http://icecast.radiofrance.fr/fip-hifi.aac", remote_id="uuid-fip"),
            "uuid-kexp": candidate("KEXP", url="https://kexp.streamguys1.com/kexp160.aac", remote_id="uuid-kexp"),
        }
    )


@pytest.fixture
def shortener():
    return FakeShortener()


@pytest.fixture
def starter_packs(make_candidate):
    return FakeStarterPacks(
        {
            "jazz": [
                make_candidate("Jazz FM", remote_id="uuid-jazz"),
                make_candidate("Smooth Jazz", remote_id="uuid-smooth"),
            ]
        }
    )
