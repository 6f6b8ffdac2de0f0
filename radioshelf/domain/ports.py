"""Ports (interfaces) for the hexagonal architecture."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Optional

from radioshelf.domain.model import StationCandidate, StreamFailure


class KeyValueStorePort(ABC):
    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...


class StreamHandle(ABC):
    """One underlying stream resource, owned by the playback session."""

    @abstractmethod
    def play(self) -> None:
        ...

    @abstractmethod
    def pause(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop playback, detach callbacks and release the connection."""

    @abstractmethod
    def set_volume(self, volume: float) -> None:
        ...

    @abstractmethod
    def set_muted(self, muted: bool) -> None:
        ...

    @abstractmethod
    def is_buffered(self) -> bool:
        ...


class StreamBackendPort(ABC):
    @abstractmethod
    def open(
        self,
        url: str,
        on_ready: Callable[[], None],
        on_error: Callable[[StreamFailure], None],
        volume: float,
        muted: bool,
    ) -> StreamHandle:
        """Start loading ``url``; callbacks may fire later, more than once."""


class CatalogPort(ABC):
    @abstractmethod
    def lookup(self, remote_id: str) -> Optional[StationCandidate]:
        ...

    @abstractmethod
    def search(self, query: str, by: str = "name", limit: int = 20) -> list[StationCandidate]:
        ...


class ShortenerPort(ABC):
    @abstractmethod
    def shorten(self, long_url: str) -> Optional[str]:
        ...


class StarterPackPort(ABC):
    @abstractmethod
    def load(self, name: str) -> list[StationCandidate]:
        ...


class Cancellable(ABC):
    @abstractmethod
    def cancel(self) -> None:
        ...


class SchedulerPort(ABC):
    @abstractmethod
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> Cancellable:
        ...

    @abstractmethod
    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> Cancellable:
        ...


class ClockPort(ABC):
    @abstractmethod
    def now(self) -> datetime:
        ...

    @abstractmethod
    def monotonic_ms(self) -> int:
        ...


class ConfigPort(ABC):
    @abstractmethod
    def load(self) -> dict:
        ...

    @abstractmethod
    def save(self, cfg: dict) -> None:
        ...

    @abstractmethod
    def is_configured(self) -> bool:
        ...
