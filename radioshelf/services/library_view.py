"""Presentation-agnostic view model over the library: query, sort and debounce."""

import logging
from typing import Callable, Optional

from radioshelf.config import FILTER_DEBOUNCE_MS
from radioshelf.domain.events import EventEmitter
from radioshelf.domain.model import SortOption, StationRecord
from radioshelf.domain.ports import Cancellable, SchedulerPort
from radioshelf.services.library_store import LibraryStore

logger = logging.getLogger("radioshelf.view")

_REFRESH_EVENTS = (
    "station_added",
    "station_removed",
    "station_updated",
    "station_played",
    "preset_changed",
    "library_cleared",
    "stations_imported",
    "library_loaded",
    "sort_changed",
)


class FilterDebouncer:
    """Delivers only the last query typed within ``delay_ms``."""

    def __init__(self, scheduler: SchedulerPort, on_query: Callable[[str], None], delay_ms: int = FILTER_DEBOUNCE_MS):
        self.scheduler = scheduler
        self.on_query = on_query
        self.delay_ms = delay_ms
        self._pending: Optional[str] = None
        self._timer: Optional[Cancellable] = None

    @property
    def pending(self) -> Optional[str]:
        return self._pending

    def input(self, query: str) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._pending = query
        self._timer = self.scheduler.call_later(self.delay_ms, self._fire)

    def submit(self) -> None:
        """Deliver the pending query now (e.g. on Enter)."""
        if self._timer is not None:
            self._timer.cancel()
        self._fire()

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._pending = None

    def _fire(self) -> None:
        self._timer = None
        query, self._pending = self._pending, None
        if query is not None:
            self.on_query(query)


class LibraryView:

    def __init__(
        self,
        library: LibraryStore,
        scheduler: SchedulerPort,
        events: Optional[EventEmitter] = None,
        debounce_ms: int = FILTER_DEBOUNCE_MS,
    ):
        self.library = library
        self.events = events or EventEmitter()
        self.debouncer = FilterDebouncer(scheduler, self.set_query, debounce_ms)
        self._query = ""
        self._stations: list[StationRecord] = []
        self._unsubscribe = [library.events.on(name, self._on_library_changed) for name in _REFRESH_EVENTS]
        self.refresh()

    @property
    def query(self) -> str:
        return self._query

    @property
    def sort_option(self) -> SortOption:
        return self.library.sort_option

    @property
    def stations(self) -> list[StationRecord]:
        return list(self._stations)

    def type_query(self, text: str) -> None:
        self.debouncer.input(text)

    def set_query(self, query: str) -> None:
        self._query = query
        self.refresh()

    def set_sort_option(self, option: SortOption) -> None:
        # The store emits sort_changed, which refreshes the view.
        self.library.set_sort_option(option)

    def refresh(self) -> list[StationRecord]:
        self._stations = self.library.sorted_filtered_view(filter_query=self._query)
        self.events.emit("view_changed", self.stations)
        return self.stations

    def close(self) -> None:
        self.debouncer.cancel()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    def _on_library_changed(self, *args) -> None:
        self.refresh()
