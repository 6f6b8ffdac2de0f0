"""The station library: canonical record set, preset slots and projections.

Every mutation is written back to the key-value store before the method
returns. A failed write is logged and reported through the
``persistence_failed`` event; the in-memory library stays authoritative
for the lifetime of the process.
"""

import logging
import uuid
from typing import Any, Callable, Iterable, Optional
from urllib.parse import urlparse

from radioshelf.config import (
    EXPORT_VERSION,
    MAX_STATIONS,
    MOST_PLAYED_LIMIT,
    NOTE_MAX_LENGTH,
    PINNED_MIGRATION_KEY,
    PRESET_SLOTS,
    RETIRED_IDS_KEY,
    SORT_PREFERENCE_KEY,
    STATIONS_KEY,
)
from radioshelf.domain.errors import (
    DuplicateStationError,
    LibraryFullError,
    PersistenceError,
    ValidationError,
)
from radioshelf.domain.events import EventEmitter
from radioshelf.domain.model import (
    LibraryStats,
    SortOption,
    StationCandidate,
    StationRecord,
    format_timestamp,
)
from radioshelf.domain.ports import ClockPort, KeyValueStorePort
from radioshelf.services.listening_time import ListeningLedger
from radioshelf.services.station_sorting import filter_records, sort_records

logger = logging.getLogger("radioshelf.library")

UPDATABLE_FIELDS = {
    "stream_url",
    "display_name",
    "remote_id",
    "custom_name",
    "favicon_url",
    "homepage_url",
    "bitrate_kbps",
    "country_code",
    "vote_count",
    "note",
}
# Owned by dedicated operations (set_preset, record_play) or derived.
IGNORED_FIELDS = {"id", "preset_slot", "play_count", "date_added", "last_played_at", "total_listening_time_ms"}


def _check_stream_url(url: str) -> None:
    if not url:
        raise ValidationError("Stream URL is required")
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"Unsupported stream URL: {url}")


def _check_note(note: Optional[str]) -> None:
    if note and len(note) > NOTE_MAX_LENGTH:
        raise ValidationError(f"Note is longer than {NOTE_MAX_LENGTH} characters")


def validate_candidate(candidate: StationCandidate) -> None:
    _check_stream_url(candidate.stream_url)
    if not candidate.display_name:
        raise ValidationError("Station name is required")
    _check_note(candidate.note)


def _new_station_id() -> str:
    return f"station_{uuid.uuid4().hex}"


class LibraryStore:
    """Owns the StationRecords. External code never splices the list directly."""

    def __init__(
        self,
        storage: KeyValueStorePort,
        ledger: ListeningLedger,
        clock: ClockPort,
        events: Optional[EventEmitter] = None,
        max_stations: int = MAX_STATIONS,
        id_factory: Callable[[], str] = _new_station_id,
    ):
        self.storage = storage
        self.ledger = ledger
        self.clock = clock
        self.events = events or EventEmitter()
        self.max_stations = max_stations
        self._id_factory = id_factory
        self._records: dict[str, StationRecord] = {}
        self._order: list[str] = []
        self._retired_ids: set[str] = set()
        self._retired_written = 0
        self._sort_option = SortOption.RECENTLY_PLAYED
        self.load()

    # ── Queries ────────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, station_id: object) -> bool:
        return station_id in self._records

    def get(self, station_id: str) -> Optional[StationRecord]:
        return self._records.get(station_id)

    def get_by_identity(self, identity: str) -> Optional[StationRecord]:
        for record in self._records.values():
            if record.identity == identity:
                return record
        return None

    def find_by_remote_id(self, remote_id: str) -> Optional[StationRecord]:
        for record in self._records.values():
            if record.remote_id == remote_id:
                return record
        return None

    def all(self) -> list[StationRecord]:
        """Records in display order (most recently added first)."""
        self._refresh_listening_times()
        return [self._records[station_id] for station_id in self._order]

    def identities(self) -> set[str]:
        return {record.identity for record in self._records.values()}

    @property
    def sort_option(self) -> SortOption:
        return self._sort_option

    def sorted_filtered_view(
        self, sort_option: Optional[SortOption] = None, filter_query: str = ""
    ) -> list[StationRecord]:
        option = self._sort_option if sort_option is None else SortOption(sort_option)
        return sort_records(filter_records(self.all(), filter_query or ""), option)

    def most_played(self, limit: int = MOST_PLAYED_LIMIT) -> list[StationRecord]:
        played = [record for record in self.all() if record.play_count > 0]
        return sorted(played, key=lambda r: r.play_count, reverse=True)[:limit]

    def stats(self) -> LibraryStats:
        records = self.all()
        countries = {r.country_code.upper() for r in records if r.country_code}
        return LibraryStats(
            total_stations=len(records),
            preset_count=sum(1 for r in records if r.preset_slot is not None),
            countries_represented=len(countries),
            total_plays=sum(r.play_count for r in records),
            total_listening_time_ms=sum(r.total_listening_time_ms for r in records),
        )

    # ── Presets ────────────────────────────────────────────────────

    def presets(self) -> list[StationRecord]:
        held = [r for r in self._records.values() if r.preset_slot is not None]
        return sorted(held, key=lambda r: r.preset_slot)

    def preset_at(self, slot: int) -> Optional[StationRecord]:
        if slot not in PRESET_SLOTS:
            return None
        for record in self._records.values():
            if record.preset_slot == slot:
                return record
        return None

    def available_preset_slots(self) -> list[int]:
        used = {r.preset_slot for r in self._records.values()}
        return [slot for slot in PRESET_SLOTS if slot not in used]

    def set_preset(self, station_id: str, slot: int) -> bool:
        if slot not in PRESET_SLOTS:
            return False
        record = self._records.get(station_id)
        if record is None:
            return False

        displaced = self.preset_at(slot)
        if displaced is not None:
            displaced.preset_slot = None
        # Overwriting releases whatever slot the record held before.
        previous_slot = record.preset_slot
        record.preset_slot = slot

        self._persist()
        logger.info("Preset %s -> %s (previous_slot=%s)", slot, station_id, previous_slot)
        self.events.emit("preset_changed", slot, record, displaced)
        return True

    def clear_preset(self, slot: int) -> bool:
        record = self.preset_at(slot)
        if record is None:
            return False
        record.preset_slot = None
        self._persist()
        self.events.emit("preset_changed", slot, None, record)
        return True

    def add_to_presets(self, station_id: str) -> Optional[int]:
        """Put the station in the first free slot; None when all six are taken."""
        free = self.available_preset_slots()
        if not free:
            return None
        return free[0] if self.set_preset(station_id, free[0]) else None

    # ── Mutations ──────────────────────────────────────────────────

    def add(self, candidate: StationCandidate) -> StationRecord:
        validate_candidate(candidate)
        if self.get_by_identity(candidate.identity) is not None:
            raise DuplicateStationError(candidate.identity)
        if len(self._records) >= self.max_stations:
            raise LibraryFullError(self.max_stations)

        record = self.build_record(candidate)
        self._records[record.id] = record
        self._order.insert(0, record.id)
        self._persist()
        logger.info("Station added (id=%s, identity=%s)", record.id, record.identity)
        self.events.emit("station_added", record)
        return record

    def remove(self, station_id: str) -> bool:
        record = self._records.pop(station_id, None)
        if record is None:
            return False
        self._order.remove(station_id)
        self._retired_ids.add(station_id)
        self._persist()
        logger.info("Station removed (id=%s)", station_id)
        self.events.emit("station_removed", record)
        return True

    def remove_by_remote_id(self, remote_id: str) -> bool:
        record = self.find_by_remote_id(remote_id)
        if record is None:
            return False
        return self.remove(record.id)

    def update(self, station_id: str, fields: dict[str, Any]) -> bool:
        record = self._records.get(station_id)
        if record is None:
            return False

        unknown = set(fields) - UPDATABLE_FIELDS - IGNORED_FIELDS
        if unknown:
            raise ValidationError(f"Unknown station fields: {', '.join(sorted(unknown))}")
        ignored = set(fields) & IGNORED_FIELDS
        if ignored:
            logger.debug("Ignoring protected fields on update: %s", sorted(ignored))

        changes = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS and getattr(record, k) != v}
        if not changes:
            return True

        if "stream_url" in changes:
            _check_stream_url(changes["stream_url"])
        if "display_name" in changes and not changes["display_name"]:
            raise ValidationError("Station name is required")
        if "note" in changes:
            _check_note(changes["note"])

        new_identity = StationCandidate(
            stream_url=changes.get("stream_url", record.stream_url),
            display_name=record.display_name,
            remote_id=changes.get("remote_id", record.remote_id),
        ).identity
        if new_identity != record.identity:
            holder = self.get_by_identity(new_identity)
            if holder is not None and holder.id != station_id:
                raise DuplicateStationError(new_identity)

        for name, value in changes.items():
            setattr(record, name, value)
        self._persist()
        self.events.emit("station_updated", record, set(changes))
        return True

    def update_note(self, station_id: str, note: Optional[str]) -> bool:
        return self.update(station_id, {"note": (note or "").strip() or None})

    def rename(self, station_id: str, custom_name: Optional[str]) -> bool:
        return self.update(station_id, {"custom_name": (custom_name or "").strip() or None})

    def record_play(self, station_id: str) -> bool:
        """Count one successful playback start."""
        record = self._records.get(station_id)
        if record is None:
            return False
        record.play_count += 1
        record.last_played_at = self.clock.now()
        self._persist()
        self.events.emit("station_played", record)
        return True

    def set_sort_option(self, option: SortOption) -> None:
        try:
            self._sort_option = SortOption(option)
        except ValueError:
            raise ValidationError(f"Unknown sort option: {option}") from None
        try:
            self.storage.set(SORT_PREFERENCE_KEY, self._sort_option.value)
        except Exception:
            logger.exception("Failed to persist sort preference")
        self.events.emit("sort_changed", self._sort_option)

    def clear(self) -> None:
        self._retired_ids.update(self._records)
        self._records = {}
        self._order = []
        self._persist()
        logger.info("Library cleared")
        self.events.emit("library_cleared")

    # ── Import support (used by MergeResolver) ─────────────────────

    def build_record(self, candidate: StationCandidate) -> StationRecord:
        """A detached record with a fresh local id and no preset slot."""
        return StationRecord(
            id=self._fresh_id(),
            remote_id=candidate.remote_id,
            stream_url=candidate.stream_url,
            display_name=candidate.display_name,
            custom_name=candidate.custom_name,
            favicon_url=candidate.favicon_url,
            homepage_url=candidate.homepage_url,
            bitrate_kbps=candidate.bitrate_kbps,
            country_code=candidate.country_code,
            vote_count=candidate.vote_count,
            note=candidate.note,
            date_added=candidate.date_added or self.clock.now(),
            play_count=max(candidate.play_count, 0),
            last_played_at=candidate.last_played_at,
            total_listening_time_ms=self.ledger.total_for(candidate.identity),
        )

    def commit_import(self, records: Iterable[StationRecord], replace: bool) -> None:
        records = list(records)
        if replace:
            self._retired_ids.update(self._records)
            self._records = {}
            self._order = []
        for record in records:
            self._records[record.id] = record
            self._order.append(record.id)
        self._persist()
        logger.info("Imported %s stations (replace=%s)", len(records), replace)
        self.events.emit("stations_imported", records, replace)

    # ── Persistence ────────────────────────────────────────────────

    def export_payload(self) -> dict:
        stations = []
        for record in self.all():
            item = record.to_dict()
            item["totalListeningTimeMs"] = record.total_listening_time_ms
            stations.append(item)
        return {"stations": stations, "version": EXPORT_VERSION, "exportedAt": format_timestamp(self.clock.now())}

    def save(self) -> None:
        """Explicit, user-triggered save: failures are raised, not only logged."""
        try:
            self.storage.set(STATIONS_KEY, self._serialize())
        except Exception as exc:
            logger.exception("Explicit library save failed")
            raise PersistenceError(f"Could not save library: {exc}") from exc

    def load(self) -> None:
        """(Re)load the library, migrating legacy records and repairing invariants."""
        try:
            raw_stations = self.storage.get(STATIONS_KEY, []) or []
        except Exception:
            logger.exception("Failed to read stations; starting with an empty library")
            raw_stations = []
        if not isinstance(raw_stations, list):
            logger.warning("Ignoring malformed stations value (type=%s)", type(raw_stations).__name__)
            raw_stations = []

        self._retired_ids = self._load_retired_ids()
        self._retired_written = len(self._retired_ids)
        self._records = {}
        self._order = []
        pinned: list[str] = []
        changed = False
        used_slots: set[int] = set()

        for raw in raw_stations:
            if not isinstance(raw, dict):
                changed = True
                continue
            raw, migrated = self._migrate_raw(raw)
            changed = changed or migrated
            record = StationRecord.from_dict(raw)

            if not record.stream_url:
                logger.warning("Dropping station without stream URL (id=%s)", record.id)
                changed = True
                continue
            if self.get_by_identity(record.identity) is not None:
                logger.warning("Dropping duplicate station %s", record.identity)
                changed = True
                continue
            if record.id in self._records:
                record.id = self._fresh_id()
                changed = True
            if record.preset_slot is not None and (
                record.preset_slot not in PRESET_SLOTS or record.preset_slot in used_slots
            ):
                logger.warning("Clearing invalid preset slot %s on %s", record.preset_slot, record.id)
                record.preset_slot = None
                changed = True
            if record.preset_slot is not None:
                used_slots.add(record.preset_slot)
            if raw.get("isFavorite") and record.preset_slot is None:
                pinned.append(record.id)

            self._records[record.id] = record
            self._order.append(record.id)

        if self._migrate_pinned(pinned):
            changed = True
        if changed:
            self._persist()

        self._sort_option = self._load_sort_option()
        self._refresh_listening_times()
        logger.info("Library loaded (stations=%s)", len(self._records))
        self.events.emit("library_loaded", self.all())

    def _migrate_raw(self, raw: dict) -> tuple[dict, bool]:
        migrated = False
        raw = dict(raw)
        if not raw.get("id"):
            raw["id"] = self._fresh_id()
            migrated = True
        if not raw.get("dateAdded"):
            raw["dateAdded"] = format_timestamp(self.clock.now())
            migrated = True
        if raw.get("playCount") is None:
            raw["playCount"] = 0
            migrated = True
        if "streamUrl" not in raw and "url" in raw:
            migrated = True
        return raw, migrated

    def _migrate_pinned(self, pinned: list[str]) -> bool:
        try:
            if self.storage.get(PINNED_MIGRATION_KEY, False):
                return False
        except Exception:
            logger.exception("Failed to read pinned migration flag")
            return False

        free = self.available_preset_slots()
        moved = 0
        for station_id, slot in zip(pinned, free):
            self._records[station_id].preset_slot = slot
            moved += 1
        if moved:
            logger.info("Migrated %s pinned stations to presets", moved)
        try:
            self.storage.set(PINNED_MIGRATION_KEY, True)
        except Exception:
            logger.exception("Failed to persist pinned migration flag")
        return moved > 0

    def _load_sort_option(self) -> SortOption:
        try:
            return SortOption(self.storage.get(SORT_PREFERENCE_KEY, SortOption.RECENTLY_PLAYED.value))
        except ValueError:
            return SortOption.RECENTLY_PLAYED
        except Exception:
            logger.exception("Failed to read sort preference")
            return SortOption.RECENTLY_PLAYED

    def _load_retired_ids(self) -> set[str]:
        """Ids of removed stations, kept across restarts so they are never handed out again."""
        try:
            raw = self.storage.get(RETIRED_IDS_KEY, []) or []
        except Exception:
            logger.exception("Failed to read retired station ids")
            return set()
        if not isinstance(raw, list):
            logger.warning("Ignoring malformed retired ids (type=%s)", type(raw).__name__)
            return set()
        return {str(station_id) for station_id in raw}

    def _serialize(self) -> list[dict]:
        return [self._records[station_id].to_dict() for station_id in self._order]

    def _persist(self) -> bool:
        try:
            self.storage.set(STATIONS_KEY, self._serialize())
            if len(self._retired_ids) != self._retired_written:
                self.storage.set(RETIRED_IDS_KEY, sorted(self._retired_ids))
                self._retired_written = len(self._retired_ids)
            return True
        except Exception as exc:
            logger.exception("Failed to persist stations")
            self.events.emit("persistence_failed", exc)
            return False

    def _fresh_id(self) -> str:
        while True:
            candidate = self._id_factory()
            if candidate not in self._records and candidate not in self._retired_ids:
                return candidate

    def _refresh_listening_times(self) -> None:
        for record in self._records.values():
            record.total_listening_time_ms = self.ledger.total_for(record.identity)
