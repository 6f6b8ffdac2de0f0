"""Sort and filter projections over library records.

All sorts are stable: records with equal keys keep their incoming order,
so a re-render never reshuffles ties. ``sorted(..., reverse=True)`` keeps
that guarantee for the descending options.
"""

from typing import Callable, Iterable

from radioshelf.domain.model import EPOCH, SortOption, StationRecord


def _name_key(record: StationRecord) -> str:
    return record.label.lower()


def _last_played_key(record: StationRecord):
    return record.last_played_at or EPOCH


def _country_key(record: StationRecord) -> tuple[bool, str]:
    code = (record.country_code or "").strip().lower()
    return (code == "", code)


_SORTS: dict[SortOption, tuple[Callable[[StationRecord], object], bool]] = {
    SortOption.RECENTLY_PLAYED: (_last_played_key, True),
    SortOption.A_TO_Z: (_name_key, False),
    SortOption.Z_TO_A: (_name_key, True),
    SortOption.DATE_ADDED_NEWEST: (lambda r: r.date_added, True),
    SortOption.DATE_ADDED_OLDEST: (lambda r: r.date_added, False),
    SortOption.MOST_LISTENED: (lambda r: r.total_listening_time_ms or 0, True),
    SortOption.LEAST_LISTENED: (lambda r: r.total_listening_time_ms or 0, False),
    SortOption.COUNTRY: (_country_key, False),
    SortOption.BITRATE_HIGHEST: (lambda r: r.bitrate_kbps or 0, True),
    SortOption.VOTES_HIGHEST: (lambda r: r.vote_count or 0, True),
}


def matches_query(record: StationRecord, query: str) -> bool:
    needle = query.strip().lower()
    if not needle:
        return True
    if needle in record.display_name.lower():
        return True
    return bool(record.custom_name) and needle in record.custom_name.lower()


def filter_records(records: Iterable[StationRecord], query: str) -> list[StationRecord]:
    return [r for r in records if matches_query(r, query)]


def sort_records(records: Iterable[StationRecord], option: SortOption) -> list[StationRecord]:
    key, descending = _SORTS[SortOption(option)]
    return sorted(records, key=key, reverse=descending)
