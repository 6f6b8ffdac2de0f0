"""Pure domain objects, no framework dependency."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union


class SortOption(str, Enum):
    RECENTLY_PLAYED = "recently-played"
    A_TO_Z = "a-to-z"
    Z_TO_A = "z-to-a"
    DATE_ADDED_NEWEST = "date-added-newest"
    DATE_ADDED_OLDEST = "date-added-oldest"
    MOST_LISTENED = "most-listened"
    LEAST_LISTENED = "least-listened"
    COUNTRY = "country"
    BITRATE_HIGHEST = "bitrate-highest"
    VOTES_HIGHEST = "votes-highest"


SORT_LABELS = {
    SortOption.RECENTLY_PLAYED: "Recently played",
    SortOption.A_TO_Z: "A to Z",
    SortOption.Z_TO_A: "Z to A",
    SortOption.DATE_ADDED_NEWEST: "Date added (newest)",
    SortOption.DATE_ADDED_OLDEST: "Date added (oldest)",
    SortOption.MOST_LISTENED: "Most listened",
    SortOption.LEAST_LISTENED: "Least listened",
    SortOption.COUNTRY: "Country",
    SortOption.BITRATE_HIGHEST: "Bitrate (highest)",
    SortOption.VOTES_HIGHEST: "Votes (highest)",
}


class ImportMode(str, Enum):
    MERGE = "merge"
    REPLACE = "replace"


class PlaybackPhase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    ERROR = "error"


class FailureKind(str, Enum):
    CANCELLED = "cancelled"
    NETWORK = "network"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def dedup_identity(remote_id: Optional[str], stream_url: str) -> str:
    """Identity used to decide whether two entries are the same station."""
    return remote_id if remote_id else stream_url


def _int_or_none(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass
class StationCandidate:
    """A station that is not (yet) part of the library."""

    stream_url: str
    display_name: str
    remote_id: Optional[str] = None
    custom_name: Optional[str] = None
    favicon_url: Optional[str] = None
    homepage_url: Optional[str] = None
    bitrate_kbps: Optional[int] = None
    country_code: Optional[str] = None
    vote_count: Optional[int] = None
    note: Optional[str] = None
    date_added: Optional[datetime] = None
    play_count: int = 0
    last_played_at: Optional[datetime] = None

    @property
    def identity(self) -> str:
        return dedup_identity(self.remote_id, self.stream_url)

    @classmethod
    def from_catalog(cls, item: dict) -> "StationCandidate":
        """Build from a Radio Browser station object."""
        return cls(
            stream_url=str(item.get("url_resolved") or item.get("url") or "").strip(),
            display_name=str(item.get("name") or "").strip(),
            remote_id=_str_or_none(item.get("stationuuid")),
            favicon_url=_str_or_none(item.get("favicon")),
            homepage_url=_str_or_none(item.get("homepage")),
            bitrate_kbps=_int_or_none(item.get("bitrate")),
            country_code=_str_or_none(item.get("countrycode")),
            vote_count=_int_or_none(item.get("votes")),
        )

    @classmethod
    def from_shared(cls, item: dict) -> "StationCandidate":
        """Build from an inline station object of a share payload."""
        return cls(
            stream_url=str(item.get("url") or "").strip(),
            display_name=str(item.get("name") or "").strip(),
            favicon_url=_str_or_none(item.get("favicon")),
            homepage_url=_str_or_none(item.get("homepage")),
            bitrate_kbps=_int_or_none(item.get("bitrate")),
            country_code=_str_or_none(item.get("countrycode")),
            note=_str_or_none(item.get("note")),
        )

    @classmethod
    def from_record_dict(cls, data: dict) -> "StationCandidate":
        """Build from a persisted/exported record; its id and preset are dropped."""
        record = StationRecord.from_dict({**data, "id": data.get("id") or ""})
        return cls(
            stream_url=record.stream_url,
            display_name=record.display_name,
            remote_id=record.remote_id,
            custom_name=record.custom_name,
            favicon_url=record.favicon_url,
            homepage_url=record.homepage_url,
            bitrate_kbps=record.bitrate_kbps,
            country_code=record.country_code,
            vote_count=record.vote_count,
            note=record.note,
            date_added=parse_timestamp(data.get("dateAdded")),
            play_count=record.play_count,
            last_played_at=record.last_played_at,
        )


@dataclass
class StationRecord:
    id: str
    stream_url: str
    display_name: str
    date_added: datetime
    remote_id: Optional[str] = None
    custom_name: Optional[str] = None
    favicon_url: Optional[str] = None
    homepage_url: Optional[str] = None
    bitrate_kbps: Optional[int] = None
    country_code: Optional[str] = None
    vote_count: Optional[int] = None
    note: Optional[str] = None
    play_count: int = 0
    last_played_at: Optional[datetime] = None
    preset_slot: Optional[int] = None
    total_listening_time_ms: int = 0

    @property
    def identity(self) -> str:
        return dedup_identity(self.remote_id, self.stream_url)

    @property
    def label(self) -> str:
        return self.custom_name or self.display_name

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "remoteId": self.remote_id,
            "streamUrl": self.stream_url,
            "displayName": self.display_name,
            "customName": self.custom_name,
            "faviconUrl": self.favicon_url,
            "homepageUrl": self.homepage_url,
            "bitrateKbps": self.bitrate_kbps,
            "countryCode": self.country_code,
            "voteCount": self.vote_count,
            "note": self.note,
            "dateAdded": format_timestamp(self.date_added),
            "playCount": self.play_count,
            "lastPlayedAt": format_timestamp(self.last_played_at),
            "presetSlot": self.preset_slot,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StationRecord":
        """Read the current persisted shape, or the legacy Radio Browser one."""
        return cls(
            id=str(data["id"]),
            remote_id=_str_or_none(data.get("remoteId", data.get("stationuuid"))),
            stream_url=str(data.get("streamUrl") or data.get("url") or "").strip(),
            display_name=str(data.get("displayName") or data.get("name") or "").strip(),
            custom_name=_str_or_none(data.get("customName")),
            favicon_url=_str_or_none(data.get("faviconUrl", data.get("favicon"))),
            homepage_url=_str_or_none(data.get("homepageUrl", data.get("homepage"))),
            bitrate_kbps=_int_or_none(data.get("bitrateKbps", data.get("bitrate"))),
            country_code=_str_or_none(data.get("countryCode", data.get("countrycode"))),
            vote_count=_int_or_none(data.get("voteCount", data.get("votes"))),
            note=_str_or_none(data.get("note")),
            date_added=parse_timestamp(data.get("dateAdded")) or EPOCH,
            play_count=max(_int_or_none(data.get("playCount")) or 0, 0),
            last_played_at=parse_timestamp(data.get("lastPlayedAt")),
            preset_slot=_int_or_none(data.get("presetSlot")),
        )


@dataclass
class ListeningTime:
    total_time_ms: int = 0
    session_count: int = 0


@dataclass
class MergeResult:
    accepted: list[StationRecord] = field(default_factory=list)
    duplicate_count: int = 0
    overflow_count: int = 0


@dataclass
class MergePreview:
    new: list[StationCandidate] = field(default_factory=list)
    duplicates: list[StationCandidate] = field(default_factory=list)


@dataclass
class LibraryStats:
    total_stations: int
    preset_count: int
    countries_represented: int
    total_plays: int
    total_listening_time_ms: int


@dataclass
class SharedStation:
    url: str
    name: str
    favicon: Optional[str] = None
    homepage: Optional[str] = None
    bitrate: Optional[int] = None
    countrycode: Optional[str] = None
    note: Optional[str] = None


ShareItem = Union[str, SharedStation]


@dataclass
class SharePayload:
    username: str
    items: list[ShareItem] = field(default_factory=list)
    list_name: Optional[str] = None


@dataclass
class ShareLink:
    long_url: str
    url: str
    shortened: bool = False


@dataclass
class PhaseChange:
    previous: PlaybackPhase
    current: PlaybackPhase
    station_id: Optional[str]


@dataclass
class StreamFailure:
    kind: FailureKind
    message: str = ""


@dataclass
class PlaybackFailure:
    """User-facing failure notification, emitted once per failed load."""

    station_id: str
    station_label: str
    url: str
    message: str
