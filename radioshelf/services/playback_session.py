"""Single-stream playback state machine.

Phases: IDLE -> LOADING -> PLAYING <-> PAUSED, LOADING -> ERROR, and any
phase -> IDLE on stop, teardown or station switch.

Every load stamps a new token (a generation counter). Backend callbacks
are bound to the token and to the URL stage (upgraded https attempt, then
the http fallback) that created them; a callback whose token or stage is
no longer current is ignored. This is the only guard against late
signals from an abandoned load mutating the attempt that replaced it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Optional

from radioshelf.config import DEFAULT_VOLUME, PLAYER_SETTINGS_KEY, VOLUME_STEP
from radioshelf.domain.events import EventEmitter
from radioshelf.domain.model import (
    FailureKind,
    PhaseChange,
    PlaybackFailure,
    PlaybackPhase,
    StationRecord,
    StreamFailure,
)
from radioshelf.domain.ports import ClockPort, KeyValueStorePort, StreamBackendPort, StreamHandle
from radioshelf.services.library_store import LibraryStore
from radioshelf.services.listening_time import ListeningTimeAccumulator

logger = logging.getLogger("radioshelf.playback")

FAILURE_MESSAGE = "Unable to play this station. It may be unavailable or use an unsupported format."


@dataclass
class _LoadAttempt:
    token: int
    station_id: str
    identity: str
    label: str
    original_url: str
    upgraded: bool
    url: str = ""
    stage: int = 0
    fell_back: bool = False
    reported: bool = False
    handle: Optional[StreamHandle] = None


def upgrade_url(url: str) -> tuple[str, bool]:
    """Return the https form of an http URL and whether it was upgraded."""
    if url.lower().startswith("http://"):
        return "https://" + url[len("http://"):], True
    return url, False


class PlaybackSession:

    def __init__(
        self,
        backend: StreamBackendPort,
        library: LibraryStore,
        accumulator: ListeningTimeAccumulator,
        storage: KeyValueStorePort,
        clock: ClockPort,
        events: Optional[EventEmitter] = None,
        prefer_https: bool = True,
        default_volume: float = DEFAULT_VOLUME,
    ):
        self.backend = backend
        self.library = library
        self.accumulator = accumulator
        self.storage = storage
        self.clock = clock
        self.events = events or EventEmitter()
        self.prefer_https = prefer_https
        self.session_started_at: Optional[datetime] = None

        self._phase = PlaybackPhase.IDLE
        self._generation = 0
        self._attempt: Optional[_LoadAttempt] = None
        self._station_id: Optional[str] = None
        self._identity: Optional[str] = None
        self._volume, self._muted = self._load_settings(default_volume)

        self._unsubscribe = [
            library.events.on("station_removed", self._on_station_removed),
            library.events.on("station_updated", self._on_station_updated),
            library.events.on("library_cleared", self._on_library_reset),
            library.events.on("stations_imported", self._on_library_reset),
        ]

    # ── State ──────────────────────────────────────────────────────

    @property
    def phase(self) -> PlaybackPhase:
        return self._phase

    @property
    def load_token(self) -> int:
        return self._generation

    @property
    def station_id(self) -> Optional[str]:
        return self._station_id

    @property
    def current_station(self) -> Optional[StationRecord]:
        if self._station_id is None:
            return None
        return self.library.get(self._station_id)

    @property
    def volume(self) -> float:
        return self._volume

    @property
    def muted(self) -> bool:
        return self._muted

    # ── Commands ───────────────────────────────────────────────────

    def load(self, station: StationRecord) -> int:
        """Start loading ``station``; returns the token of the new attempt."""
        if station.id == self._station_id:
            if self._phase in (PlaybackPhase.LOADING, PlaybackPhase.PLAYING):
                return self._generation
            if self._phase is PlaybackPhase.PAUSED:
                self.play()
                return self._generation

        self._teardown()
        self._generation += 1
        url, upgraded = upgrade_url(station.stream_url) if self.prefer_https else (station.stream_url, False)
        attempt = _LoadAttempt(
            token=self._generation,
            station_id=station.id,
            identity=station.identity,
            label=station.label,
            original_url=station.stream_url,
            upgraded=upgraded,
        )
        self._attempt = attempt
        self._station_id = station.id
        self._identity = station.identity
        self.session_started_at = self.clock.now()
        logger.info("Loading station %s (token=%s, url=%s)", station.id, attempt.token, url)

        self._set_phase(PlaybackPhase.LOADING)
        self._open(attempt, url)
        return attempt.token

    def play(self) -> bool:
        if self._phase is not PlaybackPhase.PAUSED or self._attempt is None:
            return False
        if self._attempt.handle is not None:
            self._attempt.handle.play()
        self.accumulator.start(self._attempt.identity)
        self._set_phase(PlaybackPhase.PLAYING)
        return True

    def pause(self) -> bool:
        if self._phase is not PlaybackPhase.PLAYING or self._attempt is None:
            return False
        if self._attempt.handle is not None:
            self._attempt.handle.pause()
        self.accumulator.flush()
        self._set_phase(PlaybackPhase.PAUSED)
        return True

    def toggle_play_pause(self) -> bool:
        if self._phase is PlaybackPhase.PLAYING:
            return self.pause()
        return self.play()

    def stop(self) -> None:
        self._teardown()
        self._station_id = None
        self._identity = None
        self.session_started_at = None
        self._set_phase(PlaybackPhase.IDLE)

    def close(self) -> None:
        self.stop()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    def set_volume(self, volume: float) -> float:
        self._volume = min(max(float(volume), 0.0), 1.0)
        if self._attempt is not None and self._attempt.handle is not None:
            self._attempt.handle.set_volume(self._volume)
        self._save_settings()
        self.events.emit("volume_changed", self._volume)
        return self._volume

    def adjust_volume(self, delta: float = VOLUME_STEP) -> float:
        return self.set_volume(self._volume + delta)

    def toggle_mute(self) -> bool:
        self._muted = not self._muted
        if self._attempt is not None and self._attempt.handle is not None:
            self._attempt.handle.set_muted(self._muted)
        self._save_settings()
        self.events.emit("mute_changed", self._muted)
        return self._muted

    # ── Backend callbacks ──────────────────────────────────────────

    def _open(self, attempt: _LoadAttempt, url: str) -> None:
        attempt.stage += 1
        attempt.url = url
        stage = attempt.stage
        try:
            handle = self.backend.open(
                url,
                on_ready=partial(self._handle_ready, attempt.token, stage),
                on_error=partial(self._handle_error, attempt.token, stage),
                volume=self._volume,
                muted=self._muted,
            )
        except Exception as exc:
            logger.exception("Backend refused to open %s", url)
            self._handle_error(attempt.token, stage, StreamFailure(FailureKind.UNKNOWN, str(exc)))
            return
        if self._is_current(attempt.token, stage):
            attempt.handle = handle
        else:
            handle.stop()

    def _is_current(self, token: int, stage: int) -> bool:
        attempt = self._attempt
        return (
            attempt is not None
            and token == self._generation
            and attempt.token == token
            and attempt.stage == stage
        )

    def _handle_ready(self, token: int, stage: int) -> None:
        if not self._is_current(token, stage):
            logger.debug("Ignoring stale ready signal (token=%s, stage=%s)", token, stage)
            return
        if self._phase is PlaybackPhase.LOADING:
            self._enter_playing(self._attempt)

    def _handle_error(self, token: int, stage: int, failure: StreamFailure) -> None:
        if not self._is_current(token, stage):
            logger.debug("Ignoring stale failure (token=%s, stage=%s, kind=%s)", token, stage, failure.kind)
            return
        attempt = self._attempt

        if failure.kind is FailureKind.CANCELLED:
            # A superseded request inside the media pipeline; only buffered
            # readiness tells it apart from a real failure.
            buffered = attempt.handle is not None and attempt.handle.is_buffered()
            if buffered and self._phase is PlaybackPhase.LOADING:
                self._enter_playing(attempt)
            else:
                logger.debug("Ignoring cancellation (token=%s, buffered=%s)", token, buffered)
            return

        if self._phase is PlaybackPhase.LOADING and attempt.upgraded and not attempt.fell_back:
            attempt.fell_back = True
            logger.info("HTTPS attempt failed for %s, retrying %s", attempt.station_id, attempt.original_url)
            self._release_handle(attempt)
            self._open(attempt, attempt.original_url)
            return

        self._fail(attempt, failure)

    def _enter_playing(self, attempt: _LoadAttempt) -> None:
        self.library.record_play(attempt.station_id)
        self.accumulator.ledger.record_session(attempt.identity)
        self.accumulator.start(attempt.identity)
        logger.info("Playing station %s (token=%s, url=%s)", attempt.station_id, attempt.token, attempt.url)
        self._set_phase(PlaybackPhase.PLAYING)

    def _fail(self, attempt: _LoadAttempt, failure: StreamFailure) -> None:
        if attempt.reported:
            return
        attempt.reported = True
        self.accumulator.flush()
        self._release_handle(attempt)
        self._attempt = None
        self._station_id = None
        self._identity = None
        logger.warning(
            "Playback failed for %s (kind=%s, url=%s): %s",
            attempt.station_id,
            failure.kind.value,
            attempt.url,
            failure.message,
        )
        self._set_phase(PlaybackPhase.ERROR)
        self.events.emit(
            "playback_error",
            PlaybackFailure(
                station_id=attempt.station_id,
                station_label=attempt.label,
                url=attempt.url,
                message=FAILURE_MESSAGE,
            ),
        )

    # ── Internals ──────────────────────────────────────────────────

    def _teardown(self) -> None:
        self.accumulator.flush()
        if self._attempt is not None:
            self._release_handle(self._attempt)
            self._attempt = None
        self._generation += 1

    def _release_handle(self, attempt: _LoadAttempt) -> None:
        handle, attempt.handle = attempt.handle, None
        if handle is None:
            return
        try:
            handle.stop()
        except Exception:
            logger.exception("Failed to release stream for %s", attempt.station_id)

    def _set_phase(self, phase: PlaybackPhase) -> None:
        previous = self._phase
        if previous is phase:
            return
        self._phase = phase
        self.events.emit("phase_changed", PhaseChange(previous, phase, self._station_id))

    def _load_settings(self, default_volume: float) -> tuple[float, bool]:
        try:
            settings = self.storage.get(PLAYER_SETTINGS_KEY, {}) or {}
        except Exception:
            logger.exception("Failed to read player settings")
            settings = {}
        volume = settings.get("volume", default_volume)
        try:
            volume = min(max(float(volume), 0.0), 1.0)
        except (TypeError, ValueError):
            volume = default_volume
        return volume, bool(settings.get("muted", False))

    def _save_settings(self) -> None:
        try:
            self.storage.set(PLAYER_SETTINGS_KEY, {"volume": self._volume, "muted": self._muted})
        except Exception:
            logger.exception("Failed to persist player settings")

    # ── Library cascades ───────────────────────────────────────────

    def _on_station_removed(self, record: StationRecord) -> None:
        if record.id == self._station_id:
            logger.info("Active station %s removed, stopping playback", record.id)
            self.stop()

    def _on_station_updated(self, record: StationRecord, changed: set) -> None:
        if record.id == self._station_id and "stream_url" in changed:
            logger.info("Stream URL of active station %s changed, stopping playback", record.id)
            self.stop()

    def _on_library_reset(self, *args) -> None:
        if self._station_id is not None and self.library.get(self._station_id) is None:
            self.stop()
