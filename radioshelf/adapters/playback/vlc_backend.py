"""libVLC stream backend (python-vlc).

libVLC fires its events on its own threads. Every callback is handed to the
asyncio loop with ``call_soon_threadsafe`` so the playback session only ever
runs on the loop thread.
"""

import asyncio
import logging
import os
from typing import Callable

import vlc

from radioshelf.domain.model import FailureKind, StreamFailure
from radioshelf.domain.ports import StreamBackendPort, StreamHandle

logger = logging.getLogger("radioshelf.playback.vlc")

_BUFFERED_STATES = (vlc.State.Playing, vlc.State.Paused)


def _to_vlc_volume(volume: float) -> int:
    return int(round(min(max(volume, 0.0), 1.0) * 100))


class VlcStreamHandle(StreamHandle):

    def __init__(
        self,
        player: "vlc.MediaPlayer",
        loop: asyncio.AbstractEventLoop,
        on_ready: Callable[[], None],
        on_error: Callable[[StreamFailure], None],
    ):
        self._player = player
        self._loop = loop
        self._on_ready = on_ready
        self._on_error = on_error
        self._closed = False
        self._events = player.event_manager()
        self._attached = {
            vlc.EventType.MediaPlayerPlaying: self._vlc_playing,
            vlc.EventType.MediaPlayerEncounteredError: self._vlc_error,
            vlc.EventType.MediaPlayerEndReached: self._vlc_end_reached,
            vlc.EventType.MediaPlayerStopped: self._vlc_stopped,
        }
        for event_type, callback in self._attached.items():
            self._events.event_attach(event_type, callback)

    def play(self) -> None:
        if not self._closed:
            self._player.set_pause(0)

    def pause(self) -> None:
        if not self._closed:
            self._player.set_pause(1)

    def stop(self) -> None:
        if self._closed:
            return
        self._closed = True
        for event_type in self._attached:
            self._events.event_detach(event_type)
        self._player.stop()
        self._player.release()

    def set_volume(self, volume: float) -> None:
        if not self._closed:
            self._player.audio_set_volume(_to_vlc_volume(volume))

    def set_muted(self, muted: bool) -> None:
        if not self._closed:
            self._player.audio_set_mute(bool(muted))

    def is_buffered(self) -> bool:
        return not self._closed and self._player.get_state() in _BUFFERED_STATES

    # libVLC thread -> loop thread

    def _dispatch(self, callback: Callable, *args) -> None:
        if self._closed:
            return
        try:
            self._loop.call_soon_threadsafe(self._deliver, callback, *args)
        except RuntimeError:
            logger.debug("Event loop closed; dropping stream event")

    def _deliver(self, callback: Callable, *args) -> None:
        if not self._closed:
            callback(*args)

    def _vlc_playing(self, event) -> None:
        self._dispatch(self._on_ready)

    def _vlc_error(self, event) -> None:
        self._dispatch(self._on_error, StreamFailure(FailureKind.UNKNOWN, "libVLC reported a playback error"))

    def _vlc_end_reached(self, event) -> None:
        self._dispatch(self._on_error, StreamFailure(FailureKind.NETWORK, "Stream ended"))

    def _vlc_stopped(self, event) -> None:
        # We detach before stopping ourselves, so this stop came from libVLC.
        self._dispatch(self._on_error, StreamFailure(FailureKind.CANCELLED, "Stream stopped by libVLC"))


class VlcStreamBackend(StreamBackendPort):

    def __init__(self, loop: asyncio.AbstractEventLoop, instance: "vlc.Instance | None" = None):
        self.loop = loop
        self.instance = instance or vlc.Instance("--no-xlib" if os.name != "nt" else "", "--no-video", "--quiet")
        if self.instance is None:
            raise RuntimeError("Could not start libVLC. Make sure VLC is installed.")

    def open(
        self,
        url: str,
        on_ready: Callable[[], None],
        on_error: Callable[[StreamFailure], None],
        volume: float,
        muted: bool,
    ) -> StreamHandle:
        player = self.instance.media_player_new()
        player.set_media(self.instance.media_new(url))
        handle = VlcStreamHandle(player, self.loop, on_ready, on_error)
        player.audio_set_volume(_to_vlc_volume(volume))
        player.audio_set_mute(bool(muted))
        if player.play() == -1:
            handle.stop()
            raise RuntimeError(f"libVLC refused to play {url}")
        logger.debug("Opened stream %s", url)
        return handle
