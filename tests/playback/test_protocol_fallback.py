"""Bounded context: Playback failures

http stations are tried over https first, with exactly one retry on the
original URL. Every failed load notifies the listener exactly once.
"""

import pytest

from radioshelf.domain.model import FailureKind, PlaybackPhase
from radioshelf.services.playback_session import PlaybackSession, upgrade_url


@pytest.fixture
def errors(session):
    seen = []
    session.events.on("playback_error", seen.append)
    return seen


class TestHttpsUpgrade:

    def test_upgrade_url(self):
        assert upgrade_url("http://x/stream") == ("https://x/stream", True)
        assert upgrade_url("HTTP://x/stream") == ("https://x/stream", True)
        assert upgrade_url("https://x/stream") == ("https://x/stream", False)

    def test_http_station_is_tried_over_https_first(self, session, backend, jazz):
        session.load(jazz)

        assert backend.last.url == "https://streams.example/jazz-fm"

    def test_failed_https_attempt_retries_original_url_once(self, session, backend, jazz, errors):
        session.load(jazz)
        backend.last.fail(FailureKind.NETWORK)

        assert [h.url for h in backend.handles] == [
            "https://streams.example/jazz-fm",
            "http://streams.example/jazz-fm",
        ]
        assert backend.handles[0].stopped is True
        assert session.phase is PlaybackPhase.LOADING
        assert errors == []

        backend.last.fail(FailureKind.NETWORK)

        assert len(backend.handles) == 2
        assert session.phase is PlaybackPhase.ERROR
        assert len(errors) == 1
        assert errors[0].url == "http://streams.example/jazz-fm"

    def test_fallback_can_succeed(self, session, backend, jazz):
        session.load(jazz)
        backend.last.fail(FailureKind.UNSUPPORTED)
        backend.last.ready()

        assert session.phase is PlaybackPhase.PLAYING
        assert jazz.play_count == 1

    def test_https_station_never_falls_back(self, session, backend, rock, errors):
        session.load(rock)
        backend.last.fail(FailureKind.NETWORK)

        assert len(backend.handles) == 1
        assert session.phase is PlaybackPhase.ERROR
        assert len(errors) == 1

    def test_upgrade_can_be_disabled(self, backend, library, accumulator, store, clock, jazz):
        session = PlaybackSession(backend, library, accumulator, store, clock, prefer_https=False)

        session.load(jazz)

        assert backend.last.url == "http://streams.example/jazz-fm"
        session.close()

    def test_late_signal_from_abandoned_https_attempt_is_ignored(self, session, backend, jazz, errors):
        session.load(jazz)
        https_attempt = backend.last
        https_attempt.fail(FailureKind.NETWORK)

        https_attempt.ready()
        https_attempt.fail(FailureKind.NETWORK)

        assert session.phase is PlaybackPhase.LOADING
        assert len(backend.handles) == 2
        assert errors == []

    def test_fallback_of_previous_station_cannot_touch_new_load(self, session, backend, jazz, rock, errors):
        session.load(jazz)
        backend.last.fail(FailureKind.NETWORK)
        fallback = backend.last
        session.load(rock)

        fallback.ready()
        fallback.fail(FailureKind.NETWORK)

        assert session.station_id == rock.id
        assert session.phase is PlaybackPhase.LOADING
        assert errors == []


class TestErrorNotification:

    def test_error_clears_station_reference(self, session, backend, rock, errors):
        session.load(rock)
        backend.last.fail(FailureKind.UNSUPPORTED)

        assert session.current_station is None
        assert errors[0].station_id == rock.id
        assert errors[0].station_label == "Rock Radio"

    def test_repeated_failure_signals_notify_once(self, session, backend, rock, errors):
        session.load(rock)
        handle = backend.last

        handle.fail(FailureKind.NETWORK)
        handle.fail(FailureKind.NETWORK)
        handle.fail(FailureKind.UNKNOWN)

        assert len(errors) == 1

    def test_stream_dropping_after_playing_is_an_error(self, session, backend, rock, errors):
        session.load(rock)
        backend.last.ready()

        backend.last.fail(FailureKind.NETWORK)

        assert session.phase is PlaybackPhase.ERROR
        assert len(errors) == 1

    def test_playing_upgraded_stream_does_not_fall_back_on_drop(self, session, backend, jazz, errors):
        session.load(jazz)
        backend.last.ready()

        backend.last.fail(FailureKind.NETWORK)

        assert len(backend.handles) == 1
        assert session.phase is PlaybackPhase.ERROR

    def test_new_load_after_error_works(self, session, backend, rock, jazz):
        session.load(rock)
        backend.last.fail(FailureKind.NETWORK)

        session.load(jazz)
        backend.last.ready()

        assert session.phase is PlaybackPhase.PLAYING

    def test_backend_refusing_to_open_is_a_failure(self, library, accumulator, store, clock, rock):
        class RefusingBackend:
            def open(self, url, on_ready, on_error, volume, muted):
                raise RuntimeError("no audio device")

        session = PlaybackSession(RefusingBackend(), library, accumulator, store, clock)
        errors = []
        session.events.on("playback_error", errors.append)

        session.load(rock)

        assert session.phase is PlaybackPhase.ERROR
        assert len(errors) == 1
        session.close()


class TestBenignCancellation:
    """Cancellation signals during fast switching are judged by buffered readiness."""

    def test_cancellation_with_buffered_audio_counts_as_playing(self, session, backend, jazz, errors):
        session.load(jazz)
        backend.last.buffered = True

        backend.last.fail(FailureKind.CANCELLED)

        assert session.phase is PlaybackPhase.PLAYING
        assert jazz.play_count == 1
        assert errors == []

    def test_cancellation_without_buffer_is_ignored(self, session, backend, jazz, errors):
        session.load(jazz)

        backend.last.fail(FailureKind.CANCELLED)

        assert session.phase is PlaybackPhase.LOADING
        assert len(backend.handles) == 1
        assert errors == []

    def test_cancellation_while_playing_changes_nothing(self, session, backend, jazz, errors):
        session.load(jazz)
        backend.last.ready()

        backend.last.fail(FailureKind.CANCELLED)

        assert session.phase is PlaybackPhase.PLAYING
        assert jazz.play_count == 1
