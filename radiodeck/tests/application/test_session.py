import pytest

from radiodeck.application.session import PlaybackSession, PresentationBinder, validate_stream_url
from radiodeck.domain.entities import (
    Affordance, Error, Idle, Loading, Paused, PlayerEventKind, Playing, Station,
)
from radiodeck.domain.errors import PlaybackError
from radiodeck.tests.fakes import FakeClock, FakePlayer, RecordingSurface, make_station


class TestValidateStreamUrl:
    def test_accepts_stream_schemes(self):
        assert validate_stream_url(" http://a.example/live ") == "http://a.example/live"
        assert validate_stream_url("https://a.example/live") == "https://a.example/live"
        assert validate_stream_url("rtsp://a.example/live") == "rtsp://a.example/live"

    @pytest.mark.parametrize("url", [None, "", "   ", "not a url", "ftp://a.example/x", "http://"])
    def test_rejects_unplayable_urls(self, url):
        with pytest.raises(PlaybackError):
            validate_stream_url(url)


class TestPlaybackSession:
    """Tests for the playback state machine."""

    def setup_method(self):
        self.player = FakePlayer()
        self.clock = FakeClock()
        self.session = PlaybackSession(self.player, buffering_debounce_sec=1.5, clock=self.clock)
        self.statuses = []
        self.session.subscribe(self.statuses.append)
        self.a = make_station(1, "a")
        self.b = make_station(2, "b")

    def test_starts_idle(self):
        assert self.statuses == [Idle()]
        assert self.session.status == Idle()

    def test_play_publishes_loading_then_playing(self):
        self.session.play(self.a)
        assert self.statuses[-1] == Loading(self.a)
        assert self.player.commands == [("load", self.a.stream_url), ("play",)]

        self.player.emit(PlayerEventKind.READY)
        assert self.statuses == [Idle(), Loading(self.a), Playing(self.a)]

    def test_loading_precedes_playing_with_synchronous_ready(self):
        player = FakePlayer(ready_on_play=True)
        session = PlaybackSession(player)
        statuses = []
        session.subscribe(statuses.append)
        session.play(self.a)
        assert statuses == [Idle(), Loading(self.a), Playing(self.a)]

    def test_late_event_for_superseded_station_is_ignored(self):
        self.session.play(self.a)
        tag_a = self.player.last_tag
        self.session.play(self.b)

        self.player.emit(PlayerEventKind.READY, tag=tag_a)
        assert self.session.status == Loading(self.b)

        self.player.emit(PlayerEventKind.READY)
        assert self.session.status == Playing(self.b)
        assert Playing(self.a) not in self.statuses

    def test_late_error_for_superseded_station_is_ignored(self):
        self.session.play(self.a)
        tag_a = self.player.last_tag
        self.session.play(self.b)
        self.player.emit(PlayerEventKind.ERROR, tag=tag_a, detail="gone")
        assert self.session.status == Loading(self.b)

    def test_invalid_url_never_reaches_player(self):
        broken = Station(id="bad", name="Broken", stream_url="ftp://nowhere")
        self.session.play(broken)
        status = self.session.status
        assert isinstance(status, Error)
        assert status.station == broken
        assert self.player.commands == []

    def test_invalid_url_releases_previous_stream(self):
        self.session.play(self.a)
        self.player.emit(PlayerEventKind.READY)
        self.session.play(Station(id="bad", stream_url=None))
        assert isinstance(self.session.status, Error)
        assert self.player.names()[-1] == "release"

    def test_pause_and_resume(self):
        self.session.play(self.a)
        self.player.emit(PlayerEventKind.READY)

        self.session.pause()
        assert self.session.status == Paused(self.a)
        assert self.player.names()[-1] == "pause"

        self.session.resume()
        assert self.session.status == Playing(self.a)
        assert self.player.names()[-1] == "play"

    def test_pause_and_resume_are_noops_in_other_states(self):
        self.session.pause()
        self.session.resume()
        assert self.player.commands == []
        assert self.statuses == [Idle()]

        self.session.play(self.a)
        self.session.pause()
        assert self.session.status == Loading(self.a)
        self.session.resume()
        assert self.session.status == Loading(self.a)

    def test_ready_while_paused_is_ignored(self):
        self.session.play(self.a)
        self.player.emit(PlayerEventKind.READY)
        self.session.pause()
        self.player.emit(PlayerEventKind.READY)
        assert self.session.status == Paused(self.a)

    @pytest.mark.parametrize("prepare", ["idle", "loading", "playing", "paused", "error"])
    def test_stop_always_yields_idle(self, prepare):
        if prepare != "idle":
            self.session.play(self.a)
        if prepare in ("playing", "paused"):
            self.player.emit(PlayerEventKind.READY)
        if prepare == "paused":
            self.session.pause()
        if prepare == "error":
            self.player.emit(PlayerEventKind.ERROR, detail="boom")

        self.session.stop()
        assert self.session.status == Idle()
        assert self.session.current_station is None

    def test_stop_releases_player(self):
        self.session.play(self.a)
        self.session.stop()
        assert self.player.names() == ["load", "play", "release"]

    def test_events_after_stop_are_ignored(self):
        self.session.play(self.a)
        self.session.stop()
        self.player.emit(PlayerEventKind.READY)
        assert self.session.status == Idle()

    def test_player_error_pauses_and_reports(self):
        self.session.play(self.a)
        self.player.emit(PlayerEventKind.READY)
        self.player.emit(PlayerEventKind.ERROR, detail="HTTP 404")

        assert self.session.status == Error("Could not play station: HTTP 404", self.a)
        assert self.player.names()[-1] == "pause"

        self.player.emit(PlayerEventKind.READY)
        assert isinstance(self.session.status, Error)

    def test_load_failure_reports_error(self):
        self.player.fail_on_load = PlaybackError("no codec")
        self.session.play(self.a)
        assert self.session.status == Error("Could not start playback: no codec", self.a)

    @pytest.mark.parametrize("kind", [PlayerEventKind.ENDED, PlayerEventKind.IDLE])
    def test_stream_end_returns_to_idle(self, kind):
        self.session.play(self.a)
        self.player.emit(PlayerEventKind.READY)
        self.player.emit(kind)
        assert self.session.status == Idle()
        assert self.player.names()[-1] == "release"

    def test_buffering_right_after_ready_is_ignored(self):
        self.session.play(self.a)
        self.player.emit(PlayerEventKind.READY)
        self.clock.advance(0.5)
        self.player.emit(PlayerEventKind.BUFFERING)
        assert self.session.status == Playing(self.a)

    def test_buffering_after_debounce_window_shows_loading(self):
        self.session.play(self.a)
        self.player.emit(PlayerEventKind.READY)
        self.clock.advance(2.0)
        self.player.emit(PlayerEventKind.BUFFERING)
        assert self.session.status == Loading(self.a)

        self.player.emit(PlayerEventKind.READY)
        assert self.session.status == Playing(self.a)

    def test_buffering_while_paused_is_ignored(self):
        self.session.play(self.a)
        self.player.emit(PlayerEventKind.READY)
        self.session.pause()
        self.clock.advance(5)
        self.player.emit(PlayerEventKind.BUFFERING)
        assert self.session.status == Paused(self.a)

    def test_identical_status_is_not_republished(self):
        self.session.play(self.a)
        self.player.emit(PlayerEventKind.READY)
        self.player.emit(PlayerEventKind.READY)
        assert self.statuses.count(Playing(self.a)) == 1

    def test_close_detaches_from_player(self):
        self.session.play(self.a)
        tag = self.player.last_tag
        self.session.close()
        assert self.session.status == Idle()
        self.player.emit(PlayerEventKind.READY, tag=tag)
        assert self.session.status == Idle()

    def test_close_shuts_player_down(self):
        self.session.play(self.a)
        self.session.close()
        assert self.player.names()[-2:] == ["release", "shutdown"]

    def test_close_survives_failing_shutdown(self):
        def broken():
            raise RuntimeError("engine gone")

        self.player.shutdown = broken
        self.session.close()
        assert self.session.status == Idle()


class TestPresentationBinder:
    """Tests for keeping the presentation surface in sync."""

    def setup_method(self):
        self.player = FakePlayer()
        self.surface = RecordingSurface()
        self.session = PlaybackSession(self.player, presentation=self.surface)
        self.a = make_station(1, "a")

    def test_idle_session_leaves_surface_alone(self):
        assert self.surface.calls == []

    def test_playing_claims_and_stop_releases(self):
        self.session.play(self.a)
        self.player.emit(PlayerEventKind.READY)
        assert self.surface.calls == [
            ("update", PresentationBinder.LOADING_TITLE, self.a.display_name, Affordance.PAUSE),
            ("claim", PresentationBinder.PLAYING_TITLE, self.a.display_name, Affordance.PAUSE),
        ]

        self.session.stop()
        assert self.surface.names()[-1] == "release"

    def test_pause_offers_play(self):
        self.session.play(self.a)
        self.player.emit(PlayerEventKind.READY)
        self.session.pause()
        assert self.surface.calls[-1] == (
            "update", PresentationBinder.PAUSED_TITLE, self.a.display_name, Affordance.PLAY)

        self.session.resume()
        assert self.surface.calls[-1] == (
            "update", PresentationBinder.PLAYING_TITLE, self.a.display_name, Affordance.PAUSE)
        assert self.surface.names().count("claim") == 1

    def test_error_releases_surface(self):
        self.session.play(self.a)
        self.player.emit(PlayerEventKind.READY)
        self.player.emit(PlayerEventKind.ERROR, detail="boom")
        assert self.surface.names()[-1] == "release"

    def test_error_before_playing_does_not_release(self):
        self.session.play(self.a)
        self.player.emit(PlayerEventKind.ERROR, detail="boom")
        assert "release" not in self.surface.names()
        assert "claim" not in self.surface.names()
