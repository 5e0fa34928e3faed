from radiodeck.application.catalog import StationCatalog
from radiodeck.application.coordinator import SessionCoordinator
from radiodeck.application.favorites import FavoritesStore
from radiodeck.application.session import PlaybackSession
from radiodeck.domain.entities import Error, Idle, Loading, PlayerEventKind, Playing, Station
from radiodeck.tests.fakes import (
    FakeDirectory, FakePlayer, FlakyStore, ImmediateExecutor, make_station,
)


class TestSessionCoordinator:
    """Tests for the composition of catalog, favorites and session."""

    def setup_method(self):
        self.stations = [make_station(i) for i in range(3)]
        self.directory = FakeDirectory({"": self.stations, "jazz": [make_station(9, "jazz")]})
        self.player = FakePlayer()
        self.store = FlakyStore()
        self.catalog = StationCatalog(self.directory, page_size=20, executor=ImmediateExecutor())
        self.session = PlaybackSession(self.player)
        self.favorites = FavoritesStore(self.store)
        self.coordinator = SessionCoordinator(self.catalog, self.session, self.favorites, self.store)

    def test_start_loads_first_page(self):
        self.coordinator.start()
        assert len(self.catalog.state.displayed) == 3

    def test_search_switches_query(self):
        self.coordinator.start()
        self.coordinator.search("jazz")
        assert [s.id for s in self.catalog.state.displayed] == ["jazz-9"]

    def test_play_remembers_last_played(self):
        self.coordinator.start()
        self.coordinator.play(self.stations[1])
        assert self.session.status == Loading(self.stations[1])
        assert self.store.get_last_played() == self.stations[1]

    def test_play_survives_persistence_failure(self):
        self.coordinator.start()
        self.store.fail_writes = True
        self.coordinator.play(self.stations[0])
        assert self.session.status == Loading(self.stations[0])

    def test_play_by_key(self):
        self.coordinator.start()
        assert self.coordinator.play_by_key("st-2") == self.stations[2]
        assert self.coordinator.play_by_key("missing") is None

    def test_find_station_falls_back_to_favorites(self):
        favorite = make_station(7, "fav")
        self.coordinator.toggle_favorite(favorite)
        assert self.coordinator.find_station("fav-7") == favorite

    def test_next_and_previous_wrap_around_catalog(self):
        self.coordinator.start()
        self.coordinator.play(self.stations[2])
        assert self.coordinator.play_next() == self.stations[0]
        assert self.coordinator.play_previous() == self.stations[2]

    def test_next_after_stop_continues_from_last_played(self):
        self.coordinator.start()
        self.coordinator.play(self.stations[0])
        self.coordinator.stop()
        assert self.coordinator.play_next() == self.stations[1]

    def test_next_on_empty_catalog(self):
        assert self.coordinator.play_next() is None
        assert self.session.status == Idle()

    def test_pause_resume_stop(self):
        self.coordinator.start()
        self.coordinator.play(self.stations[0])
        self.player.emit(PlayerEventKind.READY)
        self.coordinator.pause()
        self.coordinator.resume()
        assert self.session.status == Playing(self.stations[0])
        self.coordinator.stop()
        assert self.session.status == Idle()

    def test_restore_last_played(self):
        self.store.set_last_played(self.stations[1])
        assert self.coordinator.restore_last_played() == self.stations[1]
        assert self.session.status == Idle()

    def test_close_stops_playback(self):
        self.coordinator.start()
        self.coordinator.play(self.stations[0])
        self.coordinator.close()
        assert self.session.status == Idle()

    def test_close_shuts_player_down(self):
        self.coordinator.start()
        self.coordinator.play(self.stations[0])
        self.coordinator.close()
        assert "shutdown" in self.player.names()

    def test_failed_play_is_not_remembered(self):
        self.coordinator.start()
        broken = Station(id="bad", name="Broken", stream_url=None)
        self.coordinator.play(broken)
        assert isinstance(self.session.status, Error)
        assert self.store.get_last_played() is None
        assert self.coordinator.play_next() == self.stations[0]

    def test_failed_play_keeps_previous_last_played(self):
        self.coordinator.start()
        self.coordinator.play(self.stations[1])
        self.coordinator.play(Station(id="bad", name="Broken", stream_url="ftp://nowhere"))
        assert self.store.get_last_played() == self.stations[1]
        assert self.coordinator.play_next() == self.stations[2]
