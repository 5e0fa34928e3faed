import logging
from typing import Optional

from radiodeck.application.catalog import StationCatalog
from radiodeck.application.favorites import FavoritesStore
from radiodeck.application.session import PlaybackSession
from radiodeck.domain.entities import Error, Station
from radiodeck.domain.errors import PersistenceError
from radiodeck.domain.ports import PersistentStore


logger = logging.getLogger(__name__)


class SessionCoordinator:
    """Thin composition of catalog, favorites and playback session."""

    def __init__(self,
                 catalog: StationCatalog,
                 session: PlaybackSession,
                 favorites: FavoritesStore,
                 store: PersistentStore):
        self.catalog = catalog
        self.session = session
        self.favorites = favorites
        self._store = store
        self._last_played: Optional[Station] = None

    def start(self) -> None:
        """Load the first page for the initial (empty) query."""
        self.catalog.load_more()

    def search(self, query: str) -> None:
        self.catalog.search(query)

    def load_more(self) -> None:
        self.catalog.load_more()

    def refresh(self) -> None:
        self.catalog.refresh()

    def toggle_favorite(self, station: Station) -> bool:
        return self.favorites.toggle(station)

    def find_station(self, key: str) -> Optional[Station]:
        """Look a station up in the catalog first, then among favorites."""
        return self.catalog.find(key) or self.favorites.find(key)

    def play(self, station: Station) -> None:
        self.session.play(station)
        if isinstance(self.session.status, Error):
            logger.info(f"Not remembering {station.display_name}: playback could not start")
            return
        self._last_played = station
        try:
            self._store.set_last_played(station)
        except PersistenceError as e:
            logger.error(f"Failed to remember last played station: {e}")

    def play_by_key(self, key: str) -> Optional[Station]:
        station = self.find_station(key)
        if station is None:
            logger.warning(f"No known station with key {key!r}")
            return None
        self.play(station)
        return station

    def play_next(self) -> Optional[Station]:
        station = self.catalog.next_station(self._reference_station())
        if station is not None:
            self.play(station)
        return station

    def play_previous(self) -> Optional[Station]:
        station = self.catalog.previous_station(self._reference_station())
        if station is not None:
            self.play(station)
        return station

    def pause(self) -> None:
        self.session.pause()

    def resume(self) -> None:
        self.session.resume()

    def stop(self) -> None:
        self.session.stop()

    def restore_last_played(self) -> Optional[Station]:
        """Return the station played in a previous run without starting it."""
        try:
            station = self._store.get_last_played()
        except PersistenceError as e:
            logger.error(f"Failed to read last played station: {e}")
            return None
        if station is not None and self._last_played is None:
            self._last_played = station
        return station

    def close(self) -> None:
        self.session.close()
        self.catalog.close()

    def _reference_station(self) -> Optional[Station]:
        return self.session.current_station or self._last_played
