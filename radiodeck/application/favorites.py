import logging
import threading
from typing import Callable, Dict, FrozenSet, List, Optional

from radiodeck.application.channel import LastValueChannel
from radiodeck.domain.entities import Station
from radiodeck.domain.errors import PersistenceError
from radiodeck.domain.ports import PersistentStore


logger = logging.getLogger(__name__)

FAVORITE_KEY_MODES = ("id", "url")


class FavoritesStore:
    """Persisted set of favorite stations.

    Membership is keyed by ``Station.key`` (id, falling back to the stream
    URL) or, in ``url`` mode, by the stream URL alone. Toggles are serialized
    and read-modify-write the persisted set; the observable in-memory set is
    only updated once the write succeeded.
    """

    def __init__(self, store: PersistentStore, key_mode: str = "id"):
        if key_mode not in FAVORITE_KEY_MODES:
            raise ValueError(f"Unsupported favorite key mode: {key_mode}")
        self._store = store
        self._key_mode = key_mode
        self._lock = threading.Lock()
        self._favorites: Dict[str, Station] = {}
        self._channel: LastValueChannel[FrozenSet[Station]] = LastValueChannel(frozenset(), name="favorites")
        self.reload()

    @property
    def key_mode(self) -> str:
        return self._key_mode

    def key_for(self, station: Station) -> Optional[str]:
        if self._key_mode == "url":
            return station.stream_url
        return station.key

    def subscribe(self, observer: Callable[[FrozenSet[Station]], None]) -> Callable[[], None]:
        return self._channel.subscribe(observer)

    def reload(self) -> None:
        """Replace the in-memory set with the persisted one."""
        with self._lock:
            try:
                persisted = self._load()
            except PersistenceError as e:
                logger.error(f"Failed to load favorites, keeping current set: {e}")
                return
            self._favorites = persisted
            self._channel.publish(frozenset(persisted.values()))

    def toggle(self, station: Station) -> bool:
        """Add ``station`` if absent, remove it if present.

        Returns:
            Whether the station is a favorite afterwards, as seen by callers
        """
        key = self.key_for(station)
        if key is None:
            logger.warning(f"Cannot favorite {station.display_name}: station has no identity")
            return False

        with self._lock:
            try:
                current = self._load()
                if key in current:
                    del current[key]
                else:
                    current[key] = station
                self._store.set_favorites(list(current.values()))
            except PersistenceError as e:
                logger.error(f"Failed to persist favorite toggle for {station.display_name}: {e}")
                return key in self._favorites

            self._favorites = current
            self._channel.publish(frozenset(current.values()))
            return key in current

    def is_favorite(self, key: Optional[str]) -> bool:
        if key is None:
            return False
        with self._lock:
            return key in self._favorites

    def all(self) -> List[Station]:
        with self._lock:
            return list(self._favorites.values())

    def find(self, key: Optional[str]) -> Optional[Station]:
        if key is None:
            return None
        with self._lock:
            return self._favorites.get(key)

    def _load(self) -> Dict[str, Station]:
        loaded: Dict[str, Station] = {}
        for station in self._store.get_favorites():
            key = self.key_for(station)
            if key is not None:
                loaded[key] = station
        return loaded
