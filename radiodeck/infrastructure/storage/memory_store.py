from typing import Iterable, Optional, Set

from radiodeck.domain.entities import Station


class InMemoryStore:
    """Non-durable store for ephemeral sessions (``--no-persist``) and tests."""

    def __init__(self, favorites: Optional[Iterable[Station]] = None,
                 last_played: Optional[Station] = None):
        self._favorites: Set[Station] = set(favorites or [])
        self._last_played = last_played

    def get_favorites(self) -> Set[Station]:
        return set(self._favorites)

    def set_favorites(self, stations: Iterable[Station]) -> None:
        self._favorites = set(stations)

    def get_last_played(self) -> Optional[Station]:
        return self._last_played

    def set_last_played(self, station: Station) -> None:
        self._last_played = station
