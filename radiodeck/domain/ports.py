from __future__ import annotations

from typing import Any, Callable, Iterable, List, Optional, Protocol, Set

from .entities import Affordance, PlayerEvent, Station


class StationDirectory(Protocol):
    """Port defining the contract for a remote station directory.

    Implementations present a single logical endpoint: they either return a
    page of domain stations or raise NetworkError.
    """

    def search(self, query: Optional[str], offset: int, limit: int) -> List[Station]:
        """Return up to `limit` stations matching `query`, starting at `offset`."""


class PersistentStore(Protocol):
    """Port for durable favorites and last-played state. Failures raise PersistenceError."""

    def get_favorites(self) -> Set[Station]:
        """Return the persisted favorite stations."""

    def set_favorites(self, stations: Iterable[Station]) -> None:
        """Replace the persisted favorite stations."""

    def get_last_played(self) -> Optional[Station]:
        """Return the last played station, if any."""

    def set_last_played(self, station: Station) -> None:
        """Persist the last played station."""


class Player(Protocol):
    """Port for the opaque media engine.

    Commands return immediately; outcomes arrive later as PlayerEvent values
    carrying the tag given to the `load` call that produced them.
    """

    def load(self, url: str, tag: Any) -> None:
        """Abandon any current stream and prepare `url`."""

    def play(self) -> None:
        """Start or continue playback of the loaded stream."""

    def pause(self) -> None:
        """Pause playback, keeping the stream loaded."""

    def release(self) -> None:
        """Stop playback and free the loaded stream."""

    def subscribe(self, listener: Callable[[PlayerEvent], None]) -> Callable[[], None]:
        """Register the event listener; return a callable that unregisters it."""

    def shutdown(self) -> None:
        """Free the engine for good; no command is issued afterwards."""


class PresentationSurface(Protocol):
    """Port for the persistent playback indicator (notification, tray icon, ...)."""

    def claim(self, title: str, subtitle: str, affordance: Affordance) -> None:
        """Show an ongoing, foreground indicator."""

    def update(self, title: str, subtitle: str, affordance: Affordance) -> None:
        """Change the indicator content without claiming or releasing it."""

    def release(self) -> None:
        """Drop the foreground indicator."""
