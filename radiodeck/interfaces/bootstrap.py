import logging
from typing import Optional

from radiodeck.application.catalog import StationCatalog
from radiodeck.application.coordinator import SessionCoordinator
from radiodeck.application.favorites import FavoritesStore
from radiodeck.application.session import PlaybackSession
from radiodeck.crosscutting.config import Settings
from radiodeck.domain.ports import Player, PersistentStore, PresentationSurface, StationDirectory
from radiodeck.infrastructure.directory.radio_browser import select_directory_client
from radiodeck.infrastructure.presentation.logging_surface import LoggingPresentation
from radiodeck.infrastructure.storage.json_store import JsonFileStore


logger = logging.getLogger(__name__)


def create_directory(settings: Settings) -> StationDirectory:
    """Resolve the directory mirror once, before the catalog is built."""
    return select_directory_client(
        settings.mirrors,
        timeout=settings.timeout,
        user_agent=settings.user_agent,
        language=settings.language,
    )


def create_player() -> Player:
    from radiodeck.infrastructure.players.vlc_player import VlcPlayer
    return VlcPlayer()


def build_coordinator(settings: Settings,
                      directory: Optional[StationDirectory] = None,
                      player: Optional[Player] = None,
                      presentation: Optional[PresentationSurface] = None,
                      store: Optional[PersistentStore] = None) -> SessionCoordinator:
    """Assemble catalog, favorites and playback session into a coordinator.

    Collaborators not passed in are created from ``settings``.
    """
    directory = directory or create_directory(settings)
    store = store or JsonFileStore(settings.data_dir)
    player = player or create_player()
    presentation = presentation or LoggingPresentation()

    catalog = StationCatalog(directory, page_size=settings.page_size)
    favorites = FavoritesStore(store, key_mode=settings.favorite_key)
    session = PlaybackSession(
        player,
        presentation=presentation,
        buffering_debounce_sec=settings.buffering_debounce,
    )
    logger.debug("Coordinator assembled")
    return SessionCoordinator(catalog, session, favorites, store)
