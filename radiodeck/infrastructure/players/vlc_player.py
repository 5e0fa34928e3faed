import logging
import queue
import threading
from typing import Any, Callable, List, Optional

from radiodeck.domain.entities import PlayerEvent, PlayerEventKind
from radiodeck.domain.errors import PlaybackError

logger = logging.getLogger(__name__)


class VlcPlayer:
    """Player adapter backed by libvlc through python-vlc.

    A fresh media player is created for every ``load`` so that events from an
    abandoned stream keep carrying the tag of the load that produced them.
    libvlc forbids calling back into the library from its event threads, so
    events are queued and delivered to listeners from a dispatcher thread.
    """

    def __init__(self, instance_args: Optional[List[str]] = None, volume: Optional[int] = None):
        """Initialize the adapter.

        Args:
            instance_args: Extra arguments for the libvlc instance
            volume: Initial audio volume (0-100)
        """
        try:
            import vlc
        except ImportError:
            raise RuntimeError("python-vlc library not installed")
        except OSError as e:
            raise PlaybackError(f"libvlc could not be loaded: {e}")

        self._vlc = vlc
        self._instance = vlc.Instance(*(instance_args or ["--no-video", "--quiet"]))
        if self._instance is None:
            raise PlaybackError("Failed to create libvlc instance")
        self._volume = volume
        self._shut_down = False
        self._media_player = None
        self._listeners: List[Callable[[PlayerEvent], None]] = []
        self._lock = threading.Lock()
        self._events: "queue.Queue[Optional[PlayerEvent]]" = queue.Queue()
        self._dispatcher = threading.Thread(target=self._dispatch, name="vlc-events", daemon=True)
        self._dispatcher.start()

    def subscribe(self, listener: Callable[[PlayerEvent], None]) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def load(self, url: str, tag: Any) -> None:
        self.release()
        media_player = self._instance.media_player_new()
        media_player.set_media(self._instance.media_new(url))
        if self._volume is not None:
            media_player.audio_set_volume(self._volume)
        self._attach_events(media_player, tag)
        self._media_player = media_player
        logger.debug(f"Loaded {url}")

    def play(self) -> None:
        if self._media_player is None:
            return
        if self._media_player.play() == -1:
            raise PlaybackError("libvlc refused to start playback")

    def pause(self) -> None:
        if self._media_player is not None:
            self._media_player.set_pause(1)

    def release(self) -> None:
        media_player, self._media_player = self._media_player, None
        if media_player is None:
            return
        manager = media_player.event_manager()
        for vlc_event, _ in self._event_mapping():
            manager.event_detach(vlc_event)
        media_player.stop()
        media_player.release()

    def shutdown(self) -> None:
        """Release the stream, stop the dispatcher thread and free the libvlc instance."""
        if self._shut_down:
            return
        self._shut_down = True
        self.release()
        self._events.put(None)
        if self._dispatcher is not threading.current_thread():
            self._dispatcher.join(timeout=2)
        self._instance.release()

    def _event_mapping(self):
        event_type = self._vlc.EventType
        return [
            (event_type.MediaPlayerBuffering, PlayerEventKind.BUFFERING),
            (event_type.MediaPlayerPlaying, PlayerEventKind.READY),
            (event_type.MediaPlayerEndReached, PlayerEventKind.ENDED),
            (event_type.MediaPlayerStopped, PlayerEventKind.IDLE),
            (event_type.MediaPlayerEncounteredError, PlayerEventKind.ERROR),
        ]

    def _attach_events(self, media_player, tag: Any) -> None:
        manager = media_player.event_manager()
        for vlc_event, kind in self._event_mapping():
            manager.event_attach(vlc_event, self._make_callback(kind, tag))

    def _make_callback(self, kind: PlayerEventKind, tag: Any):
        def callback(event) -> None:
            reported = kind
            if kind == PlayerEventKind.BUFFERING:
                # libvlc does not repeat MediaPlayerPlaying after a rebuffer; a full cache is the resume signal
                cache = getattr(getattr(event, 'u', None), 'new_cache', None)
                if isinstance(cache, (int, float)) and cache >= 100:
                    reported = PlayerEventKind.READY
            detail = "libvlc reported a playback error" if kind == PlayerEventKind.ERROR else None
            self._events.put(PlayerEvent(kind=reported, tag=tag, detail=detail))
        return callback

    def _dispatch(self) -> None:
        while True:
            event = self._events.get()
            if event is None:
                return
            with self._lock:
                listeners = list(self._listeners)
            for listener in listeners:
                try:
                    listener(event)
                except Exception as e:
                    logger.error(f"Player event listener failed: {e}")
