import logging
import threading
import time
from typing import Callable, Optional
from urllib.parse import urlparse

from radiodeck.application.channel import LastValueChannel
from radiodeck.crosscutting.logging import log_status_change
from radiodeck.domain.entities import (
    Affordance, Error, Idle, Loading, Paused, PlaybackStatus, PlaybackTicket,
    PlayerEvent, PlayerEventKind, Playing, Station,
)
from radiodeck.domain.errors import PlaybackError
from radiodeck.domain.ports import Player, PresentationSurface


logger = logging.getLogger(__name__)

STREAM_SCHEMES = ("http", "https", "mms", "rtsp", "rtmp")
DEFAULT_BUFFERING_DEBOUNCE_SEC = 1.5


def validate_stream_url(url: Optional[str]) -> str:
    """Return the stream URL or raise PlaybackError if it cannot be played."""
    if not url or not url.strip():
        raise PlaybackError("Station has no stream URL")
    try:
        parsed = urlparse(url.strip())
    except ValueError as e:
        raise PlaybackError(f"Invalid stream URL {url!r}: {e}")
    if parsed.scheme.lower() not in STREAM_SCHEMES or not parsed.netloc:
        raise PlaybackError(f"Invalid stream URL {url!r}")
    return url.strip()


class PresentationBinder:
    """Keeps a presentation surface consistent with the playback status.

    Playing claims the surface, Idle and Error release it, Loading and
    Paused only update its content.
    """

    LOADING_TITLE = "Loading station..."
    PLAYING_TITLE = "Now playing"
    PAUSED_TITLE = "Paused"

    def __init__(self, surface: PresentationSurface):
        self._surface = surface
        self._claimed = False

    @property
    def claimed(self) -> bool:
        return self._claimed

    def __call__(self, status: PlaybackStatus) -> None:
        if isinstance(status, Playing):
            args = (self.PLAYING_TITLE, status.station.display_name, Affordance.PAUSE)
            if self._claimed:
                self._surface.update(*args)
            else:
                self._surface.claim(*args)
                self._claimed = True
        elif isinstance(status, Loading):
            self._surface.update(self.LOADING_TITLE, status.station.display_name, Affordance.PAUSE)
        elif isinstance(status, Paused):
            self._surface.update(self.PAUSED_TITLE, status.station.display_name, Affordance.PLAY)
        elif self._claimed:
            self._surface.release()
            self._claimed = False


class PlaybackSession:
    """State machine driving a single opaque player.

    Commands (play, pause, resume, stop) return immediately. Player events
    arrive on whatever thread the player uses and are matched against the
    ticket of the latest ``play`` call; events for superseded tickets are
    dropped. Every transition is published on a last-value channel.
    """

    def __init__(self,
                 player: Player,
                 presentation: Optional[PresentationSurface] = None,
                 buffering_debounce_sec: float = DEFAULT_BUFFERING_DEBOUNCE_SEC,
                 clock: Callable[[], float] = time.monotonic):
        """Initialize the session and attach to the player event stream.

        Args:
            player: Opaque player to drive
            presentation: Optional surface kept in sync with the status
            buffering_debounce_sec: Window after ``ready`` in which a buffering
                event for the same ticket is treated as a blip
            clock: Monotonic clock, injectable for tests
        """
        self._player = player
        self._debounce = buffering_debounce_sec
        self._clock = clock
        self._lock = threading.RLock()
        self._generation = 0
        self._ticket: Optional[PlaybackTicket] = None
        self._station: Optional[Station] = None
        self._ready_at: Optional[float] = None
        self._holds_stream = False
        self._status: PlaybackStatus = Idle()
        self._channel: LastValueChannel[PlaybackStatus] = LastValueChannel(self._status, name="playback")
        self._binder = PresentationBinder(presentation) if presentation is not None else None
        if self._binder is not None:
            self._channel.subscribe(self._binder)
        self._detach = player.subscribe(self.on_player_event)

    @property
    def status(self) -> PlaybackStatus:
        with self._lock:
            return self._status

    @property
    def current_station(self) -> Optional[Station]:
        with self._lock:
            return self._station

    def subscribe(self, observer: Callable[[PlaybackStatus], None]) -> Callable[[], None]:
        """Observe status changes; the current status is replayed immediately."""
        return self._channel.subscribe(observer)

    def play(self, station: Station) -> None:
        """Start playing ``station``, superseding whatever was loaded before."""
        with self._lock:
            self._generation += 1
            self._ready_at = None
            try:
                url = validate_stream_url(station.stream_url)
            except PlaybackError as e:
                logger.warning(f"Refusing to play {station.display_name}: {e}")
                self._ticket = None
                self._station = None
                self._release_player()
                self._transition(Error(str(e), station))
                return

            ticket = PlaybackTicket(self._generation, station.key)
            self._ticket = ticket
            self._station = station
            self._transition(Loading(station))
            try:
                self._holds_stream = True
                self._player.load(url, ticket)
                self._player.play()
            except Exception as e:
                logger.error(f"Player rejected {url}: {e}")
                if self._ticket == ticket:
                    self._fail(f"Could not start playback: {e}")

    def pause(self) -> None:
        with self._lock:
            if not isinstance(self._status, Playing):
                return
            self._player.pause()
            self._transition(Paused(self._station))

    def resume(self) -> None:
        with self._lock:
            if not isinstance(self._status, Paused):
                return
            self._player.play()
            self._ready_at = self._clock()
            self._transition(Playing(self._station))

    def stop(self) -> None:
        """Return to Idle from any state, releasing the player."""
        with self._lock:
            self._generation += 1
            self._ticket = None
            self._station = None
            self._ready_at = None
            self._release_player()
            self._transition(Idle())

    def close(self) -> None:
        """Stop playback, detach from the player and shut it down."""
        self.stop()
        self._detach()
        try:
            self._player.shutdown()
        except Exception as e:
            logger.warning(f"Failed to shut down player: {e}")

    def on_player_event(self, event: PlayerEvent) -> None:
        """Apply a player event if it belongs to the current ticket."""
        with self._lock:
            if self._ticket is None or event.tag != self._ticket:
                logger.debug(f"Ignoring {event.kind.value} event for superseded stream")
                return

            if event.kind == PlayerEventKind.BUFFERING:
                self._on_buffering()
            elif event.kind == PlayerEventKind.READY:
                self._on_ready()
            elif event.kind in (PlayerEventKind.ENDED, PlayerEventKind.IDLE):
                self._on_finished(event.kind)
            elif event.kind == PlayerEventKind.ERROR:
                self._fail(f"Could not play station: {event.detail or 'unknown error'}")

    def _on_buffering(self) -> None:
        if isinstance(self._status, Playing) and self._ready_at is not None:
            if self._clock() - self._ready_at < self._debounce:
                logger.debug("Ignoring buffering blip right after ready")
                return
        if isinstance(self._status, (Loading, Playing)):
            self._transition(Loading(self._station))

    def _on_ready(self) -> None:
        if isinstance(self._status, Paused):
            return
        self._ready_at = self._clock()
        self._transition(Playing(self._station))

    def _on_finished(self, kind: PlayerEventKind) -> None:
        logger.info(f"Stream of {self._station.display_name} reported {kind.value}")
        self._generation += 1
        self._ticket = None
        self._station = None
        self._ready_at = None
        self._release_player()
        self._transition(Idle())

    def _fail(self, message: str) -> None:
        station = self._station
        self._generation += 1
        self._ticket = None
        self._ready_at = None
        try:
            self._player.pause()
        except Exception as e:
            logger.warning(f"Failed to pause player after error: {e}")
        self._transition(Error(message, station))

    def _release_player(self) -> None:
        if not self._holds_stream:
            return
        self._holds_stream = False
        try:
            self._player.release()
        except Exception as e:
            logger.warning(f"Failed to release player: {e}")

    def _transition(self, status: PlaybackStatus) -> None:
        if status == self._status:
            return
        old = self._status
        self._status = status
        station = getattr(status, 'station', None)
        log_status_change(
            logger,
            type(old).__name__,
            type(status).__name__,
            station_id=station.key if station is not None else None,
        )
        self._channel.publish(status)
