import logging
import threading
from dataclasses import dataclass
from typing import Optional

from radiodeck.domain.entities import Affordance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Indicator:
    """What the surface currently shows."""

    title: str
    subtitle: str
    affordance: Affordance
    foreground: bool


class LoggingPresentation:
    """Presentation surface that records the indicator and reports changes to the log.

    Used by the CLI and HTTP interfaces, which have no OS notification area of
    their own; the last indicator is exposed through ``current``.
    """

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logger
        self._lock = threading.Lock()
        self._current: Optional[Indicator] = None

    @property
    def current(self) -> Optional[Indicator]:
        with self._lock:
            return self._current

    def claim(self, title: str, subtitle: str, affordance: Affordance) -> None:
        with self._lock:
            self._current = Indicator(title, subtitle, affordance, foreground=True)
        self._log.info(f"[{title}] {subtitle}")

    def update(self, title: str, subtitle: str, affordance: Affordance) -> None:
        with self._lock:
            foreground = self._current.foreground if self._current else False
            self._current = Indicator(title, subtitle, affordance, foreground=foreground)
        self._log.info(f"[{title}] {subtitle}")

    def release(self) -> None:
        with self._lock:
            self._current = None
        self._log.info("Playback indicator released")
