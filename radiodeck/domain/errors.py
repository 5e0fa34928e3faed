from typing import Optional


class NetworkError(Exception):
    """Directory fetch failed. Retried only on the next explicit user action."""

    def __init__(self, message: str = "Network error", status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PlaybackError(Exception):
    """Player reported a failure or the stream URL is unusable."""


class PersistenceError(Exception):
    """Favorites or last-played state could not be read or written."""
