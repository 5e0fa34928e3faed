from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class Station:
    """Domain entity representing a radio station independent of directories."""

    id: Optional[str] = None
    name: Optional[str] = None
    stream_url: Optional[str] = None
    icon_url: Optional[str] = None
    country_code: Optional[str] = None
    language: Optional[str] = None

    @property
    def key(self) -> Optional[str]:
        """Identity used for deduplication.

        Stations without a stable id fall back to their stream URL. A station
        with neither has no identity and is never deduplicated.
        """
        if self.id:
            return self.id
        if self.stream_url:
            return f"url:{self.stream_url}"
        return None

    @property
    def display_name(self) -> str:
        return self.name or self.stream_url or "Unknown station"

    def to_json(self) -> Dict[str, Any]:
        """Serialize station to JSON."""
        return {
            "id": self.id,
            "name": self.name,
            "stream_url": self.stream_url,
            "icon_url": self.icon_url,
            "country_code": self.country_code,
            "language": self.language,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Station":
        """Deserialize station from JSON."""
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            stream_url=data.get("stream_url"),
            icon_url=data.get("icon_url"),
            country_code=data.get("country_code"),
            language=data.get("language"),
        )


# Attributes compared when deciding whether a fetched record replaces a known one.
SIGNIFICANT_ATTRIBUTES = ("stream_url", "name", "icon_url", "country_code", "language")


class PlaybackStatus:
    """Base class of the playback status variants."""

    station: Optional[Station] = None


@dataclass(frozen=True)
class Idle(PlaybackStatus):
    station: Optional[Station] = None


@dataclass(frozen=True)
class Loading(PlaybackStatus):
    station: Station


@dataclass(frozen=True)
class Playing(PlaybackStatus):
    station: Station


@dataclass(frozen=True)
class Paused(PlaybackStatus):
    station: Station


@dataclass(frozen=True)
class Error(PlaybackStatus):
    message: str
    station: Optional[Station] = None


class PlayerEventKind(str, Enum):
    BUFFERING = "buffering"
    READY = "ready"
    ENDED = "ended"
    IDLE = "idle"
    ERROR = "error"


@dataclass(frozen=True)
class PlaybackTicket:
    """Tag identifying the play command a player event belongs to."""

    generation: int
    station_key: Optional[str] = None


@dataclass(frozen=True)
class PlayerEvent:
    """Event reported by an opaque player for a previously loaded stream."""

    kind: PlayerEventKind
    tag: Any = None
    detail: Optional[str] = None


class Affordance(str, Enum):
    """Action offered by the presentation surface's play/pause control."""

    PLAY = "play"
    PAUSE = "pause"


@dataclass(frozen=True)
class CatalogState:
    """Snapshot of the catalog published to observers."""

    displayed: Tuple[Station, ...] = ()
    query: str = ""
    offset: int = 0
    can_load_more: bool = True
    loading: bool = False
    error: Optional[str] = None
    all: Dict[str, Station] = field(default_factory=dict)
