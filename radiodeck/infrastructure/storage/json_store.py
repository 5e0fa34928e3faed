import json
import logging
import os
import tempfile
import threading
from typing import Any, Iterable, Optional, Set

from radiodeck.domain.entities import Station
from radiodeck.domain.errors import PersistenceError

logger = logging.getLogger(__name__)


class JsonFileStore:
    """Persistent store keeping favorites and last played station in JSON files."""

    FAVORITES_FILE = "favorites.json"
    LAST_PLAYED_FILE = "last_played.json"

    def __init__(self, data_dir: str):
        """Initialize the store.

        Args:
            data_dir: Directory holding the JSON files; created if missing
        """
        self.data_dir = data_dir
        self._lock = threading.Lock()
        try:
            os.makedirs(data_dir, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create data directory {data_dir}: {e}")

    @property
    def favorites_path(self) -> str:
        return os.path.join(self.data_dir, self.FAVORITES_FILE)

    @property
    def last_played_path(self) -> str:
        return os.path.join(self.data_dir, self.LAST_PLAYED_FILE)

    def _read(self, path: str) -> Optional[Any]:
        if not os.path.exists(path):
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise PersistenceError(f"Failed to read {path}: {e}")

    def _write(self, path: str, data: Any) -> None:
        """Write JSON atomically: a temp file in the same directory replaces the target."""
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix='.tmp-', suffix='.json')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except (OSError, TypeError) as e:
            raise PersistenceError(f"Failed to write {path}: {e}")
        logger.debug(f"Saved {path}")

    def get_favorites(self) -> Set[Station]:
        with self._lock:
            data = self._read(self.favorites_path)
        if data is None:
            return set()
        if not isinstance(data, list):
            raise PersistenceError(f"Unexpected favorites format in {self.favorites_path}")
        return {Station.from_json(item) for item in data if isinstance(item, dict)}

    def set_favorites(self, stations: Iterable[Station]) -> None:
        payload = [station.to_json() for station in stations]
        with self._lock:
            self._write(self.favorites_path, payload)

    def get_last_played(self) -> Optional[Station]:
        with self._lock:
            data = self._read(self.last_played_path)
        if not isinstance(data, dict):
            return None
        return Station.from_json(data)

    def set_last_played(self, station: Station) -> None:
        with self._lock:
            self._write(self.last_played_path, station.to_json())
