import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, List, Optional

from dotenv import dotenv_values

from radiodeck.infrastructure.directory.radio_browser import DEFAULT_MIRRORS


VERSION = "0.1.0"


class ConfigError(Exception):
    """Configuration error."""
    pass


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings."""

    mirrors: List[str] = field(default_factory=lambda: list(DEFAULT_MIRRORS))
    page_size: int = 20
    language: Optional[str] = None
    favorite_key: str = "id"
    timeout: float = 10.0
    user_agent: str = f"radiodeck/{VERSION}"
    data_dir: str = str(Path.home() / '.radiodeck')
    buffering_debounce: float = 1.5


class ConfigManager:
    """Resolves settings from the environment and an optional .env file.

    Environment variables take precedence over the .env file, which takes
    precedence over the defaults in ``Settings``.
    """

    PREFIX = 'RADIODECK_'

    def __init__(self, config_dir: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        """Initialize config manager."""
        self.config_dir = Path(config_dir) if config_dir else Path.home() / '.radiodeck'
        self.env_file = self.config_dir / '.env'
        self._environ = environ if environ is not None else os.environ

    def load_env_vars(self) -> Dict[str, str]:
        """Load variables from the .env file, if present."""
        if not self.env_file.exists():
            return {}
        try:
            values = dotenv_values(self.env_file)
        except OSError as e:
            raise ConfigError(f"Failed to load .env file {self.env_file}: {e}")
        return {k: v for k, v in values.items() if v is not None}

    def _raw(self) -> Dict[str, str]:
        raw = self.load_env_vars()
        for key, value in self._environ.items():
            if key.startswith(self.PREFIX):
                raw[key] = value
        return raw

    def _get(self, raw: Dict[str, str], name: str) -> Optional[str]:
        value = raw.get(self.PREFIX + name)
        if value is None or not str(value).strip():
            return None
        return str(value).strip()

    def _get_int(self, raw: Dict[str, str], name: str, default: int) -> int:
        value = self._get(raw, name)
        if value is None:
            return default
        try:
            parsed = int(value)
        except ValueError:
            raise ConfigError(f"{self.PREFIX}{name} must be an integer, got {value!r}")
        if parsed <= 0:
            raise ConfigError(f"{self.PREFIX}{name} must be positive, got {parsed}")
        return parsed

    def _get_float(self, raw: Dict[str, str], name: str, default: float) -> float:
        value = self._get(raw, name)
        if value is None:
            return default
        try:
            parsed = float(value)
        except ValueError:
            raise ConfigError(f"{self.PREFIX}{name} must be a number, got {value!r}")
        if parsed < 0:
            raise ConfigError(f"{self.PREFIX}{name} must not be negative, got {parsed}")
        return parsed

    def load_settings(self) -> Settings:
        """Resolve settings, raising ConfigError on invalid values."""
        raw = self._raw()
        defaults = Settings()

        mirrors = defaults.mirrors
        mirrors_value = self._get(raw, 'MIRRORS')
        if mirrors_value:
            mirrors = [m.strip() for m in mirrors_value.split(',') if m.strip()]
            if not mirrors:
                raise ConfigError(f"{self.PREFIX}MIRRORS does not name any mirror")

        favorite_key = (self._get(raw, 'FAVORITE_KEY') or defaults.favorite_key).lower()
        if favorite_key not in ('id', 'url'):
            raise ConfigError(f"{self.PREFIX}FAVORITE_KEY must be 'id' or 'url', got {favorite_key!r}")

        return Settings(
            mirrors=mirrors,
            page_size=self._get_int(raw, 'PAGE_SIZE', defaults.page_size),
            language=self._get(raw, 'LANGUAGE'),
            favorite_key=favorite_key,
            timeout=self._get_float(raw, 'TIMEOUT', defaults.timeout),
            user_agent=self._get(raw, 'USER_AGENT') or defaults.user_agent,
            data_dir=self._get(raw, 'DATA_DIR') or str(self.config_dir),
            buffering_debounce=self._get_float(raw, 'BUFFERING_DEBOUNCE', defaults.buffering_debounce),
        )

    def get_config_summary(self) -> Dict[str, Any]:
        """Get configuration summary."""
        settings = self.load_settings()
        return {
            'config_dir': str(self.config_dir),
            'env_file': str(self.env_file),
            'has_env_file': self.env_file.exists(),
            'mirrors': settings.mirrors,
            'page_size': settings.page_size,
            'language': settings.language,
            'favorite_key': settings.favorite_key,
            'data_dir': settings.data_dir,
        }


# Global instance, created on first use
config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get global config manager instance."""
    global config_manager
    if config_manager is None:
        config_manager = ConfigManager()
    return config_manager


def get_settings() -> Settings:
    """Resolve settings through the global config manager."""
    return get_config_manager().load_settings()


def setup_config(config_dir: Optional[str] = None) -> ConfigManager:
    """Setup configuration with custom directory."""
    global config_manager
    config_manager = ConfigManager(config_dir)
    return config_manager
