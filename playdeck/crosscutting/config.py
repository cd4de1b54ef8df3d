import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import dotenv_values


class ConfigError(Exception):
    """Configuration error."""
    pass


ENV_PREFIX = 'PLAYDECK_'
HOME_ENV_VAR = 'PLAYDECK_HOME'

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
_FALSE_VALUES = {'0', 'false', 'no', 'off'}


@dataclass
class Settings:
    """Runtime settings for the playback engine and its hosts."""

    metadata_timeout_ms: int = 45000
    max_saved_playlists: int = 50
    notify_active_playlist_deletion: bool = True
    player_command: str = 'mpv'
    player_startup_grace_sec: float = 3.0
    log_level: str = 'INFO'
    log_file: Optional[str] = None


class ConfigManager:
    """Locates the config directory and loads settings from ``.env`` and the environment."""

    def __init__(self, config_dir: Optional[str] = None):
        """Initialize config manager."""
        default_dir = os.getenv(HOME_ENV_VAR) or str(Path.home() / '.playdeck')
        self.config_dir = Path(config_dir) if config_dir else Path(default_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.state_file = self.config_dir / 'state.json'
        self.env_file = self.config_dir / '.env'

    def load_env_vars(self) -> Dict[str, str]:
        """Load PLAYDECK_* variables from the .env file, overridden by the process environment."""
        values: Dict[str, str] = {}
        if self.env_file.exists():
            try:
                file_values = dotenv_values(self.env_file)
            except (OSError, UnicodeDecodeError) as e:
                raise ConfigError(f"Failed to load .env file {self.env_file}: {e}")
            values.update({k: v for k, v in file_values.items() if v is not None})

        values.update({k: v for k, v in os.environ.items() if k.startswith(ENV_PREFIX)})
        return values

    def load_settings(self) -> Settings:
        """Build Settings from defaults, .env and environment."""
        env = self.load_env_vars()
        defaults = Settings()

        settings = Settings(
            metadata_timeout_ms=_parse_int(env, 'PLAYDECK_METADATA_TIMEOUT_MS', defaults.metadata_timeout_ms),
            max_saved_playlists=_parse_int(env, 'PLAYDECK_MAX_SAVED_PLAYLISTS', defaults.max_saved_playlists),
            notify_active_playlist_deletion=_parse_bool(
                env, 'PLAYDECK_NOTIFY_ACTIVE_PLAYLIST_DELETION', defaults.notify_active_playlist_deletion
            ),
            player_command=env.get('PLAYDECK_PLAYER') or defaults.player_command,
            player_startup_grace_sec=_parse_float(
                env, 'PLAYDECK_PLAYER_STARTUP_GRACE_SEC', defaults.player_startup_grace_sec
            ),
            log_level=(env.get('PLAYDECK_LOG_LEVEL') or defaults.log_level).upper(),
            log_file=env.get('PLAYDECK_LOG_FILE') or defaults.log_file,
        )

        if settings.metadata_timeout_ms <= 0:
            raise ConfigError("PLAYDECK_METADATA_TIMEOUT_MS must be positive")
        if settings.max_saved_playlists <= 0:
            raise ConfigError("PLAYDECK_MAX_SAVED_PLAYLISTS must be positive")
        if settings.player_startup_grace_sec < 0:
            raise ConfigError("PLAYDECK_PLAYER_STARTUP_GRACE_SEC must not be negative")
        if settings.log_level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ConfigError(f"Unsupported log level: {settings.log_level}")

        return settings

    def get_config_summary(self) -> Dict[str, Any]:
        """Get configuration summary."""
        return {
            'config_dir': str(self.config_dir),
            'state_file': str(self.state_file),
            'env_file': str(self.env_file),
            'has_env_file': self.env_file.exists(),
            'settings': asdict(self.load_settings()),
        }


def _parse_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}")


def _parse_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        return float(str(raw).strip())
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}")


def _parse_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or not str(raw).strip():
        return default
    value = str(raw).strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f"{key} must be a boolean, got {raw!r}")


# Global instance, created lazily so importing this module has no filesystem side effects
config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get global config manager instance."""
    global config_manager
    if config_manager is None:
        config_manager = ConfigManager()
    return config_manager


def setup_config(config_dir: Optional[str] = None) -> ConfigManager:
    """Setup configuration with custom directory."""
    global config_manager
    config_manager = ConfigManager(config_dir)
    return config_manager
