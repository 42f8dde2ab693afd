"""Configuration management for femdown."""

import json
import os
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional, Union

import keyring
from keyring.errors import KeyringError

from femdown.models import AppConfig, Session
from femdown.exceptions import ConfigurationError
from femdown.logging_config import get_logger

logger = get_logger(__name__)


class ConfigurationLoader:
    """Loads configuration from defaults, the config file and the environment."""

    # Environment variable -> (config key, converter)
    ENV_MAPPINGS = {
        'FEMDOWN_CACHE_DIRECTORY': ('cache_directory', str),
        'FEMDOWN_OUTPUT_DIR': ('default_output_dir', str),
        'FEMDOWN_MAX_CONCURRENT_DOWNLOADS': ('max_concurrent_downloads', int),
        'FEMDOWN_RETRY_DELAY': ('retry_delay', float),
        'FEMDOWN_RATE_LIMIT_DELAY': ('rate_limit_delay', float),
        'FEMDOWN_VIDEO_FORMAT': ('video_format', str),
        'FEMDOWN_RESOLUTION': ('resolution', str),
        'FEMDOWN_SESSION_MAX_AGE': ('session_max_age', int),
        'FEMDOWN_BROWSER_CHANNEL': ('browser_channel', str),
        'FEMDOWN_BROWSER_EXECUTABLE': ('browser_executable', str),
    }

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        """Initialize configuration loader.

        Args:
            config_file: Path to configuration file. If None, uses default location.
        """
        self.config_file = Path(config_file) if config_file else Path.home() / ".femdown" / "config.json"

    def load_config(self) -> AppConfig:
        """Load configuration from defaults, file and environment variables, in that order.

        Returns:
            AppConfig instance with loaded configuration.

        Raises:
            ConfigurationError: If configuration loading fails.
        """
        config_dict = asdict(AppConfig())

        if self.config_file.exists():
            file_config = self._load_from_file()
            unknown = set(file_config) - set(config_dict)
            if unknown:
                raise ConfigurationError(
                    f"Unknown configuration keys: {', '.join(sorted(unknown))}",
                    config_key=sorted(unknown)[0]
                )
            config_dict.update(file_config)

        config_dict.update(self._load_from_env())

        try:
            return AppConfig(**config_dict)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Failed to load configuration: {str(e)}")

    def _load_from_file(self) -> Dict[str, Any]:
        try:
            with open(self.config_file, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in config file: {str(e)}")
        except OSError as e:
            raise ConfigurationError(f"Failed to read config file: {str(e)}")

        if not isinstance(data, dict):
            raise ConfigurationError("Config file must contain a JSON object")
        return data

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables.

        Returns:
            Dictionary with configuration values from environment.
        """
        env_config = {}

        for env_var, (config_key, convert) in self.ENV_MAPPINGS.items():
            value = os.getenv(env_var)
            if value is None:
                continue
            try:
                env_config[config_key] = convert(value)
            except ValueError:
                raise ConfigurationError(
                    f"Invalid {convert.__name__} value for {env_var}: {value}",
                    config_key=config_key
                )

        return env_config


class SessionStore:
    """Keeps the last login session between runs.

    The system keyring is preferred. When no keyring backend is available the
    session goes to a JSON file readable only by the owner.
    """

    KEYRING_USERNAME = "session"

    def __init__(self, cache_dir: Path, service_name: str = "femdown"):
        self.service_name = service_name
        self.fallback_file = Path(cache_dir) / "session.json"

    def save(self, session: Session) -> None:
        """Store a session.

        Raises:
            ConfigurationError: If neither keyring nor file storage works.
        """
        payload = json.dumps({
            'cookies': session.cookies_str,
            'created_at': session.created_at.isoformat(),
        })

        try:
            keyring.set_password(self.service_name, self.KEYRING_USERNAME, payload)
            return
        except KeyringError as e:
            logger.debug(f"Keyring unavailable, storing session in {self.fallback_file}: {e}")

        try:
            self.fallback_file.parent.mkdir(parents=True, exist_ok=True)
            self.fallback_file.write_text(payload)
            self.fallback_file.chmod(0o600)
        except OSError as e:
            raise ConfigurationError(f"Failed to store session: {e}")

    def load(self, max_age: Optional[int] = None) -> Optional[Session]:
        """Return the stored session, or None if missing, unreadable or older than max_age seconds."""
        payload = self._load_from_keyring() or self._load_from_file()
        if not payload:
            return None

        try:
            data = json.loads(payload)
            session = Session(
                cookies_str=data['cookies'],
                created_at=datetime.fromisoformat(data['created_at'])
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable stored session: {e}")
            return None

        if max_age is not None and session.age_seconds > max_age:
            logger.info("Stored session is too old, a new login is required")
            return None

        return session

    def clear(self) -> None:
        """Forget any stored session."""
        try:
            keyring.delete_password(self.service_name, self.KEYRING_USERNAME)
        except KeyringError as e:
            logger.debug(f"No keyring session to delete: {e}")

        try:
            self.fallback_file.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise ConfigurationError(f"Failed to delete session file: {e}")

    def _load_from_keyring(self) -> Optional[str]:
        try:
            return keyring.get_password(self.service_name, self.KEYRING_USERNAME)
        except KeyringError as e:
            logger.debug(f"Keyring unavailable: {e}")
            return None

    def _load_from_file(self) -> Optional[str]:
        try:
            return self.fallback_file.read_text()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Could not read session file: {e}")
            return None


class ConfigManager:
    """High-level configuration management interface."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        """Initialize configuration manager.

        Args:
            config_file: Path to configuration file.
        """
        self.config_loader = ConfigurationLoader(config_file)
        self._config: Optional[AppConfig] = None
        self._session_store: Optional[SessionStore] = None

    @property
    def config(self) -> AppConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.config_loader.load_config()
        return self._config

    @property
    def session_store(self) -> SessionStore:
        if self._session_store is None:
            self._session_store = SessionStore(self.config.cache_path)
        return self._session_store
