"""
Configuration management for the OwnDc realtime server.

Settings come from the process environment, after ``.env`` has been loaded
with python-dotenv. Every value has a default, so an empty environment yields
a working local development server.
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from ..infrastructure.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class RealtimeConfig:
    """Runtime configuration for the WebSocket server and status API."""

    # WebSocket server
    host: str = "0.0.0.0"
    port: int = 3001
    ping_interval: int = 30
    ping_timeout: float = 10.0
    max_connections: int = 1000
    max_message_size: int = 2**16

    # Status API
    api_host: str = "0.0.0.0"
    api_port: int = 3002

    # Persistent store
    database_path: str = "data/database.sqlite"
    store_timeout: float = 5.0

    # Delivery
    outbound_queue_size: int = 256
    max_dropped_events: int = 64

    # Authorization
    enforce_channel_membership: bool = False

    log_level: str = "INFO"

    def __post_init__(self):
        """Validate numeric ranges."""
        for name in (
            "port",
            "api_port",
            "ping_interval",
            "max_connections",
            "max_message_size",
            "outbound_queue_size",
            "max_dropped_events",
        ):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        for name in ("ping_timeout", "store_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")


class RealtimeConfigManager:
    """Loads :class:`RealtimeConfig` from the environment."""

    def __init__(self, env_file_path: str = ".env"):
        """
        Initialize configuration manager.

        Args:
            env_file_path: Path to environment file
        """
        self.env_file_path = env_file_path
        self._load_environment()

    def _load_environment(self):
        """Load environment variables from file."""
        if os.path.exists(self.env_file_path):
            load_dotenv(dotenv_path=self.env_file_path)
            logger.info(f"Loaded environment from {self.env_file_path}")
        else:
            logger.debug(f"Environment file {self.env_file_path} not found")

    def _get_optional_env(self, key: str, default: str = None) -> str:
        """Get optional environment variable."""
        return os.getenv(key, default)

    def _get_int_env(self, key: str, default: int) -> int:
        value = self._get_optional_env(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except ValueError:
            raise ConfigurationError(f"{key} must be an integer, got {value!r}")

    def _get_float_env(self, key: str, default: float) -> float:
        value = self._get_optional_env(key)
        if value is None or value == "":
            return default
        try:
            return float(value)
        except ValueError:
            raise ConfigurationError(f"{key} must be a number, got {value!r}")

    def _get_bool_env(self, key: str, default: bool) -> bool:
        value = self._get_optional_env(key)
        if value is None or value == "":
            return default
        return value.strip().lower() in ("1", "true", "yes", "on")

    def get_config(self) -> RealtimeConfig:
        """
        Build the server configuration.

        Returns:
            RealtimeConfig: Server configuration

        Raises:
            ConfigurationError: If a value is malformed or out of range
        """
        try:
            config = RealtimeConfig(
                host=self._get_optional_env("HOST", "0.0.0.0"),
                port=self._get_int_env("PORT", 3001),
                ping_interval=self._get_int_env("PING_INTERVAL", 30),
                ping_timeout=self._get_float_env("PING_TIMEOUT", 10.0),
                max_connections=self._get_int_env("MAX_CONNECTIONS", 1000),
                max_message_size=self._get_int_env("MAX_MESSAGE_SIZE", 2**16),
                api_host=self._get_optional_env("API_HOST", "0.0.0.0"),
                api_port=self._get_int_env("API_PORT", 3002),
                database_path=self._get_optional_env(
                    "DATABASE_PATH", "data/database.sqlite"
                ),
                store_timeout=self._get_float_env("STORE_TIMEOUT", 5.0),
                outbound_queue_size=self._get_int_env("OUTBOUND_QUEUE_SIZE", 256),
                max_dropped_events=self._get_int_env("MAX_DROPPED_EVENTS", 64),
                enforce_channel_membership=self._get_bool_env(
                    "ENFORCE_CHANNEL_MEMBERSHIP", False
                ),
                log_level=self._get_optional_env("LOG_LEVEL", "INFO"),
            )
            logger.info("Configuration loaded successfully")
            return config

        except ConfigurationError as e:
            logger.error(f"Failed to load configuration: {e}")
            raise
