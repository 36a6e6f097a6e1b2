"""
Environment-aware logging for the OwnDc realtime server.

``ENVIRONMENT`` picks the default level for every component logger:

- development: DEBUG
- staging: INFO
- production: WARNING

The ``logging.yaml`` bundled with the package is applied through
``logging.config.dictConfig``. Without it, a console handler (and an
optional plain file handler) is attached to the component logger.
"""

import logging
import logging.config
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

# Third-party loggers capped at WARNING whatever the environment
NOISY_LOGGERS = [
    "websockets",
    "websockets.server",
    "uvicorn.access",
    "asyncio",
]

_ENVIRONMENT_LEVELS = {
    "development": "DEBUG",
    "staging": "INFO",
    "production": "WARNING",
}


class Environment(Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LoggingManager:
    """Applies the logging configuration once per component."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize logging manager.

        Args:
            config_path: YAML logging config. Defaults to the ``logging.yaml``
                shipped inside the package.
        """
        self.config_path = config_path or Path(__file__).parent.parent / "logging.yaml"
        self._config: Optional[Dict[str, Any]] = None
        self._environment = self._detect_environment()

    @staticmethod
    def _detect_environment() -> Environment:
        env = os.getenv("ENVIRONMENT", "development").strip().lower()
        if env in ("prod", "production"):
            return Environment.PRODUCTION
        if env in ("stage", "staging"):
            return Environment.STAGING
        return Environment.DEVELOPMENT

    def _load_yaml_config(self) -> Optional[Dict[str, Any]]:
        if self._config is None and self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    self._config = yaml.safe_load(f)
            except (yaml.YAMLError, OSError) as e:
                logging.getLogger(__name__).warning(
                    f"Could not read logging config {self.config_path}: {e}"
                )
        return self._config

    @property
    def default_level(self) -> str:
        return _ENVIRONMENT_LEVELS[self._environment.value]

    def _for_environment(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Copy of ``config`` with component loggers lowered in production."""
        config = {**config, "loggers": {k: dict(v) for k, v in config.get("loggers", {}).items()}}
        if self._environment is not Environment.PRODUCTION:
            return config

        for name, logger_config in config["loggers"].items():
            if name not in NOISY_LOGGERS:
                logger_config["level"] = self.default_level
        return config

    def setup_logging(
        self,
        component_name: str,
        log_level: Optional[str] = None,
        log_file: Optional[str] = None,
    ) -> logging.Logger:
        """
        Configure logging and return the logger for ``component_name``.

        Args:
            component_name: Logger name, e.g. ``event_router``
            log_level: Override for the environment default
            log_file: Extra file handler, only used without the YAML config
        """
        level = (log_level or self.default_level).upper()
        config = self._load_yaml_config()

        if config:
            os.makedirs("logs", exist_ok=True)
            logging.config.dictConfig(self._for_environment(config))
            logger = logging.getLogger(component_name)
        else:
            logger = self._setup_basic_logging(component_name, log_file)

        logger.setLevel(getattr(logging, level))
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
        return logger

    def _setup_basic_logging(
        self, component_name: str, log_file: Optional[str]
    ) -> logging.Logger:
        logger = logging.getLogger(component_name)
        logger.handlers.clear()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        if log_file:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

        return logger

    def get_environment(self) -> Environment:
        return self._environment

    def is_production(self) -> bool:
        return self._environment is Environment.PRODUCTION


_logging_manager = LoggingManager()


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Set up logging for a component (convenience function)."""
    return _logging_manager.setup_logging(component_name, log_level, log_file)


def get_logger(component_name: str) -> logging.Logger:
    return logging.getLogger(component_name)


def is_production() -> bool:
    return _logging_manager.is_production()


def get_environment() -> Environment:
    return _logging_manager.get_environment()
