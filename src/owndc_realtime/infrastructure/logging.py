"""
Logging entry points for the realtime server components.

Components call :func:`setup_logging` once at import time with their
component name; everything else goes through :func:`get_logger`.
"""

import logging
from typing import Optional

from .logging_manager import setup_logging as _setup_logging, get_logger as _get_logger


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Set up logging for a server component.

    Args:
        component_name: Name of the component (e.g. 'event_router', 'chat_server')
        log_level: Logging level. If None, uses the environment default
        log_file: Optional log file path, used when no YAML config is bundled

    Returns:
        logging.Logger: Configured logger instance
    """
    return _setup_logging(component_name, log_level, log_file)


def get_logger(component_name: str) -> logging.Logger:
    """Get a logger for a specific component."""
    return _get_logger(component_name)
