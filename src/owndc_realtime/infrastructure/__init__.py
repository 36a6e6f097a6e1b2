"""
Infrastructure components for the OwnDc realtime server.

This package contains cross-cutting concerns:
- Logging configuration with environment-based levels
- The error taxonomy of the coordination layer
"""

from .logging import setup_logging, get_logger
from .logging_manager import (
    LoggingManager,
    Environment,
    is_production,
    get_environment,
)
from .exceptions import (
    OwnDcRealtimeError,
    ConfigurationError,
    AuthenticationFailure,
    NotAuthorized,
    TargetUnreachable,
    PersistenceUnavailable,
    ProtocolError,
    NetworkError,
    WebSocketError,
)

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "LoggingManager",
    "Environment",
    "is_production",
    "get_environment",
    # Exceptions
    "OwnDcRealtimeError",
    "ConfigurationError",
    "AuthenticationFailure",
    "NotAuthorized",
    "TargetUnreachable",
    "PersistenceUnavailable",
    "ProtocolError",
    "NetworkError",
    "WebSocketError",
]
