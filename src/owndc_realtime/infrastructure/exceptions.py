"""
Custom exceptions for the OwnDc realtime server.

This module defines the error taxonomy of the coordination layer. Most of
these never reach the transport: the event router catches them where they
are raised and turns them into a failure response or a silent drop.
"""


class OwnDcRealtimeError(Exception):
    """Base exception for all realtime server errors."""

    pass


class ConfigurationError(OwnDcRealtimeError):
    """Raised when there are configuration-related errors."""

    pass


class AuthenticationFailure(OwnDcRealtimeError):
    """Raised when a connection authenticates with an unknown user id."""

    pass


class NotAuthorized(OwnDcRealtimeError):
    """Raised when an event references a room the sender may not use."""

    pass


class TargetUnreachable(OwnDcRealtimeError):
    """Raised when the target user has no live connection."""

    pass


class PersistenceUnavailable(OwnDcRealtimeError):
    """Raised when a persistent store call fails or times out."""

    pass


class ProtocolError(OwnDcRealtimeError):
    """Raised when an inbound frame cannot be decoded."""

    pass


class NetworkError(OwnDcRealtimeError):
    """Raised when there are network communication errors."""

    pass


class WebSocketError(NetworkError):
    """Raised when there are WebSocket communication errors."""

    pass
