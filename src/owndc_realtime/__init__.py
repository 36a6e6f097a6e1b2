"""
OwnDc Realtime - session and presence coordination for the OwnDc chat server.

This package maps authenticated users to live WebSocket connections, tracks
text-channel and voice-room membership, notifies friends of presence
changes, and relays WebRTC signaling between browser peers.

Key Features:
- Single live connection per user (last writer wins)
- Room-scoped broadcast excluding the sender
- Direct relay by user id for DMs, friend requests and signaling
- Voice join snapshots for peer discovery
- Timeout-bounded store access that fails open

Architecture:
- Core: Registry, membership, presence, routing and signaling
- Storage: Persistent store interface and SQLite implementation
- WebSockets: Wire codec, connection handles and the server loop
- API: Read-only status endpoints
- Config: Environment-driven configuration
- Infrastructure: Logging and exceptions
"""

__version__ = "1.0.0"
__author__ = "OwnDc Team"

from .core import (
    Connection,
    ConnectionRegistry,
    DispatchResult,
    EventRouter,
    MembershipTracker,
    PresenceNotifier,
    Session,
    SessionState,
    SignalingRelay,
)
from .storage import ChatStore, Message, SQLiteChatStore, User
from .config import RealtimeConfig, RealtimeConfigManager
from .infrastructure.logging import setup_logging, get_logger
from .infrastructure.exceptions import (
    OwnDcRealtimeError,
    ConfigurationError,
    AuthenticationFailure,
    NotAuthorized,
    TargetUnreachable,
    PersistenceUnavailable,
    ProtocolError,
)

__all__ = [
    # Version info
    "__version__",
    "__author__",
    # Core components
    "Connection",
    "ConnectionRegistry",
    "DispatchResult",
    "EventRouter",
    "MembershipTracker",
    "PresenceNotifier",
    "Session",
    "SessionState",
    "SignalingRelay",
    # Storage
    "ChatStore",
    "Message",
    "SQLiteChatStore",
    "User",
    # Configuration
    "RealtimeConfig",
    "RealtimeConfigManager",
    # Infrastructure
    "setup_logging",
    "get_logger",
    "OwnDcRealtimeError",
    "ConfigurationError",
    "AuthenticationFailure",
    "NotAuthorized",
    "TargetUnreachable",
    "PersistenceUnavailable",
    "ProtocolError",
]
