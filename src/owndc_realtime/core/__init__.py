"""
Core components of the OwnDc realtime server.

This package contains the session and presence coordination layer:
connection registry, room membership, friend presence, event routing and
WebRTC signaling relay.
"""

from .session import Connection, Session, SessionState
from .dispatch import DispatchResult
from .connection_registry import ConnectionRegistry
from .membership_tracker import MembershipTracker
from .persistence import GuardedStore
from .presence_notifier import PresenceNotifier
from .signaling_relay import SignalingRelay
from .event_router import EventRouter

__all__ = [
    "Connection",
    "Session",
    "SessionState",
    "DispatchResult",
    "ConnectionRegistry",
    "MembershipTracker",
    "GuardedStore",
    "PresenceNotifier",
    "SignalingRelay",
    "EventRouter",
]
