"""
Message processing modules for the WebSocket server.
"""

from .event_message import EventMessageHandler
from .utils import ConnectionUtils

__all__ = [
    "EventMessageHandler",
    "ConnectionUtils",
]
