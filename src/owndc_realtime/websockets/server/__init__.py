"""
WebSocket server for the OwnDc realtime layer.
"""

from .chat_server import ChatRelayServer

__all__ = [
    "ChatRelayServer",
]
