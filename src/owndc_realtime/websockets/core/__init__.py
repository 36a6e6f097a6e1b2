"""
Transport-level building blocks: the wire codec and the WebSocket
connection handle.
"""

from .connection import WebSocketConnection
from .protocol import decode_event, encode_event

__all__ = [
    "WebSocketConnection",
    "decode_event",
    "encode_event",
]
