"""
Persistent store access for the realtime server.
"""

from .models import User, Message
from .base import ChatStore
from .database import SQLiteChatStore

__all__ = [
    "User",
    "Message",
    "ChatStore",
    "SQLiteChatStore",
]
