"""
Data models shared by the store and the coordination layer.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

DEFAULT_AVATAR = "default-avatar.png"


@dataclass
class User:
    """A registered user as seen by the coordination layer."""

    id: str
    username: str
    avatar: str = DEFAULT_AVATAR
    status: str = "offline"

    def to_profile(self) -> Dict[str, Any]:
        """Public profile sent to other clients."""
        return {"id": self.id, "username": self.username, "avatar": self.avatar}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "avatar": self.avatar,
            "status": self.status,
        }


@dataclass
class Message:
    """A persisted channel message or direct message."""

    id: str
    content: str
    timestamp: str
    sender_id: str
    sender_username: str
    sender_avatar: str = DEFAULT_AVATAR
    channel_id: Optional[str] = None
    receiver_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "content": self.content,
            "timestamp": self.timestamp,
            "sender_id": self.sender_id,
            "sender_username": self.sender_username,
            "sender_avatar": self.sender_avatar,
        }
        if self.channel_id is not None:
            data["channel_id"] = self.channel_id
        if self.receiver_id is not None:
            data["receiver_id"] = self.receiver_id
        return data
