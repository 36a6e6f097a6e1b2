"""
Persistent store interface consumed by the coordination layer.

Every call is a coroutine and may fail. Callers on the event path go
through :class:`~owndc_realtime.core.persistence.GuardedStore`, which bounds
each call with a timeout and converts failures into "absent" results.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .models import Message, User


class ChatStore(ABC):
    """Asynchronous access to users, friendships, channels and messages."""

    @abstractmethod
    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[User]:
        ...

    @abstractmethod
    async def set_user_status(self, user_id: str, status: str) -> None:
        ...

    @abstractmethod
    async def get_accepted_friends(self, user_id: str) -> List[User]:
        """Users sharing an accepted friendship with ``user_id``."""

    @abstractmethod
    async def is_channel_member(self, channel_id: str, user_id: str) -> bool:
        ...

    @abstractmethod
    async def insert_message(
        self, channel_id: str, sender_id: str, content: str
    ) -> Message:
        ...

    @abstractmethod
    async def insert_direct_message(
        self, sender_id: str, receiver_id: str, content: str
    ) -> Message:
        ...

    async def close(self) -> None:
        """Release any resources held by the store."""
