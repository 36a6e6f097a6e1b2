"""
Timeout-bounded access to the chat store from the event path.

A stalled query must never hang a connection: each call is bounded by
``timeout`` seconds and, on timeout or error, fails open to the neutral
result for that call (absent user, not a member, no friends).
"""

import asyncio
import logging
from typing import Any, Awaitable, List, Optional

from ..infrastructure.exceptions import PersistenceUnavailable
from ..storage.base import ChatStore
from ..storage.models import User


class GuardedStore:
    """Wraps a :class:`ChatStore` with timeouts and failure conversion."""

    def __init__(
        self, store: ChatStore, logger: logging.Logger, timeout: float = 5.0
    ) -> None:
        self.store = store
        self.logger = logger
        self.timeout = timeout

    async def _call(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        """Await a store call, raising PersistenceUnavailable on any failure."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            self.logger.error(f"Store call {operation} timed out after {self.timeout}s")
            raise PersistenceUnavailable(f"{operation} timed out") from e
        except PersistenceUnavailable:
            raise
        except Exception as e:
            self.logger.error(f"Store call {operation} failed: {e}", exc_info=True)
            raise PersistenceUnavailable(f"{operation} failed: {e}") from e

    async def get_user(self, user_id: str) -> Optional[User]:
        """Strict lookup: propagates PersistenceUnavailable to the caller."""
        return await self._call("get_user_by_id", self.store.get_user_by_id(user_id))

    async def find_user(self, user_id: str) -> Optional[User]:
        """Lenient lookup: None when absent or when the store fails."""
        try:
            return await self.get_user(user_id)
        except PersistenceUnavailable:
            return None

    async def set_status(self, user_id: str, status: str) -> None:
        await self._call("set_user_status", self.store.set_user_status(user_id, status))

    async def accepted_friends(self, user_id: str) -> List[User]:
        return await self._call(
            "get_accepted_friends", self.store.get_accepted_friends(user_id)
        )

    async def is_member(self, channel_id: str, user_id: str) -> bool:
        try:
            return bool(
                await self._call(
                    "is_channel_member",
                    self.store.is_channel_member(channel_id, user_id),
                )
            )
        except PersistenceUnavailable:
            return False
