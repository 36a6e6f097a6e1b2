"""
Friend presence notifications.

On every login and logout the accepted-friend list is recomputed from the
store and filtered to friends that are currently registered; each of them
gets a targeted ``friend-online`` / ``friend-offline`` event. A global
``user-status-change`` event then goes to every open connection.

Callers mutate the connection registry before calling in here, so a friend
reacting to the notification already sees the new state.
"""

import logging
from typing import List

from ..infrastructure.exceptions import PersistenceUnavailable
from ..storage.models import User
from .connection_registry import ConnectionRegistry
from .persistence import GuardedStore
from .types import (
    EV_FRIEND_OFFLINE,
    EV_FRIEND_ONLINE,
    EV_USER_STATUS_CHANGE,
    STATUS_OFFLINE,
    STATUS_ONLINE,
)


class PresenceNotifier:
    """Computes who must hear about a status change and tells them."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        store: GuardedStore,
        logger: logging.Logger,
    ) -> None:
        self.registry = registry
        self.store = store
        self.logger = logger

    async def online_friends(self, user_id: str) -> List[str]:
        """Ids of accepted friends that are registered right now."""
        friends = await self.store.accepted_friends(user_id)
        return [
            friend.id
            for friend in friends
            if friend.id != user_id and self.registry.is_online(friend.id)
        ]

    async def announce_online(self, user: User) -> int:
        return await self._announce(
            user,
            EV_FRIEND_ONLINE,
            {"userId": user.id, "username": user.username, "avatar": user.avatar},
            STATUS_ONLINE,
        )

    async def announce_offline(self, user: User) -> int:
        return await self._announce(
            user,
            EV_FRIEND_OFFLINE,
            {"userId": user.id, "username": user.username},
            STATUS_OFFLINE,
        )

    async def _announce(self, user: User, event: str, payload: dict, status: str) -> int:
        """Fan out to online friends, then emit the global status event."""
        delivered = 0
        try:
            friend_ids = await self.online_friends(user.id)
        except PersistenceUnavailable as e:
            self.logger.warning(f"Skipping {event} fan-out for {user.id}: {e}")
        else:
            delivered = await self.registry.broadcast_to_targets(
                friend_ids, event, payload
            )
            self.logger.debug(f"{event} for {user.id} delivered to {delivered} friends")

        await self.registry.broadcast_all(
            EV_USER_STATUS_CHANGE, {"userId": user.id, "status": status}
        )
        return delivered
