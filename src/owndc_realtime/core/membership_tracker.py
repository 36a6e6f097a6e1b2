"""
Room membership tracking.

One tracker instance exists per room kind: text channels (who receives
live broadcast events) and voice rooms (the authoritative call roster).
A room keeps both its member user ids and the connections subscribed to
its broadcasts; rooms are dropped as soon as they become empty.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Set

from .session import Connection


class MembershipTracker:
    """Room id -> members, plus room id -> subscribed connections."""

    def __init__(self, kind: str = "text", logger: Optional[logging.Logger] = None) -> None:
        self.kind = kind
        self.logger = logger or logging.getLogger(__name__)

        # Map room_id -> set of member user ids
        self.rooms: Dict[str, Set[str]] = defaultdict(set)

        # Map room_id -> set of subscribed connections
        self.subscribers: Dict[str, Set[Connection]] = defaultdict(set)

    def join_room(self, room_id: str, user_id: str, connection: Connection) -> bool:
        """
        Add ``user_id`` to the room and subscribe ``connection``.

        Returns:
            True if the user was not a member before.
        """
        members = self.rooms[room_id]
        added = user_id not in members
        members.add(user_id)
        self.subscribers[room_id].add(connection)
        if added:
            self.logger.debug(f"{user_id} joined {self.kind} room {room_id}")
        return added

    def leave_room(self, room_id: str, user_id: str, connection: Connection) -> bool:
        """
        Remove ``user_id`` from the room and unsubscribe ``connection``.

        Returns:
            True if the user was a member.
        """
        if room_id not in self.rooms and room_id not in self.subscribers:
            return False

        members = self.rooms.get(room_id, set())
        removed = user_id in members
        members.discard(user_id)
        self.subscribers.get(room_id, set()).discard(connection)

        if not members:
            self.rooms.pop(room_id, None)
        if not self.subscribers.get(room_id):
            self.subscribers.pop(room_id, None)

        if removed:
            self.logger.debug(f"{user_id} left {self.kind} room {room_id}")
        return removed

    def unsubscribe(self, room_id: str, connection: Connection) -> None:
        """Stop broadcasting to ``connection`` without touching membership."""
        subscribers = self.subscribers.get(room_id)
        if subscribers is None:
            return
        subscribers.discard(connection)
        if not subscribers:
            self.subscribers.pop(room_id, None)

    def members_of(self, room_id: str) -> Set[str]:
        """Copy of the member set; empty for unknown rooms."""
        return set(self.rooms.get(room_id, ()))

    def is_member(self, room_id: str, user_id: str) -> bool:
        return user_id in self.rooms.get(room_id, ())

    def rooms_of(self, user_id: str) -> List[str]:
        return [room_id for room_id, members in self.rooms.items() if user_id in members]

    async def broadcast(
        self,
        room_id: str,
        event: str,
        payload: Any,
        exclude: Optional[Connection] = None,
    ) -> int:
        """
        Send an event to every subscriber of the room except ``exclude``.

        Returns:
            The number of connections the event was handed to.
        """
        targets = [
            connection
            for connection in self.subscribers.get(room_id, ())
            if connection is not exclude
        ]
        if not targets:
            return 0

        results = await asyncio.gather(
            *(connection.send(event, payload) for connection in targets),
            return_exceptions=True,
        )

        delivered = 0
        for connection, result in zip(targets, results):
            if isinstance(result, Exception):
                self.logger.error(
                    f"Error broadcasting {event} in {room_id} to {connection!r}: {result}"
                )
            else:
                delivered += 1
        return delivered

    def get_stats(self) -> Dict[str, int]:
        return {
            f"{self.kind}_rooms": len(self.rooms),
            f"{self.kind}_members": sum(len(m) for m in self.rooms.values()),
        }
