"""
Connection registry for the realtime server.

Single source of truth for "is user X online and reachable": maps each
user id to its one live connection, and each open connection to its
session. All mutation happens on the event loop, so no locking is needed.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from .session import Connection, Session


class ConnectionRegistry:
    """User id -> connection map plus the per-connection session table."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)

        # Map user_id -> live connection (last writer wins)
        self.clients: Dict[str, Connection] = {}

        # Map connection -> session, for every open connection
        self.sessions: Dict[Connection, Session] = {}

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def open_session(self, connection: Connection) -> Session:
        """Create the unauthenticated session for a new connection."""
        session = self.sessions.get(connection)
        if session is None:
            session = Session(connection=connection)
            self.sessions[connection] = session
        return session

    def get_session(self, connection: Connection) -> Optional[Session]:
        return self.sessions.get(connection)

    def close_session(self, connection: Connection) -> Optional[Session]:
        session = self.sessions.pop(connection, None)
        if session is not None:
            session.disconnected = True
        return session

    # ------------------------------------------------------------------
    # User -> connection map
    # ------------------------------------------------------------------

    def register(self, user_id: str, connection: Connection) -> None:
        """Bind ``user_id`` to ``connection``, replacing any prior binding."""
        previous = self.clients.get(user_id)
        if previous is not None and previous is not connection:
            self.logger.info(f"User {user_id} re-registered from {connection!r}")
        self.clients[user_id] = connection

    def lookup(self, user_id: str) -> Optional[Connection]:
        return self.clients.get(user_id)

    def deregister(self, user_id: str, connection: Optional[Connection] = None) -> bool:
        """
        Remove the entry for ``user_id``.

        When ``connection`` is given the entry is only removed if it still
        points at that connection, so a teardown that races a reconnect
        leaves the newer connection registered.

        Returns:
            True if an entry was removed.
        """
        current = self.clients.get(user_id)
        if current is None:
            return False
        if connection is not None and current is not connection:
            self.logger.debug(
                f"Skipping deregister of {user_id}: now bound to {current!r}"
            )
            return False
        del self.clients[user_id]
        return True

    def is_online(self, user_id: str) -> bool:
        return user_id in self.clients

    def online_user_ids(self) -> List[str]:
        return list(self.clients)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def send_to_user(self, user_id: str, event: str, payload: Any) -> bool:
        """Deliver to one user; False when the user is not reachable."""
        connection = self.lookup(user_id)
        if connection is None:
            return False
        await connection.send(event, payload)
        return True

    async def broadcast_to_targets(
        self, user_ids: Iterable[str], event: str, payload: Any
    ) -> int:
        """
        Best-effort delivery to each listed user.

        Offline ids are skipped silently. Returns the number of connections
        the event was handed to.
        """
        targets = []
        for user_id in dict.fromkeys(user_ids):
            connection = self.lookup(user_id)
            if connection is not None:
                targets.append(connection)

        return await self._deliver(targets, event, payload)

    async def broadcast_all(self, event: str, payload: Any) -> int:
        """Deliver to every open connection, authenticated or not."""
        return await self._deliver(list(self.sessions), event, payload)

    async def _deliver(
        self, targets: List[Connection], event: str, payload: Any
    ) -> int:
        if not targets:
            return 0

        results = await asyncio.gather(
            *(connection.send(event, payload) for connection in targets),
            return_exceptions=True,
        )

        delivered = 0
        for connection, result in zip(targets, results):
            if isinstance(result, Exception):
                self.logger.error(f"Error sending {event} to {connection!r}: {result}")
            else:
                delivered += 1
        return delivered

    def get_stats(self) -> Dict[str, int]:
        """Get registry statistics."""
        return {
            "open_connections": len(self.sessions),
            "online_users": len(self.clients),
            "authenticated_sessions": sum(
                1 for s in self.sessions.values() if s.is_authenticated
            ),
        }
