"""
Connection handles and per-connection session state.

The coordination layer only ever talks to a :class:`Connection`; the
WebSocket adapter in ``owndc_realtime.websockets`` is one implementation,
test doubles are another.
"""

import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..storage.models import User

_connection_ids = itertools.count(1)


class Connection(ABC):
    """Opaque handle used to push events to one live client."""

    def __init__(self) -> None:
        self.connection_id = next(_connection_ids)

    @abstractmethod
    async def send(self, event: str, payload: Any) -> None:
        """Deliver one event. Must not raise for a closed peer."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} #{self.connection_id}>"


class SessionState(Enum):
    """Lifecycle of a connection's session."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    IN_CHANNEL = "in_channel"
    DISCONNECTED = "disconnected"


@dataclass(eq=False)
class Session:
    """Authenticated state bound to one live connection."""

    connection: Connection
    user: Optional[User] = None
    current_channel: Optional[str] = None
    current_voice_channel: Optional[str] = None
    disconnected: bool = False

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and not self.disconnected

    @property
    def state(self) -> SessionState:
        if self.disconnected:
            return SessionState.DISCONNECTED
        if self.user is None:
            return SessionState.UNAUTHENTICATED
        if self.current_channel is not None:
            return SessionState.IN_CHANNEL
        return SessionState.AUTHENTICATED

    def identity(self) -> dict:
        """``{userId, username}`` fragment used in room notices."""
        return {
            "userId": self.user_id,
            "username": self.user.username if self.user else None,
        }
