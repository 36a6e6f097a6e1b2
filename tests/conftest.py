"""
Pytest configuration and shared fixtures for the OwnDc realtime test suite.

The coordination layer is exercised through recording connections and an
in-memory store, so no sockets or database files are needed outside the
storage tests.
"""

import asyncio
import dataclasses
import logging
from collections import defaultdict
from typing import Any, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from owndc_realtime.core import Connection, EventRouter
from owndc_realtime.core.types import EV_AUTHENTICATE, FRIENDSHIP_ACCEPTED
from owndc_realtime.storage import ChatStore, Message, SQLiteChatStore, User


class RecordingConnection(Connection):
    """Connection double that records every event pushed to it."""

    def __init__(self, name: str = "") -> None:
        super().__init__()
        self.name = name
        self.events: List[tuple] = []

    async def send(self, event: str, payload: Any) -> None:
        self.events.append((event, payload))

    def of(self, event: str) -> List[Any]:
        """Payloads of every recorded ``event``."""
        return [payload for name, payload in self.events if name == event]

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def clear(self) -> None:
        self.events.clear()


class FakeChatStore(ChatStore):
    """In-memory store with switchable failures."""

    def __init__(self) -> None:
        self.users = {}
        self.friendships = []
        self.channel_members = defaultdict(set)
        self.status_updates = []
        self.fail = set()
        self.hang = set()

    async def _check(self, operation: str) -> None:
        if operation in self.hang:
            await asyncio.Event().wait()
        if operation in self.fail:
            raise RuntimeError(f"{operation} unavailable")

    def add_user(self, user_id: str, username: str, avatar: str = "default-avatar.png") -> User:
        user = User(id=user_id, username=username, avatar=avatar)
        self.users[user_id] = user
        return user

    def befriend(self, a: str, b: str, status: str = FRIENDSHIP_ACCEPTED) -> None:
        self.friendships.append((a, b, status))

    def add_member(self, channel_id: str, *user_ids: str) -> None:
        self.channel_members[channel_id].update(user_ids)

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        await self._check("get_user_by_id")
        user = self.users.get(user_id)
        return dataclasses.replace(user) if user else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        await self._check("get_user_by_username")
        for user in self.users.values():
            if user.username == username:
                return dataclasses.replace(user)
        return None

    async def set_user_status(self, user_id: str, status: str) -> None:
        await self._check("set_user_status")
        self.status_updates.append((user_id, status))
        if user_id in self.users:
            self.users[user_id].status = status

    async def get_accepted_friends(self, user_id: str) -> List[User]:
        await self._check("get_accepted_friends")
        friends = []
        for a, b, status in self.friendships:
            if status != FRIENDSHIP_ACCEPTED:
                continue
            if a == user_id:
                friends.append(dataclasses.replace(self.users[b]))
            elif b == user_id:
                friends.append(dataclasses.replace(self.users[a]))
        return friends

    async def is_channel_member(self, channel_id: str, user_id: str) -> bool:
        await self._check("is_channel_member")
        return user_id in self.channel_members.get(channel_id, ())

    async def insert_message(self, channel_id: str, sender_id: str, content: str) -> Message:
        raise NotImplementedError

    async def insert_direct_message(self, sender_id: str, receiver_id: str, content: str) -> Message:
        raise NotImplementedError


@pytest.fixture
def logger():
    return logging.getLogger("tests.owndc_realtime")


@pytest.fixture
def store():
    """Store seeded with alice, bob, carol and dave.

    alice-bob and alice-dave are accepted friends, alice-carol is pending.
    Everyone except dave belongs to 'general'; only alice and bob belong
    to 'random'.
    """
    fake = FakeChatStore()
    fake.add_user("alice", "Alice", "alice.png")
    fake.add_user("bob", "Bob", "bob.png")
    fake.add_user("carol", "Carol")
    fake.add_user("dave", "Dave")
    fake.befriend("alice", "bob")
    fake.befriend("dave", "alice")
    fake.befriend("alice", "carol", status="pending")
    fake.add_member("general", "alice", "bob", "carol")
    fake.add_member("random", "alice", "bob")
    return fake


@pytest.fixture
def router(store, logger):
    """Fully wired router over the fake store."""
    return EventRouter.create(store, logger, store_timeout=0.2)


@pytest.fixture
def sqlite_store(tmp_path):
    """Real SQLite store in a temporary directory."""
    return SQLiteChatStore(str(tmp_path / "chat.sqlite"))


async def _answered_ping(*args):
    pong_waiter = asyncio.get_running_loop().create_future()
    pong_waiter.set_result(0.0)
    return pong_waiter


@pytest.fixture
def mock_websocket():
    """Create a mock WebSocket connection whose pings are answered."""
    websocket = MagicMock()
    websocket.remote_address = ("127.0.0.1", 12345)
    websocket.send = AsyncMock()
    websocket.close = AsyncMock()
    websocket.ping = AsyncMock(side_effect=_answered_ping)
    return websocket


async def connect_as(router: EventRouter, user_id: str) -> RecordingConnection:
    """Open a connection, authenticate it and clear its recorded events."""
    connection = RecordingConnection(user_id)
    router.connect(connection)
    result = await router.dispatch(connection, EV_AUTHENTICATE, user_id)
    assert result.ok, result
    connection.clear()
    return connection


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
