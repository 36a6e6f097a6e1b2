"""
Unit tests for the SQLite chat store.
"""

import pytest

from owndc_realtime.core import EventRouter
from owndc_realtime.infrastructure.exceptions import PersistenceUnavailable
from owndc_realtime.storage import User
from tests.conftest import RecordingConnection


class TestSQLiteChatStore:
    """Test cases for SQLiteChatStore class."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_create_and_fetch_user(self, sqlite_store):
        created = await sqlite_store.create_user("alice")

        by_id = await sqlite_store.get_user_by_id(created.id)
        by_name = await sqlite_store.get_user_by_username("alice")

        assert by_id == User(id=created.id, username="alice")
        assert by_name == by_id
        assert by_id.avatar == "default-avatar.png"
        assert by_id.status == "offline"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_user(self, sqlite_store):
        assert await sqlite_store.get_user_by_id("nobody") is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_duplicate_username_raises_persistence_error(self, sqlite_store):
        await sqlite_store.create_user("alice")

        with pytest.raises(PersistenceUnavailable):
            await sqlite_store.create_user("alice", email="other@localhost")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_set_user_status(self, sqlite_store):
        user = await sqlite_store.create_user("alice")

        await sqlite_store.set_user_status(user.id, "online")

        assert (await sqlite_store.get_user_by_id(user.id)).status == "online"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_accepted_friends_in_both_directions(self, sqlite_store):
        alice = await sqlite_store.create_user("alice")
        bob = await sqlite_store.create_user("bob")
        carol = await sqlite_store.create_user("carol")
        dave = await sqlite_store.create_user("dave")

        await sqlite_store.add_friendship(alice.id, bob.id, status="accepted")
        pending = await sqlite_store.add_friendship(alice.id, carol.id)
        await sqlite_store.add_friendship(dave.id, alice.id, status="accepted")

        friends = await sqlite_store.get_accepted_friends(alice.id)
        assert sorted(f.username for f in friends) == ["bob", "dave"]

        assert await sqlite_store.accept_friendship(pending) is True
        friends = await sqlite_store.get_accepted_friends(alice.id)
        assert sorted(f.username for f in friends) == ["bob", "carol", "dave"]

        assert [f.username for f in await sqlite_store.get_accepted_friends(dave.id)] == ["alice"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_accept_unknown_friendship(self, sqlite_store):
        assert await sqlite_store.accept_friendship("missing") is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_channel_membership(self, sqlite_store):
        owner = await sqlite_store.create_user("owner")
        guest = await sqlite_store.create_user("guest")
        channel_id = await sqlite_store.create_channel("general", owner.id)

        assert await sqlite_store.is_channel_member(channel_id, owner.id) is True
        assert await sqlite_store.is_channel_member(channel_id, guest.id) is False

        await sqlite_store.add_channel_member(channel_id, guest.id)
        await sqlite_store.add_channel_member(channel_id, guest.id)

        assert await sqlite_store.is_channel_member(channel_id, guest.id) is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_insert_message(self, sqlite_store):
        alice = await sqlite_store.create_user("alice")
        channel_id = await sqlite_store.create_channel("general", alice.id)

        message = await sqlite_store.insert_message(channel_id, alice.id, "  hello  ")

        assert message.content == "hello"
        assert message.channel_id == channel_id
        assert message.sender_username == "alice"
        assert message.timestamp
        assert message.to_dict()["channel_id"] == channel_id
        assert "receiver_id" not in message.to_dict()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_insert_direct_message(self, sqlite_store):
        alice = await sqlite_store.create_user("alice")
        bob = await sqlite_store.create_user("bob")

        message = await sqlite_store.insert_direct_message(alice.id, bob.id, "hi")

        assert message.receiver_id == bob.id
        assert message.sender_id == alice.id
        assert message.to_dict()["receiver_id"] == bob.id


class TestRouterOverSQLite:
    """The router wired to a real database."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_login_logout_updates_status(self, sqlite_store, logger):
        alice = await sqlite_store.create_user("alice")
        bob = await sqlite_store.create_user("bob")
        await sqlite_store.add_friendship(alice.id, bob.id, status="accepted")
        router = EventRouter.create(sqlite_store, logger)

        bob_connection = RecordingConnection()
        router.connect(bob_connection)
        await router.dispatch(bob_connection, "authenticate", bob.id)
        alice_connection = RecordingConnection()
        router.connect(alice_connection)
        await router.dispatch(alice_connection, "authenticate", {"userId": alice.id})

        assert (await sqlite_store.get_user_by_id(alice.id)).status == "online"
        assert bob_connection.of("friend-online") == [
            {"userId": alice.id, "username": "alice", "avatar": "default-avatar.png"}
        ]

        await router.disconnect(alice_connection)

        assert (await sqlite_store.get_user_by_id(alice.id)).status == "offline"
        assert bob_connection.of("friend-offline") == [
            {"userId": alice.id, "username": "alice"}
        ]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_voice_join_without_channel_members_row(self, sqlite_store, logger):
        alice = await sqlite_store.create_user("alice")
        bob = await sqlite_store.create_user("bob")
        lobby = await sqlite_store.create_channel("lobby", alice.id, "voice")
        router = EventRouter.create(sqlite_store, logger)

        alice_connection = RecordingConnection()
        router.connect(alice_connection)
        await router.dispatch(alice_connection, "authenticate", alice.id)
        bob_connection = RecordingConnection()
        router.connect(bob_connection)
        await router.dispatch(bob_connection, "authenticate", bob.id)
        await router.dispatch(alice_connection, "join-voice", lobby)

        result = await router.dispatch(bob_connection, "join-voice", {"channelId": lobby})

        assert await sqlite_store.is_channel_member(lobby, bob.id) is False
        assert result.ok
        assert router.voice_rooms.members_of(lobby) == {alice.id, bob.id}
        assert alice_connection.of("user-joined-voice") == [
            {
                "userId": bob.id,
                "username": "bob",
                "avatar": "default-avatar.png",
                "channelId": lobby,
            }
        ]
        assert bob_connection.of("voice-channel-users") == [
            {
                "channelId": lobby,
                "users": [
                    {"id": alice.id, "username": "alice", "avatar": "default-avatar.png"}
                ],
            }
        ]
