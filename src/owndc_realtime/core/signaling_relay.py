"""
Voice-room coordination and WebRTC signaling relay.

The relay never touches media and never looks inside signaling blobs: an
offer, answer or ICE candidate is forwarded as-is to the connection of the
target user, tagged with the sender's identity.

Joining a voice room is asymmetric. Everyone already in the room is told
about the newcomer (``user-joined-voice``), while the newcomer alone gets a
snapshot of the current participants (``voice-channel-users``) so it can
open a peer connection to each of them.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List

from ..infrastructure.exceptions import TargetUnreachable
from .connection_registry import ConnectionRegistry
from .dispatch import DispatchResult, as_mapping, coerce_id
from .membership_tracker import MembershipTracker
from .persistence import GuardedStore
from .session import Session
from .types import (
    DROP_MALFORMED,
    EV_USER_JOINED_VOICE,
    EV_USER_LEFT_VOICE,
    EV_VOICE_CHANNEL_USERS,
    SIGNAL_KINDS,
)


class SignalingRelay:
    """Voice membership plus store-and-forward of signaling messages."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        voice_rooms: MembershipTracker,
        store: GuardedStore,
        logger: logging.Logger,
    ) -> None:
        self.registry = registry
        self.voice_rooms = voice_rooms
        self.store = store
        self.logger = logger

    async def join_voice(self, session: Session, channel_id: str) -> DispatchResult:
        """Join a voice room, announce it, and send the joiner a snapshot."""
        user = session.user
        connection = session.connection

        previous = session.current_voice_channel
        if previous is not None and previous != channel_id:
            await self.leave_voice(session, previous)

        existing = sorted(self.voice_rooms.members_of(channel_id) - {user.id})
        added = self.voice_rooms.join_room(channel_id, user.id, connection)
        session.current_voice_channel = channel_id

        delivered = 0
        if added:
            delivered = await self.voice_rooms.broadcast(
                channel_id,
                EV_USER_JOINED_VOICE,
                {
                    "userId": user.id,
                    "username": user.username,
                    "avatar": user.avatar,
                    "channelId": channel_id,
                },
                exclude=connection,
            )

        users = await self._resolve_participants(channel_id, existing)
        await connection.send(
            EV_VOICE_CHANNEL_USERS, {"channelId": channel_id, "users": users}
        )
        self.logger.info(
            f"{user.id} joined voice {channel_id} with {len(users)} participants"
        )
        return DispatchResult(delivered=delivered + 1)

    async def _resolve_participants(
        self, channel_id: str, user_ids: Iterable[str]
    ) -> List[Dict[str, Any]]:
        """Profiles of participants still in the room; failed lookups are omitted."""
        user_ids = list(user_ids)
        users = await asyncio.gather(*(self.store.find_user(uid) for uid in user_ids))
        return [
            user.to_profile()
            for user in users
            if user is not None and self.voice_rooms.is_member(channel_id, user.id)
        ]

    async def leave_voice(self, session: Session, channel_id: str) -> DispatchResult:
        """Leave a voice room and tell the remaining participants."""
        user = session.user
        connection = session.connection

        removed = self.voice_rooms.leave_room(channel_id, user.id, connection)
        if session.current_voice_channel == channel_id:
            session.current_voice_channel = None

        if not removed:
            return DispatchResult()

        delivered = await self.voice_rooms.broadcast(
            channel_id,
            EV_USER_LEFT_VOICE,
            {"userId": user.id, "username": user.username, "channelId": channel_id},
            exclude=connection,
        )
        self.logger.info(f"{user.id} left voice {channel_id}")
        return DispatchResult(delivered=delivered)

    async def relay_signal(self, session: Session, kind: str, data: Any) -> DispatchResult:
        """
        Forward an offer, answer or ICE candidate to ``targetUserId``.

        The blob is taken from ``payload`` or from the kind-specific key the
        browser client uses (``offer``, ``answer``, ``candidate``) and is
        re-emitted under both.

        Raises:
            TargetUnreachable: If the target user has no live connection
        """
        data = as_mapping(data)
        target_user_id = coerce_id(data, "targetUserId") if data else None
        if target_user_id is None:
            return DispatchResult.drop(DROP_MALFORMED)

        blob_key = SIGNAL_KINDS[kind]
        blob = data["payload"] if "payload" in data else data.get(blob_key)

        target = self.registry.lookup(target_user_id)
        if target is None:
            raise TargetUnreachable(f"{kind} target {target_user_id} is not connected")

        await target.send(
            kind,
            {
                "userId": session.user_id,
                "username": session.user.username,
                "payload": blob,
                blob_key: blob,
            },
        )
        return DispatchResult(delivered=1)
