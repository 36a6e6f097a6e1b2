"""
Event router: the per-connection state machine of the realtime server.

Each inbound event is validated against the sender's session and fanned
out to the right connections: a room minus the sender, a single user, or
nobody. Handlers return a :class:`DispatchResult` and never raise into the
transport; only ``authenticate`` has a user-visible failure.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from ..infrastructure.exceptions import (
    AuthenticationFailure,
    NotAuthorized,
    PersistenceUnavailable,
    TargetUnreachable,
)
from ..infrastructure.logging import get_logger
from ..storage.base import ChatStore
from ..storage.models import User
from .connection_registry import ConnectionRegistry
from .dispatch import DispatchResult, as_mapping, coerce_id
from .membership_tracker import MembershipTracker
from .persistence import GuardedStore
from .presence_notifier import PresenceNotifier
from .session import Connection, Session
from .signaling_relay import SignalingRelay
from .types import (
    DROP_AUTH_FAILED,
    DROP_MALFORMED,
    DROP_NOT_AUTHORIZED,
    DROP_PERSISTENCE,
    DROP_UNAUTHENTICATED,
    DROP_UNKNOWN_EVENT,
    DROP_UNREACHABLE,
    EV_ANSWER,
    EV_AUTHENTICATE,
    EV_AUTHENTICATED,
    EV_FRIEND_REQUEST,
    EV_FRIEND_REQUEST_ACCEPTED,
    EV_FRIEND_REQUEST_ACCEPTED_BY,
    EV_FRIEND_REQUEST_RECEIVED,
    EV_ICE_CANDIDATE,
    EV_JOIN_CHANNEL,
    EV_JOIN_VOICE,
    EV_LEAVE_CHANNEL,
    EV_LEAVE_VOICE,
    EV_NEW_DM,
    EV_NEW_MESSAGE,
    EV_OFFER,
    EV_SEND_DM,
    EV_SEND_MESSAGE,
    EV_TYPING,
    EV_USER_JOINED_CHANNEL,
    EV_USER_LEFT_CHANNEL,
    EV_USER_TYPING,
    STATUS_OFFLINE,
    STATUS_ONLINE,
)

Handler = Callable[[Session, Any], Awaitable[DispatchResult]]


class EventRouter:
    """Validates inbound events and routes them to their targets."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        text_rooms: MembershipTracker,
        voice_rooms: MembershipTracker,
        store: GuardedStore,
        presence: PresenceNotifier,
        signaling: SignalingRelay,
        logger: logging.Logger,
        enforce_channel_membership: bool = False,
    ) -> None:
        self.registry = registry
        self.text_rooms = text_rooms
        self.voice_rooms = voice_rooms
        self.store = store
        self.presence = presence
        self.signaling = signaling
        self.logger = logger
        self.enforce_channel_membership = enforce_channel_membership

        self._handlers: Dict[str, Handler] = {
            EV_JOIN_CHANNEL: self.join_channel,
            EV_LEAVE_CHANNEL: self.leave_channel,
            EV_SEND_MESSAGE: self.send_message,
            EV_TYPING: self.typing,
            EV_SEND_DM: self.send_direct_message,
            EV_JOIN_VOICE: self.join_voice,
            EV_LEAVE_VOICE: self.leave_voice,
            EV_OFFER: self._signal_handler(EV_OFFER),
            EV_ANSWER: self._signal_handler(EV_ANSWER),
            EV_ICE_CANDIDATE: self._signal_handler(EV_ICE_CANDIDATE),
            EV_FRIEND_REQUEST: self.friend_request,
            EV_FRIEND_REQUEST_ACCEPTED: self.friend_request_accepted,
        }

    @classmethod
    def create(
        cls,
        store: ChatStore,
        logger: logging.Logger,
        store_timeout: float = 5.0,
        enforce_channel_membership: bool = False,
    ) -> "EventRouter":
        """Wire a router with a fresh registry, trackers, notifier and relay."""
        guarded = GuardedStore(store, logger, timeout=store_timeout)
        registry = ConnectionRegistry(logger)
        voice_rooms = MembershipTracker("voice", logger)
        return cls(
            registry,
            MembershipTracker("text", logger),
            voice_rooms,
            guarded,
            PresenceNotifier(registry, guarded, get_logger("presence_notifier")),
            SignalingRelay(registry, voice_rooms, guarded, get_logger("signaling_relay")),
            logger,
            enforce_channel_membership=enforce_channel_membership,
        )

    @property
    def events(self):
        """Every inbound event name this router accepts."""
        return [EV_AUTHENTICATE, *self._handlers]

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self, connection: Connection) -> Session:
        """Open the unauthenticated session for a new connection."""
        return self.registry.open_session(connection)

    async def dispatch(
        self, connection: Connection, event: str, payload: Any = None
    ) -> DispatchResult:
        """Handle one inbound event from ``connection``."""
        session = self.registry.get_session(connection)
        if session is None or session.disconnected:
            return DispatchResult.drop(DROP_UNAUTHENTICATED)

        if event == EV_AUTHENTICATE:
            handler = self.authenticate
        else:
            handler = self._handlers.get(event)
            if handler is None:
                self.logger.warning(f"Unknown event type: {event}")
                return DispatchResult.drop(DROP_UNKNOWN_EVENT)
            if not session.is_authenticated:
                self.logger.debug(f"Dropping {event} from unauthenticated {connection!r}")
                return DispatchResult.drop(DROP_UNAUTHENTICATED)

        try:
            return await handler(session, payload)
        except NotAuthorized as e:
            self.logger.debug(f"Dropping {event}: {e}")
            return DispatchResult.drop(DROP_NOT_AUTHORIZED)
        except TargetUnreachable as e:
            self.logger.debug(f"Dropping {event} from {session.user_id}: {e}")
            return DispatchResult.drop(DROP_UNREACHABLE)
        except PersistenceUnavailable as e:
            self.logger.warning(f"Dropping {event} from {session.user_id}: {e}")
            return DispatchResult.drop(DROP_PERSISTENCE)
        except Exception as e:
            self.logger.error(f"Error handling {event} from {connection!r}: {e}", exc_info=True)
            return DispatchResult.failed(str(e))

    async def disconnect(self, connection: Connection) -> DispatchResult:
        """Tear down a connection's session. Safe to call more than once."""
        session = self.registry.get_session(connection)
        if session is None:
            return DispatchResult()

        delivered = 0
        try:
            if session.user is not None:
                delivered = await self._release_identity(session)
        except Exception as e:
            self.logger.error(f"Error tearing down {connection!r}: {e}", exc_info=True)
        finally:
            self.registry.close_session(connection)

        return DispatchResult(delivered=delivered)

    async def _release_identity(self, session: Session) -> int:
        """
        Leave every room, go offline and tell friends.

        Status and presence are only touched when this connection still
        owns the user's registry entry; a superseded connection leaves the
        newer one untouched.
        """
        user = session.user
        connection = session.connection
        delivered = 0

        current = self.registry.lookup(user.id)
        owns_entry = current is None or current is connection
        newer = None if owns_entry else self.registry.get_session(current)

        voice_channel = session.current_voice_channel
        if voice_channel is not None:
            if newer is not None and newer.current_voice_channel == voice_channel:
                self.voice_rooms.unsubscribe(voice_channel, connection)
                session.current_voice_channel = None
            else:
                result = await self.signaling.leave_voice(session, voice_channel)
                delivered += result.delivered

        channel = session.current_channel
        if channel is not None:
            if newer is not None and newer.current_channel == channel:
                self.text_rooms.unsubscribe(channel, connection)
                session.current_channel = None
            else:
                delivered += (await self._leave_text(session, channel)).delivered

        if owns_entry:
            self.registry.deregister(user.id, connection)
            try:
                await self.store.set_status(user.id, STATUS_OFFLINE)
            except PersistenceUnavailable as e:
                self.logger.warning(f"Could not mark {user.id} offline: {e}")
            delivered += await self.presence.announce_offline(user)
            self.logger.info(f"User {user.id} went offline")

        session.user = None
        return delivered

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def _resolve_user(self, payload: Any) -> User:
        user_id = coerce_id(payload, "userId")
        if user_id is None:
            raise AuthenticationFailure("Invalid user id")

        try:
            user = await self.store.get_user(user_id)
        except PersistenceUnavailable as e:
            raise AuthenticationFailure("Authentication failed") from e
        if user is None:
            self.logger.info(f"Authentication failed for unknown user {user_id}")
            raise AuthenticationFailure("User not found")
        return user

    async def authenticate(self, session: Session, payload: Any) -> DispatchResult:
        connection = session.connection
        try:
            user = await self._resolve_user(payload)
        except AuthenticationFailure as e:
            return await self._reject(connection, str(e))

        if session.user is not None and session.user.id != user.id:
            await self._release_identity(session)

        previous = self.registry.lookup(user.id)
        self.registry.register(user.id, connection)
        try:
            await self.store.set_status(user.id, STATUS_ONLINE)
        except PersistenceUnavailable:
            if previous is not None:
                self.registry.register(user.id, previous)
            else:
                self.registry.deregister(user.id, connection)
            return await self._reject(connection, "Authentication failed")

        user.status = STATUS_ONLINE
        session.user = user
        await connection.send(EV_AUTHENTICATED, {"success": True, "user": user.to_dict()})
        self.logger.info(f"User {user.id} ({user.username}) authenticated")

        delivered = await self.presence.announce_online(user)
        return DispatchResult(delivered=delivered + 1)

    async def _reject(self, connection: Connection, error: str) -> DispatchResult:
        await connection.send(EV_AUTHENTICATED, {"success": False, "error": error})
        return DispatchResult.drop(DROP_AUTH_FAILED)

    # ------------------------------------------------------------------
    # Text channels
    # ------------------------------------------------------------------

    async def _require_member(self, session: Session, channel_id: str) -> None:
        """Raise NotAuthorized unless the sender belongs to ``channel_id``."""
        if not self.enforce_channel_membership:
            return
        if not await self.store.is_member(channel_id, session.user_id):
            raise NotAuthorized(f"{session.user_id} is not a member of {channel_id}")

    async def join_channel(self, session: Session, payload: Any) -> DispatchResult:
        channel_id = coerce_id(payload, "channelId")
        if channel_id is None:
            return DispatchResult.drop(DROP_MALFORMED)

        await self._require_member(session, channel_id)

        delivered = 0
        previous = session.current_channel
        if previous is not None and previous != channel_id:
            delivered += (await self._leave_text(session, previous)).delivered

        self.text_rooms.join_room(channel_id, session.user_id, session.connection)
        session.current_channel = channel_id

        delivered += await self.text_rooms.broadcast(
            channel_id,
            EV_USER_JOINED_CHANNEL,
            {**session.identity(), "channelId": channel_id},
            exclude=session.connection,
        )
        return DispatchResult(delivered=delivered)

    async def leave_channel(self, session: Session, payload: Any) -> DispatchResult:
        channel_id = coerce_id(payload, "channelId")
        if channel_id is None:
            return DispatchResult.drop(DROP_MALFORMED)
        return await self._leave_text(session, channel_id)

    async def _leave_text(self, session: Session, channel_id: str) -> DispatchResult:
        removed = self.text_rooms.leave_room(
            channel_id, session.user_id, session.connection
        )
        if session.current_channel == channel_id:
            session.current_channel = None
        if not removed:
            return DispatchResult()

        delivered = await self.text_rooms.broadcast(
            channel_id,
            EV_USER_LEFT_CHANNEL,
            {**session.identity(), "channelId": channel_id},
            exclude=session.connection,
        )
        return DispatchResult(delivered=delivered)

    async def send_message(self, session: Session, payload: Any) -> DispatchResult:
        data = as_mapping(payload)
        channel_id = coerce_id(data, "channelId") if data else None
        if channel_id is None:
            return DispatchResult.drop(DROP_MALFORMED)

        user = session.user
        delivered = await self.text_rooms.broadcast(
            channel_id,
            EV_NEW_MESSAGE,
            {
                "id": data.get("messageId"),
                "channel_id": channel_id,
                "content": data.get("content"),
                "timestamp": data.get("timestamp"),
                "sender_id": user.id,
                "sender_username": user.username,
                "sender_avatar": user.avatar,
            },
            exclude=session.connection,
        )
        return DispatchResult(delivered=delivered)

    async def typing(self, session: Session, payload: Any) -> DispatchResult:
        data = as_mapping(payload)
        channel_id = coerce_id(data, "channelId") if data else None
        if channel_id is None:
            return DispatchResult.drop(DROP_MALFORMED)

        delivered = await self.text_rooms.broadcast(
            channel_id,
            EV_USER_TYPING,
            {
                **session.identity(),
                "channelId": channel_id,
                "isTyping": bool(data.get("isTyping")),
            },
            exclude=session.connection,
        )
        return DispatchResult(delivered=delivered)

    # ------------------------------------------------------------------
    # Single-target relays
    # ------------------------------------------------------------------

    async def _send_to_user(
        self, target_user_id: str, event: str, payload: Dict[str, Any]
    ) -> DispatchResult:
        if not await self.registry.send_to_user(target_user_id, event, payload):
            raise TargetUnreachable(f"{target_user_id} is not connected")
        return DispatchResult(delivered=1)

    async def send_direct_message(self, session: Session, payload: Any) -> DispatchResult:
        data = as_mapping(payload)
        receiver_id = coerce_id(data, "receiverId") if data else None
        if receiver_id is None:
            return DispatchResult.drop(DROP_MALFORMED)

        user = session.user
        return await self._send_to_user(
            receiver_id,
            EV_NEW_DM,
            {
                "id": data.get("messageId"),
                "content": data.get("content"),
                "timestamp": data.get("timestamp"),
                "sender_id": user.id,
                "sender_username": user.username,
                "sender_avatar": user.avatar,
                "receiver_id": receiver_id,
            },
        )

    async def friend_request(self, session: Session, payload: Any) -> DispatchResult:
        data = as_mapping(payload)
        target_user_id = coerce_id(data, "targetUserId") if data else None
        if target_user_id is None:
            return DispatchResult.drop(DROP_MALFORMED)

        return await self._send_to_user(
            target_user_id,
            EV_FRIEND_REQUEST_RECEIVED,
            {"friendshipId": data.get("friendshipId"), "from": session.user.to_profile()},
        )

    async def friend_request_accepted(
        self, session: Session, payload: Any
    ) -> DispatchResult:
        target_user_id = coerce_id(payload, "targetUserId")
        if target_user_id is None:
            return DispatchResult.drop(DROP_MALFORMED)

        return await self._send_to_user(
            target_user_id,
            EV_FRIEND_REQUEST_ACCEPTED_BY,
            {"user": {**session.user.to_profile(), "status": STATUS_ONLINE}},
        )

    # ------------------------------------------------------------------
    # Voice
    # ------------------------------------------------------------------

    async def join_voice(self, session: Session, payload: Any) -> DispatchResult:
        channel_id = coerce_id(payload, "channelId")
        if channel_id is None:
            return DispatchResult.drop(DROP_MALFORMED)
        await self._require_member(session, channel_id)
        return await self.signaling.join_voice(session, channel_id)

    async def leave_voice(self, session: Session, payload: Any) -> DispatchResult:
        channel_id = coerce_id(payload, "channelId")
        if channel_id is None:
            return DispatchResult.drop(DROP_MALFORMED)
        return await self.signaling.leave_voice(session, channel_id)

    def _signal_handler(self, kind: str) -> Handler:
        async def relay(session: Session, payload: Any) -> DispatchResult:
            return await self.signaling.relay_signal(session, kind, payload)

        relay.__name__ = f"relay_{kind.replace('-', '_')}"
        return relay

    def get_session(self, connection: Connection) -> Optional[Session]:
        return self.registry.get_session(connection)

    def get_stats(self) -> Dict[str, int]:
        return {
            **self.registry.get_stats(),
            **self.text_rooms.get_stats(),
            **self.voice_rooms.get_stats(),
        }
