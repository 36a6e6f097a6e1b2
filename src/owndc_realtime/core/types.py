"""
Common types and constants for the OwnDc realtime server.

Event names and status values live here so handlers and tests never
hardcode the wire strings.
"""

from typing import Final

# Inbound events (client -> server)
EV_AUTHENTICATE: Final[str] = "authenticate"
EV_JOIN_CHANNEL: Final[str] = "join-channel"
EV_LEAVE_CHANNEL: Final[str] = "leave-channel"
EV_SEND_MESSAGE: Final[str] = "send-message"
EV_TYPING: Final[str] = "typing"
EV_SEND_DM: Final[str] = "send-dm"
EV_JOIN_VOICE: Final[str] = "join-voice"
EV_LEAVE_VOICE: Final[str] = "leave-voice"
EV_OFFER: Final[str] = "offer"
EV_ANSWER: Final[str] = "answer"
EV_ICE_CANDIDATE: Final[str] = "ice-candidate"
EV_FRIEND_REQUEST: Final[str] = "friend-request"
EV_FRIEND_REQUEST_ACCEPTED: Final[str] = "friend-request-accepted"
EV_PING: Final[str] = "ping"

# Outbound events (server -> client)
EV_AUTHENTICATED: Final[str] = "authenticated"
EV_NEW_MESSAGE: Final[str] = "new-message"
EV_NEW_DM: Final[str] = "new-dm"
EV_USER_TYPING: Final[str] = "user-typing"
EV_USER_JOINED_CHANNEL: Final[str] = "user-joined-channel"
EV_USER_LEFT_CHANNEL: Final[str] = "user-left-channel"
EV_USER_JOINED_VOICE: Final[str] = "user-joined-voice"
EV_USER_LEFT_VOICE: Final[str] = "user-left-voice"
EV_VOICE_CHANNEL_USERS: Final[str] = "voice-channel-users"
EV_FRIEND_REQUEST_RECEIVED: Final[str] = "friend-request-received"
EV_FRIEND_REQUEST_ACCEPTED_BY: Final[str] = "friend-request-accepted-by"
EV_FRIEND_ONLINE: Final[str] = "friend-online"
EV_FRIEND_OFFLINE: Final[str] = "friend-offline"
EV_USER_STATUS_CHANGE: Final[str] = "user-status-change"
EV_PONG: Final[str] = "pong"

# WebRTC signaling kinds and the key each browser client uses for its blob
SIGNAL_KINDS = {
    EV_OFFER: "offer",
    EV_ANSWER: "answer",
    EV_ICE_CANDIDATE: "candidate",
}

# User status values stored in the users table
STATUS_ONLINE: Final[str] = "online"
STATUS_OFFLINE: Final[str] = "offline"

# Friendship status values
FRIENDSHIP_PENDING: Final[str] = "pending"
FRIENDSHIP_ACCEPTED: Final[str] = "accepted"

# Wire envelope keys
WS_KEY_EVENT: Final[str] = "event"
WS_KEY_DATA: Final[str] = "data"

# Drop reasons reported by dispatch results
DROP_UNAUTHENTICATED: Final[str] = "unauthenticated"
DROP_NOT_AUTHORIZED: Final[str] = "not_authorized"
DROP_UNREACHABLE: Final[str] = "target_unreachable"
DROP_MALFORMED: Final[str] = "malformed"
DROP_UNKNOWN_EVENT: Final[str] = "unknown_event"
DROP_PERSISTENCE: Final[str] = "persistence_unavailable"
DROP_AUTH_FAILED: Final[str] = "authentication_failed"
