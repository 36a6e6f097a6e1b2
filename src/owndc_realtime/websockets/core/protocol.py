"""
Wire codec for realtime events.

Every frame is a JSON text frame. The canonical shape is
``{"event": "<name>", "data": <payload>}``; the two-element array form
``["<name>", <payload>]`` used by socket.io-style clients is accepted on
input as well.
"""

import json
from typing import Any, Tuple

from ...core.types import WS_KEY_DATA, WS_KEY_EVENT
from ...infrastructure.exceptions import ProtocolError


def encode_event(event: str, payload: Any) -> str:
    """Serialize one outbound event."""
    return json.dumps({WS_KEY_EVENT: event, WS_KEY_DATA: payload}, default=str)


def decode_event(message: str) -> Tuple[str, Any]:
    """
    Parse one inbound frame into ``(event, data)``.

    Raises:
        ProtocolError: If the frame is not JSON or has no event name
    """
    try:
        frame = json.loads(message)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Invalid JSON: {e}") from e

    if isinstance(frame, dict):
        event = frame.get(WS_KEY_EVENT)
        data = frame.get(WS_KEY_DATA)
    elif isinstance(frame, list) and 1 <= len(frame) <= 2:
        event = frame[0]
        data = frame[1] if len(frame) == 2 else None
    else:
        raise ProtocolError("Frame must be an object or an [event, data] pair")

    if not isinstance(event, str) or not event:
        raise ProtocolError("Missing event name")
    return event, data
