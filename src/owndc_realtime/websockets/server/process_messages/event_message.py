"""
Inbound event frame handler for the WebSocket server.

Decodes each text frame and hands it to the event router. Transport-level
events (``ping``) are answered here and never reach the router.
"""

import logging
from typing import Optional

from ....core import DispatchResult, EventRouter
from ....core.session import Connection
from ....core.types import EV_PING, EV_PONG
from ....infrastructure.exceptions import ProtocolError
from ...core.protocol import decode_event


class EventMessageHandler:
    """Decodes event frames and dispatches them."""

    def __init__(self, router: EventRouter, logger: logging.Logger) -> None:
        self.router = router
        self.logger = logger

    async def process_event_message(
        self, connection: Connection, message: str
    ) -> Optional[DispatchResult]:
        """Process one text frame; malformed frames are logged and ignored."""
        try:
            event, data = decode_event(message)
        except ProtocolError as e:
            self.logger.warning(f"Ignoring malformed frame from {connection!r}: {e}")
            return None

        if event == EV_PING:
            timestamp = data.get("timestamp") if isinstance(data, dict) else data
            await connection.send(EV_PONG, {"timestamp": timestamp})
            return DispatchResult(delivered=1)

        result = await self.router.dispatch(connection, event, data)
        if result.dropped:
            self.logger.debug(f"{event} from {connection!r} dropped: {result.dropped}")
        return result
