"""
WebSocket-backed connection handle.

Outbound events go through a bounded queue drained by a writer task, so a
slow consumer never stalls the coroutine that is fanning an event out.
When the queue is full the event is dropped; too many drops in a row and
the consumer is disconnected.
"""

import asyncio
import logging
from typing import Any, Optional

from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed

from ...core.session import Connection
from ...infrastructure.exceptions import WebSocketError
from .protocol import encode_event


class WebSocketConnection(Connection):
    """Connection handle for one ``websockets`` server connection."""

    def __init__(
        self,
        websocket: ServerConnection,
        logger: logging.Logger,
        queue_size: int = 256,
        max_dropped_events: int = 64,
    ) -> None:
        super().__init__()
        self.websocket = websocket
        self.remote_address = websocket.remote_address
        self.logger = logger
        self.max_dropped_events = max_dropped_events

        self._queue: "asyncio.Queue[str]" = asyncio.Queue(maxsize=queue_size)
        self._writer_task: Optional[asyncio.Task] = None
        self._close_task: Optional[asyncio.Task] = None
        self.consecutive_drops = 0
        self.total_dropped = 0
        self.closed = False

    def start(self) -> None:
        """Start the writer task."""
        if self._writer_task is None:
            self._writer_task = asyncio.create_task(self._writer())

    async def send(self, event: str, payload: Any) -> None:
        """Queue an event for delivery; drops it when the queue is full."""
        if self.closed:
            return

        try:
            self._queue.put_nowait(encode_event(event, payload))
            self.consecutive_drops = 0
        except asyncio.QueueFull:
            self.consecutive_drops += 1
            self.total_dropped += 1
            self.logger.warning(
                f"Outbound queue full for {self.remote_address}, dropped {event}"
            )
            if self.consecutive_drops >= self.max_dropped_events:
                self._disconnect_slow_consumer()

    def _disconnect_slow_consumer(self) -> None:
        if self._close_task is not None:
            return
        self.logger.warning(
            f"Disconnecting slow consumer {self.remote_address} "
            f"after {self.consecutive_drops} dropped events"
        )
        self.schedule_close(1008, "Slow consumer")

    def schedule_close(self, code: int, reason: str) -> None:
        """
        Start closing the socket without waiting for the handshake.

        The read loop sees the socket close and runs session teardown.
        Later calls are no-ops.
        """
        if self._close_task is not None:
            return
        self.closed = True
        self._close_task = asyncio.create_task(
            self.websocket.close(code=code, reason=reason)
        )

    async def _writer(self) -> None:
        """Drain the outbound queue in order."""
        while True:
            frame = await self._queue.get()
            try:
                await self.websocket.send(frame)
            except ConnectionClosed:
                self.logger.debug(f"Writer stopped, {self.remote_address} closed")
                return
            except Exception as e:
                self.logger.error(f"Error sending to {self.remote_address}: {e}")
                return

    async def ping(self, timeout: Optional[float] = None) -> None:
        """Ping the peer and wait up to ``timeout`` seconds for its pong."""
        try:
            pong_waiter = await self.websocket.ping()
            await asyncio.wait_for(pong_waiter, timeout)
        except asyncio.TimeoutError as e:
            raise WebSocketError(
                f"No pong from {self.remote_address} within {timeout}s"
            ) from e
        except ConnectionClosed as e:
            raise WebSocketError(f"Ping to {self.remote_address} failed: {e}") from e

    async def close(self) -> None:
        """Stop the writer task; pending events are discarded."""
        self.closed = True
        if self._writer_task:
            self._writer_task.cancel()
            try:
                await self._writer_task
            except asyncio.CancelledError:
                pass
        if self._close_task:
            try:
                await self._close_task
            except ConnectionClosed:
                pass

    @property
    def pending(self) -> int:
        return self._queue.qsize()
