"""
WebSocket server for the OwnDc realtime layer.

Each accepted socket gets a :class:`WebSocketConnection` and an
unauthenticated session; its frames are processed one at a time in arrival
order, and closing the socket (for any reason) runs session teardown.
"""

import asyncio
from typing import Optional

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from ...api.server import run_api_server
from ...config import RealtimeConfig, RealtimeConfigManager
from ...core import EventRouter
from ...infrastructure import setup_logging
from ...storage import SQLiteChatStore
from ..core.connection import WebSocketConnection
from .process_messages import ConnectionUtils, EventMessageHandler

logger = setup_logging(
    component_name="chat_server",
    log_file="logs/chat_server.log",
)


class ChatRelayServer:
    """WebSocket front end feeding the event router."""

    def __init__(
        self,
        router: EventRouter,
        host: str = "0.0.0.0",
        port: int = 3001,
        ping_interval: int = 30,
        ping_timeout: float = 10.0,
        max_connections: int = 1000,
        max_message_size: int = 2**16,
        outbound_queue_size: int = 256,
        max_dropped_events: int = 64,
    ) -> None:
        """Initialize the chat relay server."""
        self.router = router
        self.host = host
        self.port = port
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.max_message_size = max_message_size
        self.outbound_queue_size = outbound_queue_size
        self.max_dropped_events = max_dropped_events

        self.server: Optional[Server] = None
        self._connection_semaphore = asyncio.Semaphore(max_connections)
        self._health_task: Optional[asyncio.Task] = None

        self.event_handler = EventMessageHandler(router, logger)

    @classmethod
    def from_config(cls, router: EventRouter, config: RealtimeConfig) -> "ChatRelayServer":
        return cls(
            router,
            host=config.host,
            port=config.port,
            ping_interval=config.ping_interval,
            ping_timeout=config.ping_timeout,
            max_connections=config.max_connections,
            max_message_size=config.max_message_size,
            outbound_queue_size=config.outbound_queue_size,
            max_dropped_events=config.max_dropped_events,
        )

    async def start(self) -> bool:
        """Start the WebSocket server."""
        try:
            self.server = await serve(
                self._handle_connection,
                self.host,
                self.port,
                ping_interval=None,  # Manual ping handling
                max_size=self.max_message_size,
            )
            logger.info(f"Chat relay server started on {self.host}:{self.port}")
            self._health_task = asyncio.create_task(
                ConnectionUtils.health_monitor(
                    self.router, self.ping_interval, self.ping_timeout, logger
                )
            )
            return True
        except OSError as e:
            logger.error(f"Failed to start chat relay server: {e}", exc_info=True)
            return False

    async def stop(self) -> None:
        """Stop the WebSocket server."""
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            logger.info("Chat relay server stopped")

        if self._health_task:
            self._health_task.cancel()
            try:
                await self._health_task
            except asyncio.CancelledError:
                pass

    async def _handle_connection(
        self, websocket: ServerConnection, path: Optional[str] = None
    ) -> None:
        """Handle one client socket from accept to close."""
        client_address = websocket.remote_address
        logger.info(f"New connection from {client_address}")

        async with self._connection_semaphore:
            connection = WebSocketConnection(
                websocket,
                logger,
                queue_size=self.outbound_queue_size,
                max_dropped_events=self.max_dropped_events,
            )
            connection.start()
            self.router.connect(connection)

            try:
                async for message in websocket:
                    if isinstance(message, str):
                        await self.event_handler.process_event_message(
                            connection, message
                        )
                    else:
                        logger.warning(f"Ignoring binary frame from {client_address}")
            except ConnectionClosed:
                logger.info(f"Connection closed: {client_address}")
            except Exception as e:
                logger.error(
                    f"Error handling connection from {client_address}: {e}",
                    exc_info=True,
                )
            finally:
                await ConnectionUtils.cleanup_connection(self.router, connection, logger)

    def get_stats(self) -> dict:
        """Get server statistics."""
        return {
            "server_running": self.server is not None,
            "router_stats": self.router.get_stats(),
        }


async def main() -> None:
    """Run the WebSocket server and the status API in one event loop."""
    config = RealtimeConfigManager().get_config()
    store = SQLiteChatStore(config.database_path)
    router = EventRouter.create(
        store,
        setup_logging(component_name="event_router", log_level=config.log_level),
        store_timeout=config.store_timeout,
        enforce_channel_membership=config.enforce_channel_membership,
    )
    server = ChatRelayServer.from_config(router, config)

    try:
        if await server.start():
            logger.info("Chat relay server running. Press Ctrl+C to stop.")
            await run_api_server(router, host=config.api_host, port=config.api_port)
    finally:
        await server.stop()
        await store.close()


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Shutting down chat relay server...")


if __name__ == "__main__":
    run()
