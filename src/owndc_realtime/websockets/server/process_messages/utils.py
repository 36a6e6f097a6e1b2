"""
Connection lifecycle helpers for the WebSocket server.
"""

import asyncio
import logging

from ....core import EventRouter
from ....infrastructure.exceptions import WebSocketError
from ...core.connection import WebSocketConnection


class ConnectionUtils:
    """Utility functions for connection management."""

    @staticmethod
    async def cleanup_connection(
        router: EventRouter,
        connection: WebSocketConnection,
        logger: logging.Logger,
    ) -> None:
        """Tear down the session, then stop the connection's writer."""
        session = router.get_session(connection)
        user_id = session.user_id if session else None
        await router.disconnect(connection)
        await connection.close()
        logger.info(f"Client disconnected: {connection.remote_address} (user {user_id})")

    @staticmethod
    async def health_monitor(
        router: EventRouter,
        ping_interval: float,
        ping_timeout: float,
        logger: logging.Logger,
    ) -> None:
        """
        Ping every open connection periodically.

        A peer that does not answer within ``ping_timeout`` seconds is closed
        with code 1011, which ends its read loop and runs the usual cleanup.
        """
        while True:
            await asyncio.sleep(ping_interval)

            connections = [
                connection
                for connection in list(router.registry.sessions)
                if isinstance(connection, WebSocketConnection) and not connection.closed
            ]
            results = await asyncio.gather(
                *(connection.ping(ping_timeout) for connection in connections),
                return_exceptions=True,
            )
            for connection, result in zip(connections, results):
                if isinstance(result, WebSocketError):
                    logger.warning(f"Closing unresponsive peer: {result}")
                    connection.schedule_close(1011, "Ping timeout")
                elif isinstance(result, Exception):
                    logger.error(
                        f"Error pinging {connection.remote_address}: {result}"
                    )
