"""
Unit tests for the WebSocket connection handle and server loop.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from websockets.exceptions import ConnectionClosed

from owndc_realtime.infrastructure.exceptions import WebSocketError
from owndc_realtime.websockets.core.connection import WebSocketConnection
from owndc_realtime.websockets.server import ChatRelayServer
from owndc_realtime.websockets.server.process_messages import ConnectionUtils
from tests.conftest import connect_as


class HalfOpenSocket:
    """Socket whose peer vanished: reads block and pings go unanswered until it is closed."""

    def __init__(self, frames):
        self.remote_address = ("127.0.0.1", 40001)
        self.frames = list(frames)
        self.send = AsyncMock()
        self.close_code = None
        self._closed = asyncio.Event()

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.frames:
            return self.frames.pop(0)
        await self._closed.wait()
        raise StopAsyncIteration

    async def ping(self):
        return asyncio.get_running_loop().create_future()

    async def close(self, code=1000, reason=""):
        self.close_code = code
        self._closed.set()


class TestWebSocketConnection:
    """Test cases for WebSocketConnection class."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_writer_sends_frames_in_order(self, mock_websocket, logger):
        connection = WebSocketConnection(mock_websocket, logger)
        connection.start()

        await connection.send("first", {"n": 1})
        await connection.send("second", {"n": 2})
        for _ in range(5):
            await asyncio.sleep(0)

        frames = [json.loads(call.args[0]) for call in mock_websocket.send.await_args_list]
        assert [frame["event"] for frame in frames] == ["first", "second"]
        assert connection.pending == 0

        await connection.close()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_full_queue_drops_events(self, mock_websocket, logger):
        connection = WebSocketConnection(
            mock_websocket, logger, queue_size=1, max_dropped_events=10
        )

        await connection.send("kept", None)
        await connection.send("dropped", None)

        assert connection.pending == 1
        assert connection.total_dropped == 1
        assert not connection.closed

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_slow_consumer_is_disconnected(self, mock_websocket, logger):
        connection = WebSocketConnection(
            mock_websocket, logger, queue_size=1, max_dropped_events=2
        )

        await connection.send("kept", None)
        await connection.send("dropped-1", None)
        await connection.send("dropped-2", None)
        await connection.send("after-close", None)

        assert connection.closed
        assert connection.total_dropped == 2

        await connection.close()
        mock_websocket.close.assert_awaited_once_with(code=1008, reason="Slow consumer")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_successful_send_resets_drop_streak(self, mock_websocket, logger):
        connection = WebSocketConnection(
            mock_websocket, logger, queue_size=1, max_dropped_events=2
        )

        await connection.send("kept", None)
        await connection.send("dropped", None)
        connection._queue.get_nowait()
        await connection.send("kept-again", None)

        assert connection.consecutive_drops == 0
        assert connection.total_dropped == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_ping_on_closed_socket(self, mock_websocket, logger):
        mock_websocket.ping.side_effect = ConnectionClosed(None, None)
        connection = WebSocketConnection(mock_websocket, logger)

        with pytest.raises(WebSocketError):
            await connection.ping()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_answered_ping(self, mock_websocket, logger):
        connection = WebSocketConnection(mock_websocket, logger)

        await connection.ping(1.0)

        mock_websocket.ping.assert_awaited_once()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unanswered_ping_times_out(self, mock_websocket, logger):
        pong_waiter = asyncio.get_running_loop().create_future()
        mock_websocket.ping.side_effect = None
        mock_websocket.ping.return_value = pong_waiter
        connection = WebSocketConnection(mock_websocket, logger)

        with pytest.raises(WebSocketError, match="No pong"):
            await connection.ping(0.01)

        assert pong_waiter.cancelled()


class TestConnectionUtils:
    """Test cases for connection lifecycle helpers."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cleanup_connection_tears_down_session(
        self, router, store, mock_websocket, logger
    ):
        connection = WebSocketConnection(mock_websocket, logger)
        connection.start()
        router.connect(connection)
        await router.dispatch(connection, "authenticate", "alice")

        await ConnectionUtils.cleanup_connection(router, connection, logger)

        assert not router.registry.is_online("alice")
        assert router.get_session(connection) is None
        assert connection.closed
        assert store.status_updates[-1] == ("alice", "offline")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_health_monitor_pings_open_connections(
        self, router, mock_websocket, logger
    ):
        connection = WebSocketConnection(mock_websocket, logger)
        router.connect(connection)

        task = asyncio.create_task(
            ConnectionUtils.health_monitor(router, 0.01, 1.0, logger)
        )
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert mock_websocket.ping.await_count >= 1
        assert not connection.closed
        mock_websocket.close.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_health_monitor_closes_unresponsive_peer(
        self, router, mock_websocket, logger
    ):
        mock_websocket.ping.side_effect = None
        mock_websocket.ping.return_value = asyncio.get_running_loop().create_future()
        connection = WebSocketConnection(mock_websocket, logger)
        router.connect(connection)

        task = asyncio.create_task(
            ConnectionUtils.health_monitor(router, 0.01, 0.01, logger)
        )
        await asyncio.sleep(0.1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert connection.closed
        mock_websocket.close.assert_awaited_once_with(code=1011, reason="Ping timeout")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_health_monitor_closes_socket_closed_under_it(
        self, router, mock_websocket, logger
    ):
        mock_websocket.ping.side_effect = ConnectionClosed(None, None)
        connection = WebSocketConnection(mock_websocket, logger)
        router.connect(connection)

        task = asyncio.create_task(
            ConnectionUtils.health_monitor(router, 0.01, 1.0, logger)
        )
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert mock_websocket.ping.await_count == 1
        assert connection.closed


class TestChatRelayServer:
    """Test cases for the server's per-socket loop."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_socket_lifecycle(self, router, store, logger):
        websocket = MagicMock()
        websocket.remote_address = ("127.0.0.1", 40000)
        websocket.send = AsyncMock()
        websocket.__aiter__.return_value = [
            json.dumps({"event": "authenticate", "data": "alice"}),
            b"\x00binary",
            "garbage",
            json.dumps({"event": "join-channel", "data": "general"}),
        ]
        server = ChatRelayServer(router)

        await server._handle_connection(websocket)

        assert store.status_updates == [("alice", "online"), ("alice", "offline")]
        assert not router.registry.is_online("alice")
        assert router.text_rooms.members_of("general") == set()
        assert router.get_stats()["open_connections"] == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_half_open_peer_is_taken_offline(self, router, store, logger):
        bob = await connect_as(router, "bob")
        websocket = HalfOpenSocket([json.dumps({"event": "authenticate", "data": "alice"})])
        server = ChatRelayServer(router, ping_interval=1, ping_timeout=0.01)
        monitor = asyncio.create_task(
            ConnectionUtils.health_monitor(router, 0.01, server.ping_timeout, logger)
        )

        try:
            await asyncio.wait_for(server._handle_connection(websocket), timeout=2)
        finally:
            monitor.cancel()
            with pytest.raises(asyncio.CancelledError):
                await monitor

        assert websocket.close_code == 1011
        assert not router.registry.is_online("alice")
        assert store.status_updates[-1] == ("alice", "offline")
        assert bob.of("friend-offline") == [{"userId": "alice", "username": "Alice"}]

    @pytest.mark.unit
    def test_stats_before_start(self, router):
        server = ChatRelayServer(router)

        stats = server.get_stats()

        assert stats["server_running"] is False
        assert stats["router_stats"]["online_users"] == 0
