"""Integration tests: WebSocketTransport against a local websockets server."""

import asyncio

import pytest
from websockets.asyncio.server import serve

from wschat.config import ClientConfig
from wschat.connection import ConnectionManager
from wschat.session import ChatSession
from wschat.transport import WebSocketTransport
from wschat.types import ConnectionState


async def _echo(ws):
    async for message in ws:
        await ws.send(message)


async def _close_immediately(ws):
    await ws.close(1001, "bye")


def _port(server) -> int:
    return server.sockets[0].getsockname()[1]


class TestWebSocketTransport:
    @pytest.mark.asyncio
    async def test_chat_round_trip(self, timers, until):
        async with serve(_echo, "127.0.0.1", 0) as server:
            session = ChatSession(
                ClientConfig(url=f"ws://127.0.0.1:{_port(server)}/ws"), timer=timers
            )
            session.start("alice")
            await until(lambda: session.state == ConnectionState.CONNECTED)

            sent = session.send_message("hello over the wire")
            assert sent is not None
            await until(lambda: len(session.messages) == 1)

            assert session.messages[0] == sent
            session.end()
            await asyncio.sleep(0.05)

    @pytest.mark.asyncio
    async def test_frames_keep_send_order(self, timers, until):
        async with serve(_echo, "127.0.0.1", 0) as server:
            session = ChatSession(
                ClientConfig(url=f"ws://127.0.0.1:{_port(server)}/ws"), timer=timers
            )
            session.start("alice")
            await until(lambda: session.state == ConnectionState.CONNECTED)

            for n in range(10):
                session.send_message(f"message {n}")
            await until(lambda: len(session.messages) == 10)

            assert [m.body for m in session.messages] == [
                f"message {n}" for n in range(10)
            ]
            session.end()
            await asyncio.sleep(0.05)

    @pytest.mark.asyncio
    async def test_refused_connection_fails(self, timers, until, unused_port):
        states = []
        manager = ConnectionManager(
            f"ws://127.0.0.1:{unused_port}/ws",
            transport=WebSocketTransport(connect_timeout=2.0),
            timer=timers,
            on_state_change=states.append,
        )
        manager.connect()
        await until(lambda: manager.state == ConnectionState.FAILED)

        assert states == [ConnectionState.CONNECTING, ConnectionState.FAILED]
        assert timers.delays == [1.0]
        manager.dispose()

    @pytest.mark.asyncio
    async def test_server_close_disconnects(self, timers, until):
        states = []
        async with serve(_close_immediately, "127.0.0.1", 0) as server:
            manager = ConnectionManager(
                f"ws://127.0.0.1:{_port(server)}/ws",
                timer=timers,
                on_state_change=states.append,
            )
            manager.connect()
            await until(lambda: manager.state == ConnectionState.DISCONNECTED)

        assert states == [
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
            ConnectionState.DISCONNECTED,
        ]
        assert timers.delays == [1.0]
        manager.dispose()

    @pytest.mark.asyncio
    async def test_dispose_closes_socket(self, timers, until):
        closed = asyncio.Event()

        async def handler(ws):
            try:
                await ws.wait_closed()
            finally:
                closed.set()

        async with serve(handler, "127.0.0.1", 0) as server:
            manager = ConnectionManager(
                f"ws://127.0.0.1:{_port(server)}/ws", timer=timers
            )
            manager.connect()
            await until(lambda: manager.state == ConnectionState.CONNECTED)

            manager.dispose()
            await asyncio.wait_for(closed.wait(), timeout=5.0)
            assert manager.state == ConnectionState.IDLE
            assert timers.timers == []
