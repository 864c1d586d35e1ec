# tests/test_transport.py
import asyncio

import pytest
from websockets.asyncio.server import serve

from conftest import RecordingSink, eventually
from invoker.connection import WebSocketConnection
from invoker.errors import GOING_AWAY, HandshakeError, PingError, SendError, TransportClosed
from invoker.transport import WebsocketsTransport
from shared.models import ConnectionState, Message


async def echo(ws):
    async for message in ws:
        await ws.send(message)


async def close_right_away(ws):
    await ws.close(1000, "bye")


def url_of(server) -> str:
    port = next(iter(server.sockets)).getsockname()[1]
    return f"ws://127.0.0.1:{port}"


@pytest.mark.asyncio
async def test_round_trip_text_binary_and_ping():
    async with serve(echo, "127.0.0.1", 0) as server:
        transport = WebsocketsTransport(pong_timeout_s=2.0)
        await transport.open_handshake(url_of(server))
        assert not transport.is_closed

        await transport.send_text("hello")
        assert await transport.receive_once() == Message.from_text("hello")

        await transport.send_binary(b"\x01\x02")
        assert await transport.receive_once() == Message.from_bytes(b"\x01\x02")

        await transport.send_ping()

        await transport.close(GOING_AWAY, "")
        assert transport.is_closed


@pytest.mark.asyncio
async def test_handshake_failure_is_translated():
    transport = WebsocketsTransport(open_timeout_s=2.0)
    with pytest.raises(HandshakeError):
        await transport.open_handshake("ws://127.0.0.1:1")


@pytest.mark.asyncio
async def test_operations_before_handshake_fail_with_taxonomy_errors():
    transport = WebsocketsTransport()
    assert not transport.is_closed
    with pytest.raises(SendError):
        await transport.send_text("early")
    with pytest.raises(PingError):
        await transport.send_ping()


@pytest.mark.asyncio
async def test_peer_close_surfaces_as_transport_closed():
    async with serve(close_right_away, "127.0.0.1", 0) as server:
        transport = WebsocketsTransport()
        await transport.open_handshake(url_of(server))

        with pytest.raises(TransportClosed) as excinfo:
            await transport.receive_once()

        assert excinfo.value.clean
        assert excinfo.value.code == 1000
        assert excinfo.value.reason == "bye"


@pytest.mark.asyncio
async def test_connection_against_live_echo_server():
    sink = RecordingSink()
    async with serve(echo, "127.0.0.1", 0) as server:
        connection = WebSocketConnection(url_of(server), sink, ping_interval_s=0.05)
        connection.connect()
        await eventually(lambda: connection.state is ConnectionState.OPEN, timeout=3.0)

        connection.send("hello")
        connection.send(b"\xff")
        await eventually(lambda: len(sink.events) == 3, timeout=3.0)
        await eventually(lambda: connection.stats["pings_sent"] >= 2, timeout=3.0)

        connection.disconnect()
        assert await asyncio.wait_for(connection.wait_closed(), timeout=3.0) is None

    assert sink.events == [
        ("connected", None),
        ("text", "hello"),
        ("binary", b"\xff"),
        ("disconnected", None),
    ]
    assert connection.stats["ping_failures"] == 0
