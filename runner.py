"""
CLI entrypoint for Socket Invoker.
"""
import asyncio
import sys
from typing import List

import typer
from loguru import logger

from invoker.connection import WebSocketConnection
from invoker.console_sink import ConsoleSink
from shared.client_utils import with_reconnect
from shared.config import settings
from shared.models import ConnectionState

app = typer.Typer(help="Socket Invoker CLI Manager")


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


async def run_client(url: str, messages: List[str], duration: float, reconnect: bool, sink: ConsoleSink) -> WebSocketConnection | None:
    """Connects, sends `messages` once open, and keeps the session up for `duration` seconds."""
    connections: list[WebSocketConnection] = []
    senders: set[asyncio.Task] = set()

    async def send_when_open(connection: WebSocketConnection) -> None:
        # Frames sent before the handshake completes would fail on the transport.
        while connection.state in (ConnectionState.IDLE, ConnectionState.CONNECTING):
            await asyncio.sleep(0.05)
        if connection.state is not ConnectionState.OPEN:
            return
        for text in messages:
            connection.send_text(text)

    def factory() -> WebSocketConnection:
        connection = WebSocketConnection(url, sink)
        connections.append(connection)
        task = asyncio.create_task(send_when_open(connection))
        senders.add(task)
        task.add_done_callback(senders.discard)
        return connection

    if reconnect:
        await with_reconnect(factory, duration)
        return connections[-1] if connections else None

    connection = factory()
    connection.connect()
    try:
        await asyncio.wait_for(connection.wait_closed(), timeout=duration)
    except asyncio.TimeoutError:
        connection.disconnect()
        await connection.wait_closed()
    return connection


@app.command()
def server():
    """Start the FastAPI echo server using Uvicorn."""
    import uvicorn
    typer.echo(f"Starting echo server on port {settings.PORT}...")
    uvicorn.run("server.main:app", host="0.0.0.0", port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


@app.command()
def client(
    url: str = typer.Option(settings.WS_URL, help="WebSocket URL to connect to"),
    send: List[str] = typer.Option([], "--send", help="Text frame to send once connected (repeatable)"),
    duration: float = typer.Option(30.0, help="How long to keep the session open in seconds"),
    reconnect: bool = typer.Option(False, help="Open a new connection whenever the previous one ends"),
):
    """Connect to a WebSocket endpoint and print every event to the terminal."""
    if duration <= 0:
        typer.echo("--duration must be greater than 0.")
        raise typer.Exit(1)
    configure_logging(settings.LOG_LEVEL)
    sink = ConsoleSink()
    try:
        connection = asyncio.run(run_client(url, send, duration, reconnect, sink))
    except KeyboardInterrupt:
        return
    if connection is not None:
        sink.console.print(sink.summary(connection))


if __name__ == "__main__":
    app()
