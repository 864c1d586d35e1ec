import asyncio
import random
from typing import Callable, TYPE_CHECKING
from loguru import logger
from datetime import datetime, timezone

from shared.config import settings
from shared.models import Message

if TYPE_CHECKING:
    from invoker.connection import WebSocketConnection

def make_connection_stats() -> dict:
    """
    Returns a fresh stats dictionary with zeroed counters.
    Every connection calls this once in __init__.
    Keys: messages_received, bytes_received, pings_sent, ping_failures,
          send_failures, connected_at, last_message_at.
    """
    return {
        "messages_received": 0,
        "bytes_received": 0,
        "pings_sent": 0,
        "ping_failures": 0,
        "send_failures": 0,
        "connected_at": None,
        "last_message_at": None,
    }

def record_message(stats: dict, message: Message) -> None:
    stats["messages_received"] += 1
    stats["bytes_received"] += message.size
    stats["last_message_at"] = datetime.now(timezone.utc).isoformat()

async def with_reconnect(
    connection_factory: Callable[[], "WebSocketConnection"],
    duration_s: float,
    base_delay_s: float | None = None,
    max_delay_s: float | None = None,
) -> int:
    """
    Keeps a session alive for `duration_s` by building a brand new connection
    each time the previous one ends on its own (handshake failure, receive
    error, peer closure). A connection is never reused after it closes.

    Stops early once a connection was closed by its caller via `disconnect()`.
    Returns the number of reconnects performed.
    """
    base_delay_s = base_delay_s if base_delay_s is not None else settings.RECONNECT_BASE_DELAY_S
    max_delay_s = max_delay_s if max_delay_s is not None else settings.RECONNECT_MAX_DELAY_S
    loop = asyncio.get_running_loop()
    start_time = loop.time()
    attempt = 0
    built = 0

    while True:
        elapsed = loop.time() - start_time
        if elapsed >= duration_s:
            break

        connection = connection_factory()
        built += 1
        connection.connect()
        try:
            # Wait for the connection to end, capped at the remaining duration
            error = await asyncio.wait_for(connection.wait_closed(), timeout=duration_s - elapsed)
        except asyncio.TimeoutError:
            # Reached max duration normally
            connection.disconnect()
            await connection.wait_closed()
            break
        except asyncio.CancelledError:
            connection.disconnect()
            raise

        if connection.disconnect_requested:
            break

        if connection.stats["connected_at"] is not None:
            attempt = 0
        attempt += 1
        delay = min(base_delay_s * (2 ** attempt), max_delay_s)
        delay += random.uniform(0, delay * 0.1)
        remaining = duration_s - (loop.time() - start_time)
        if remaining <= delay:
            break
        logger.warning(
            f"url={connection.url} event=reconnect attempt={attempt} "
            f"delay={delay:.2f}s error='{error}'"
        )
        await asyncio.sleep(delay)

    return max(built - 1, 0)
