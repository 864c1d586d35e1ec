"""
MODULE OVERVIEW:
The WebSocket connection: one transport, one sink, two loops.

WHAT IS HAPPENING HERE:
`connect()`, `disconnect()` and `send*()` are plain methods. They never block and
never raise for network failures; they schedule asyncio tasks and return. Results
come back through the sink.

Once the handshake completes we run two independent loops over the same
transport:
  1. The receive loop. Exactly one `receive_once()` is in flight at a time, and
     each frame is handed to the sink before the next receive is issued, so the
     sink sees frames in the order they arrived.
  2. The keep-alive loop. Ping, sleep, ping again. A failed ping is logged and
     counted, never escalated, so a single lost pong does not tear down an
     otherwise healthy connection.

There is no automatic reconnect here. A connection that closed stays closed;
callers that want another session build a new connection
(see `shared.client_utils.with_reconnect`).
"""

import asyncio
import contextlib
import weakref
from datetime import datetime, timezone
from typing import Awaitable, Callable
from loguru import logger

from invoker.errors import GOING_AWAY, HandshakeError, PingError, ReceiveError, SendError, TransportClosed, WebSocketError
from invoker.sink import ConnectionSink
from invoker.transport import Transport, WebsocketsTransport
from shared.client_utils import make_connection_stats, record_message
from shared.config import settings
from shared.models import ConnectionState


class WebSocketConnection:
    def __init__(
        self,
        url: str,
        sink: ConnectionSink,
        transport: Transport | None = None,
        ping_interval_s: float | None = None,
    ):
        self.url = url
        self.transport = transport if transport is not None else WebsocketsTransport()
        self.ping_interval_s = ping_interval_s if ping_interval_s is not None else settings.WS_PING_INTERVAL_S

        self.state = ConnectionState.IDLE
        self.stats = make_connection_stats()
        self.last_error: Exception | None = None
        self.disconnect_requested = False

        # The sink belongs to the caller; we must not keep it alive.
        self._sink_ref = weakref.ref(sink)
        self._keepalive_cancelled = False
        self._disconnect_notified = False
        self._run_task: asyncio.Task | None = None
        self._keepalive_task: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self._closed_event = asyncio.Event()

    @property
    def sink(self) -> ConnectionSink | None:
        return self._sink_ref()

    # ==========================
    # PUBLIC API
    # ==========================
    def connect(self) -> None:
        if self.state is not ConnectionState.IDLE:
            logger.warning(f"url={self.url} event=connect reason=ignored state={self.state.value}")
            return
        # Fails fast outside a running loop, before any state changes.
        asyncio.get_running_loop()
        self.state = ConnectionState.CONNECTING
        logger.info(f"url={self.url} event=connect reason=handshake_started")
        self._run_task = self._spawn(self._run())

    def disconnect(self) -> None:
        if self.disconnect_requested or self.state is ConnectionState.CLOSED:
            return
        self.disconnect_requested = True
        self._stop_keep_alive()

        if self.state is ConnectionState.IDLE:
            self._mark_closed()
            return

        previous = self.state
        self.state = ConnectionState.CLOSING
        logger.info(f"url={self.url} event=disconnect reason=requested state={previous.value}")
        if previous is ConnectionState.CONNECTING:
            # Nothing was reported yet, so the handshake is simply abandoned.
            self._spawn(self._abandon_handshake())
        else:
            self._spawn(self._close())

    def send(self, payload: str | bytes | bytearray | memoryview) -> None:
        if isinstance(payload, str):
            self.send_text(payload)
        elif isinstance(payload, (bytes, bytearray, memoryview)):
            self.send_binary(bytes(payload))
        else:
            raise TypeError(f"cannot send {type(payload).__name__}, expected str or bytes")

    def send_text(self, text: str) -> None:
        self._spawn(self._send(self.transport.send_text, text))

    def send_binary(self, data: bytes) -> None:
        self._spawn(self._send(self.transport.send_binary, bytes(data)))

    async def wait_closed(self) -> Exception | None:
        """Waits until the connection reaches CLOSED and returns the last error, if any."""
        await self._closed_event.wait()
        return self.last_error

    # ==========================
    # INTERNALS
    # ==========================
    def _spawn(self, coro: Awaitable) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _notify(self, callback_name: str, *args) -> None:
        sink = self._sink_ref()
        if sink is None:
            logger.debug(f"url={self.url} event={callback_name} reason=sink_released")
            return
        try:
            await getattr(sink, callback_name)(self, *args)
        except Exception:
            logger.exception(f"url={self.url} event={callback_name} reason=sink_raised")

    def _mark_closed(self) -> None:
        self.state = ConnectionState.CLOSED
        self._closed_event.set()

    async def _release_transport(self) -> None:
        if self.transport.is_closed:
            return
        try:
            await self.transport.close(GOING_AWAY, "")
        except WebSocketError as e:
            logger.warning(f"url={self.url} event=release reason='{e}'")

    async def _run(self) -> None:
        try:
            await self.transport.open_handshake(self.url)
        except HandshakeError as e:
            if self.disconnect_requested:
                return
            logger.warning(f"url={self.url} event=connect reason=handshake_failed error='{e}'")
            self.last_error = e
            self.state = ConnectionState.CLOSED
            await self._notify("on_error", e)
            await self._release_transport()
            self._closed_event.set()
            return
        if self.disconnect_requested:
            return

        self.state = ConnectionState.OPEN
        self.stats["connected_at"] = datetime.now(timezone.utc).isoformat()
        logger.info(f"url={self.url} event=connect reason=open")
        await self._notify("on_connected")

        # The sink may have disconnected us from inside on_connected.
        if self.disconnect_requested:
            return
        self._keepalive_task = self._spawn(self._keep_alive())
        await self._receive_loop()

    async def _abandon_handshake(self) -> None:
        self._run_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._run_task
        await self._release_transport()
        self._mark_closed()
        logger.info(f"url={self.url} event=connect reason=abandoned")

    async def _receive_loop(self) -> None:
        while True:
            if self.disconnect_requested:
                return
            if self.transport.is_closed:
                await self._finish(error=None)
                return

            try:
                message = await self.transport.receive_once()
            except TransportClosed as e:
                if self.disconnect_requested:
                    return
                logger.info(f"url={self.url} event=closed_by_peer code={e.code} clean={e.clean}")
                await self._finish(error=None if e.clean else e)
                return
            except ReceiveError as e:
                if self.disconnect_requested:
                    return
                logger.warning(f"url={self.url} event=receive reason='{e}'")
                await self._finish(error=e, report_as_error=True)
                return

            # A frame that raced past disconnect() is dropped.
            if self.disconnect_requested:
                logger.debug(f"url={self.url} event=receive reason=dropped_after_disconnect")
                return

            record_message(self.stats, message)
            if message.is_text:
                await self._notify("on_message_text", message.payload)
            else:
                await self._notify("on_message_binary", message.payload)

    async def _finish(self, error: Exception | None, report_as_error: bool = False) -> None:
        """Terminal transition not requested by the caller: peer closure or receive failure."""
        self.state = ConnectionState.CLOSED
        self._stop_keep_alive()
        if error is not None:
            self.last_error = error

        # Notify before the close handshake, not after it.
        if report_as_error:
            await self._notify("on_error", error)
        elif not self._disconnect_notified:
            self._disconnect_notified = True
            await self._notify("on_disconnected", error)
        await self._release_transport()
        self._closed_event.set()

    async def _close(self) -> None:
        error = None
        try:
            await self.transport.close(GOING_AWAY, "")
        except WebSocketError as e:
            logger.warning(f"url={self.url} event=disconnect reason=close_failed error='{e}'")
            error = e
            self.last_error = e
        self.state = ConnectionState.CLOSED
        logger.info(f"url={self.url} event=disconnect reason=closed")
        if not self._disconnect_notified:
            self._disconnect_notified = True
            await self._notify("on_disconnected", error)
        self._closed_event.set()

    async def _send(self, send_fn: Callable[[str | bytes], Awaitable[None]], payload: str | bytes) -> None:
        try:
            await send_fn(payload)
        except SendError as e:
            self.stats["send_failures"] += 1
            if self.disconnect_requested:
                logger.warning(f"url={self.url} event=send reason=failed_after_disconnect error='{e}'")
                return
            logger.warning(f"url={self.url} event=send reason='{e}'")
            await self._notify("on_error", e)

    # ==========================
    # KEEP-ALIVE
    # ==========================
    async def _keep_alive(self) -> None:
        while not self._keepalive_cancelled and not self.transport.is_closed:
            try:
                await self.transport.send_ping()
                self.stats["pings_sent"] += 1
            except PingError as e:
                self.stats["ping_failures"] += 1
                logger.warning(f"url={self.url} event=ping reason='{e}'")
            if self._keepalive_cancelled:
                break
            await asyncio.sleep(self.ping_interval_s)

    def _stop_keep_alive(self) -> None:
        self._keepalive_cancelled = True
        if self._keepalive_task is not None and not self._keepalive_task.done():
            self._keepalive_task.cancel()
