"""
MODULE OVERVIEW:
The transports a connection can run over.

WHAT IS HAPPENING HERE:
A `WebSocketConnection` never touches a socket. It talks to a `Transport`, which
owns the handshake, the framing and the close handshake. Two implementations ship
here:

  * `WebsocketsTransport` wraps the `websockets` library. We switch off the
    library's own keep-alive (`ping_interval=None`) because the connection runs
    its own ping loop, and we translate library exceptions into our error
    taxonomy so nothing upstream imports `websockets`.
  * `InMemoryTransport` is a scripted, queue-backed stand-in used by the test
    suite and by demos that should run without a network.
"""
from abc import ABC, abstractmethod
import asyncio

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK
from loguru import logger

from invoker.errors import (
    HandshakeError,
    PingError,
    ReceiveError,
    SendError,
    TransportClosed,
    WebSocketError,
)
from shared.config import settings
from shared.models import Message


class Transport(ABC):
    """One full-duplex connection. Owned by exactly one `WebSocketConnection`."""

    @abstractmethod
    async def open_handshake(self, url: str) -> None:
        """Raises HandshakeError."""

    @abstractmethod
    async def close(self, code: int, reason: str) -> None:
        pass

    @abstractmethod
    async def send_text(self, text: str) -> None:
        """Raises SendError."""

    @abstractmethod
    async def send_binary(self, data: bytes) -> None:
        """Raises SendError."""

    @abstractmethod
    async def receive_once(self) -> Message:
        """Waits for the next frame. Raises ReceiveError or TransportClosed."""

    @abstractmethod
    async def send_ping(self) -> None:
        """Raises PingError."""

    @property
    @abstractmethod
    def is_closed(self) -> bool:
        pass


def _closed_from(exc: ConnectionClosed) -> TransportClosed:
    close_frame = exc.rcvd or exc.sent
    code = close_frame.code if close_frame else None
    reason = close_frame.reason if close_frame else ""
    return TransportClosed(code, reason, clean=isinstance(exc, ConnectionClosedOK))


class WebsocketsTransport(Transport):
    def __init__(
        self,
        headers: dict[str, str] | None = None,
        open_timeout_s: float | None = None,
        close_timeout_s: float | None = None,
        pong_timeout_s: float | None = None,
    ):
        self.headers = headers or {}
        self.open_timeout_s = open_timeout_s if open_timeout_s is not None else settings.WS_OPEN_TIMEOUT_S
        self.close_timeout_s = close_timeout_s if close_timeout_s is not None else settings.WS_CLOSE_TIMEOUT_S
        self.pong_timeout_s = pong_timeout_s if pong_timeout_s is not None else settings.WS_PONG_TIMEOUT_S
        self._ws = None
        self._closed = False

    async def open_handshake(self, url: str) -> None:
        try:
            self._ws = await websockets.connect(
                url,
                additional_headers=self.headers or None,
                open_timeout=self.open_timeout_s,
                close_timeout=self.close_timeout_s,
                ping_interval=None,
            )
        except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as e:
            raise HandshakeError(f"handshake with {url} failed: {e!r}") from e
        logger.debug(f"url={url} event=handshake reason=complete")

    async def close(self, code: int, reason: str) -> None:
        self._closed = True
        if self._ws is None:
            return
        try:
            await self._ws.close(code=code, reason=reason)
        except (OSError, websockets.WebSocketException) as e:
            raise WebSocketError(f"close failed: {e!r}") from e
        finally:
            self._ws = None

    async def _send(self, payload: str | bytes) -> None:
        if self._ws is None:
            raise SendError("transport is not connected")
        try:
            await self._ws.send(payload)
        except ConnectionClosed as e:
            raise SendError(f"connection closed while sending: {_closed_from(e)}") from e
        except (OSError, websockets.WebSocketException) as e:
            raise SendError(f"send failed: {e!r}") from e

    async def send_text(self, text: str) -> None:
        await self._send(text)

    async def send_binary(self, data: bytes) -> None:
        await self._send(bytes(data))

    async def receive_once(self) -> Message:
        if self._ws is None:
            raise TransportClosed(clean=self._closed)
        try:
            data = await self._ws.recv()
        except ConnectionClosed as e:
            raise _closed_from(e) from e
        except (OSError, websockets.WebSocketException) as e:
            raise ReceiveError(f"receive failed: {e!r}") from e
        if isinstance(data, str):
            return Message.from_text(data)
        return Message.from_bytes(data)

    async def send_ping(self) -> None:
        if self._ws is None:
            raise PingError("transport is not connected")
        try:
            pong_waiter = await self._ws.ping()
            await asyncio.wait_for(pong_waiter, timeout=self.pong_timeout_s)
        except asyncio.TimeoutError as e:
            raise PingError(f"no pong within {self.pong_timeout_s}s") from e
        except (OSError, websockets.WebSocketException) as e:
            raise PingError(f"ping failed: {e!r}") from e

    @property
    def is_closed(self) -> bool:
        if self._closed:
            return True
        return self._ws is not None and self._ws.close_code is not None


class InMemoryTransport(Transport):
    """
    Scripted transport. Inbound frames are fed with `feed_*`; everything the
    connection sends is recorded on the instance. Failures are injected by
    setting `handshake_error`, `send_error` or `ping_error`.
    """

    def __init__(self, handshake_delay_s: float = 0.0):
        self.handshake_delay_s = handshake_delay_s
        self.handshake_error: WebSocketError | None = None
        self.send_error: WebSocketError | None = None
        self.ping_error: WebSocketError | None = None

        self.url: str | None = None
        self.sent: list[Message] = []
        self.close_calls: list[tuple[int, str]] = []
        self.pings = 0
        self.receive_calls = 0
        self.max_concurrent_receives = 0

        self._inbound: asyncio.Queue[Message | WebSocketError] = asyncio.Queue()
        self._receiving = 0
        self._open = False
        self._closed = False

    def feed_text(self, text: str) -> None:
        self._inbound.put_nowait(Message.from_text(text))

    def feed_bytes(self, data: bytes) -> None:
        self._inbound.put_nowait(Message.from_bytes(data))

    def feed_error(self, error: WebSocketError) -> None:
        self._inbound.put_nowait(error)

    def feed_close(self, code: int = 1000, reason: str = "", clean: bool = True) -> None:
        self._inbound.put_nowait(TransportClosed(code, reason, clean))

    def mark_closed(self) -> None:
        """Reports closed from `is_closed` without raising from a pending receive."""
        self._closed = True

    async def open_handshake(self, url: str) -> None:
        self.url = url
        if self.handshake_delay_s:
            await asyncio.sleep(self.handshake_delay_s)
        if self.handshake_error is not None:
            raise self.handshake_error
        self._open = True

    async def close(self, code: int, reason: str) -> None:
        self.close_calls.append((code, reason))
        if not self._closed:
            self._closed = True
            self._inbound.put_nowait(TransportClosed(code, reason, clean=True))

    async def _send(self, message: Message) -> None:
        await asyncio.sleep(0)
        if self.send_error is not None:
            raise self.send_error
        if not self._open or self._closed:
            raise SendError("transport is not connected")
        self.sent.append(message)

    async def send_text(self, text: str) -> None:
        await self._send(Message.from_text(text))

    async def send_binary(self, data: bytes) -> None:
        await self._send(Message.from_bytes(data))

    async def receive_once(self) -> Message:
        self.receive_calls += 1
        self._receiving += 1
        self.max_concurrent_receives = max(self.max_concurrent_receives, self._receiving)
        try:
            item = await self._inbound.get()
        finally:
            self._receiving -= 1
        if isinstance(item, TransportClosed):
            self._closed = True
            raise item
        if isinstance(item, WebSocketError):
            raise item
        return item

    async def send_ping(self) -> None:
        self.pings += 1
        await asyncio.sleep(0)
        if self.ping_error is not None:
            raise self.ping_error
        if not self._open:
            raise PingError("transport is not connected")

    @property
    def is_closed(self) -> bool:
        return self._closed
