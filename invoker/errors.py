"""
Error taxonomy for a single WebSocket connection.

Transports translate library exceptions into these, chaining the original
with `raise ... from exc`, so sinks never have to know which library sits
underneath.
"""

__all__ = [
    "WebSocketError",
    "HandshakeError",
    "SendError",
    "ReceiveError",
    "PingError",
    "TransportClosed",
]

# RFC 6455 close codes used by the connection
NORMAL_CLOSURE = 1000
GOING_AWAY = 1001


class WebSocketError(Exception):
    """Base class for every failure reported by a connection."""
    pass


class HandshakeError(WebSocketError):
    """The opening handshake failed or timed out."""
    pass


class SendError(WebSocketError):
    """A text or binary frame could not be sent."""
    pass


class ReceiveError(WebSocketError):
    """Receiving the next frame failed for a reason other than closure."""
    pass


class PingError(WebSocketError):
    """A keep-alive ping failed or its pong never arrived."""
    pass


class TransportClosed(WebSocketError):
    """The transport reported that the connection is closed."""

    def __init__(self, code: int | None = None, reason: str = "", clean: bool = True):
        self.code = code
        self.reason = reason
        self.clean = clean
        super().__init__(f"connection closed code={code} reason='{reason}' clean={clean}")
