from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from invoker.connection import WebSocketConnection


class ConnectionSink(ABC):
    """
    Receives lifecycle and message events from a `WebSocketConnection`.

    The connection only keeps a weak reference to its sink, so whoever creates
    the sink must keep it alive. Callbacks are awaited one at a time, in the
    order the events happened, and may call back into the connection
    (for example `connection.disconnect()` from inside `on_message_text`).
    """

    @abstractmethod
    async def on_connected(self, connection: "WebSocketConnection") -> None:
        pass

    @abstractmethod
    async def on_disconnected(self, connection: "WebSocketConnection", error: Exception | None) -> None:
        pass

    @abstractmethod
    async def on_error(self, connection: "WebSocketConnection", error: Exception) -> None:
        pass

    @abstractmethod
    async def on_message_text(self, connection: "WebSocketConnection", text: str) -> None:
        pass

    @abstractmethod
    async def on_message_binary(self, connection: "WebSocketConnection", data: bytes) -> None:
        pass
