"""
MODULE OVERVIEW:
The typed data structures shared by the connection, its transports and its sinks,
powered by Pydantic v2.

WHAT IS HAPPENING HERE:
A frame coming off the wire is either text or binary. Instead of passing raw
`str | bytes` around and sniffing the type at every call site, the transport
wraps each frame in an immutable `Message` whose `kind` tag always agrees with
the payload type.
"""
from enum import Enum
from typing import Literal
from pydantic import BaseModel, ConfigDict, model_validator

# WHAT IS HAPPENING HERE:
# The lifecycle of a single connection. Transitions only move forward:
# idle -> connecting -> open -> closing -> closed, with open -> closed allowed
# directly when the peer goes away or a receive fails. Nothing leaves CLOSED.
class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class Message(BaseModel):
    model_config = ConfigDict(frozen=True, strict=True)

    kind: Literal["text", "binary"]
    payload: str | bytes

    @model_validator(mode="after")
    def _kind_matches_payload(self) -> "Message":
        expected = "text" if isinstance(self.payload, str) else "binary"
        if self.kind != expected:
            raise ValueError(f"kind={self.kind} does not match payload type {type(self.payload).__name__}")
        return self

    @classmethod
    def from_text(cls, text: str) -> "Message":
        return cls(kind="text", payload=text)

    @classmethod
    def from_bytes(cls, data: bytes | bytearray | memoryview) -> "Message":
        return cls(kind="binary", payload=bytes(data))

    @property
    def is_text(self) -> bool:
        return self.kind == "text"

    @property
    def size(self) -> int:
        """Payload size in bytes, as it travels on the wire."""
        if isinstance(self.payload, str):
            return len(self.payload.encode("utf-8"))
        return len(self.payload)
