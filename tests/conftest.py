import asyncio
import sys
from pathlib import Path
from typing import Callable

import pytest

# --- Make sure the project root is importable when running without an install ---
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from invoker.sink import ConnectionSink  # noqa: E402
from invoker.transport import InMemoryTransport  # noqa: E402


class RecordingSink(ConnectionSink):
    """Records every callback as (name, value). Optional hooks run after recording."""

    def __init__(self):
        self.events: list[tuple[str, object]] = []
        self.on_text_hook: Callable | None = None
        self.on_connected_hook: Callable | None = None

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def of(self, name: str) -> list[object]:
        return [value for event, value in self.events if event == name]

    async def on_connected(self, connection):
        self.events.append(("connected", None))
        if self.on_connected_hook:
            self.on_connected_hook(connection)

    async def on_disconnected(self, connection, error):
        self.events.append(("disconnected", error))

    async def on_error(self, connection, error):
        self.events.append(("error", error))

    async def on_message_text(self, connection, text):
        self.events.append(("text", text))
        if self.on_text_hook:
            self.on_text_hook(connection, text)

    async def on_message_binary(self, connection, data):
        self.events.append(("binary", data))


async def eventually(condition: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yields to the loop until `condition()` holds, failing after `timeout` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met within timeout")
        await asyncio.sleep(0.005)


async def settle(rounds: int = 20) -> None:
    """Gives pending tasks a chance to run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def transport() -> InMemoryTransport:
    return InMemoryTransport()
