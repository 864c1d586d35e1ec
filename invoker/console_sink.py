"""
MODULE OVERVIEW:
A terminal sink built on Rich.

WHAT IS HAPPENING HERE:
Every callback prints one timestamped, colour-coded line, and the last few
lifecycle transitions are kept in a small timeline so the CLI can print a
summary panel once the session ends.
"""

from collections import deque
from datetime import datetime

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from invoker.connection import WebSocketConnection
from invoker.sink import ConnectionSink

PREVIEW_CHARS = 60


def _preview(payload: str | bytes) -> str:
    text = payload if isinstance(payload, str) else payload.hex(" ")
    return text[:PREVIEW_CHARS] + "..." if len(text) > PREVIEW_CHARS else text


class ConsoleSink(ConnectionSink):
    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self.timeline = deque(maxlen=5)
        self.errors = 0

    def _line(self, style: str, label: str, detail: str = ""):
        ts = datetime.now().strftime("%H:%M:%S")
        self.console.print(f"[cyan]{ts}[/] [{style}]{label:<12}[/] {escape(detail)}", highlight=False)

    def _status(self, status: str):
        ts = datetime.now().strftime("%H:%M:%S")
        self.timeline.appendleft(f"[{ts}] State: {status}")

    async def on_connected(self, connection: WebSocketConnection) -> None:
        self._status("OPEN")
        self._line("green bold", "CONNECTED", connection.url)

    async def on_disconnected(self, connection: WebSocketConnection, error: Exception | None) -> None:
        self._status("CLOSED")
        self._line("yellow bold", "DISCONNECTED", str(error) if error else "")

    async def on_error(self, connection: WebSocketConnection, error: Exception) -> None:
        self.errors += 1
        self._status(f"ERROR {type(error).__name__}")
        self._line("red bold", "ERROR", str(error))

    async def on_message_text(self, connection: WebSocketConnection, text: str) -> None:
        self._line("magenta", "TEXT", _preview(text))

    async def on_message_binary(self, connection: WebSocketConnection, data: bytes) -> None:
        self._line("blue", "BINARY", f"{len(data)} bytes {_preview(data)}")

    def summary(self, connection: WebSocketConnection) -> Panel:
        table = Table(expand=True, show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("State", connection.state.value)
        for key, value in connection.stats.items():
            table.add_row(key.replace("_", " ").title(), str(value))
        table.add_row("Errors Reported", str(self.errors))
        table.add_row("Timeline", "\n".join(self.timeline))
        return Panel(table, title="Connection Stats")
