# tests/test_config.py
import pytest

from conftest import RecordingSink
from invoker.connection import WebSocketConnection
from invoker.transport import InMemoryTransport, WebsocketsTransport
from shared.config import Settings, settings


def test_defaults():
    s = Settings(_env_file=None)
    assert s.WS_PING_INTERVAL_S == 10.0
    assert s.WS_PONG_TIMEOUT_S == 5.0
    assert s.RECONNECT_BASE_DELAY_S < s.RECONNECT_MAX_DELAY_S


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("WS_PING_INTERVAL_S", "2.5")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    s = Settings(_env_file=None)
    assert s.WS_PING_INTERVAL_S == 2.5
    assert s.LOG_LEVEL == "DEBUG"


@pytest.mark.asyncio
async def test_connection_and_transport_read_settings_unless_overridden():
    sink = RecordingSink()
    default = WebSocketConnection("ws://x.test", sink)
    assert default.ping_interval_s == settings.WS_PING_INTERVAL_S
    assert isinstance(default.transport, WebsocketsTransport)
    assert default.transport.pong_timeout_s == settings.WS_PONG_TIMEOUT_S

    custom = WebSocketConnection("ws://x.test", sink, transport=InMemoryTransport(), ping_interval_s=0.5)
    assert custom.ping_interval_s == 0.5

    transport = WebsocketsTransport(open_timeout_s=1.0, close_timeout_s=2.0, pong_timeout_s=3.0)
    assert (transport.open_timeout_s, transport.close_timeout_s, transport.pong_timeout_s) == (1.0, 2.0, 3.0)
