# tests/test_server.py
from fastapi.testclient import TestClient

from server.main import app


def test_healthz():
    with TestClient(app) as client:
        resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_echo_route_returns_frames_in_order():
    with TestClient(app) as client:
        with client.websocket_connect("/ws/echo?client_id=test-1") as ws:
            ws.send_text("hello")
            ws.send_bytes(b"\x00\x01")
            ws.send_text("bye")
            assert ws.receive_text() == "hello"
            assert ws.receive_bytes() == b"\x00\x01"
            assert ws.receive_text() == "bye"
