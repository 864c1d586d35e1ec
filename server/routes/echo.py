"""
MODULE OVERVIEW:
The echo WebSocket route.

WHAT IS HAPPENING HERE:
Every text frame is sent back as text and every binary frame as binary, in the
order received. It gives the CLI client something real to talk to without any
external service.
"""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query
from loguru import logger

from shared.route_utils import extract_client_id, log_connection

router = APIRouter()

@router.websocket("/ws/echo")
async def echo_endpoint(
    websocket: WebSocket,
    client_id: str | None = Query(None)
):
    cid = await extract_client_id(client_id)
    await websocket.accept()
    await log_connection("echo:connect", cid)

    frames = 0
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            if message.get("text") is not None:
                await websocket.send_text(message["text"])
            elif message.get("bytes") is not None:
                await websocket.send_bytes(message["bytes"])
            frames += 1
            logger.debug(f"client_id={cid} route=echo frames={frames}")
    except WebSocketDisconnect:
        pass
    finally:
        await log_connection("echo:disconnect", cid, {"frames": frames})
