"""
MODULE OVERVIEW:
The FastAPI application for the local echo server.

WHAT IS HAPPENING HERE:
A single WebSocket route plus a health check. `runner.py server` serves this
app with Uvicorn so `runner.py client` has a peer to connect to.
"""

from fastapi import FastAPI
from contextlib import asynccontextmanager
from loguru import logger

from server.routes import echo

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Echo server starting up...")
    yield
    logger.info("Shutdown complete.")


app = FastAPI(
    title="Socket Invoker Echo Server",
    description="Echoes WebSocket text and binary frames back to the sender",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(echo.router, tags=["WebSocket"])

@app.get("/healthz", tags=["Ops"])
async def health_check():
    return {"status": "ok"}
