"""
MODULE OVERVIEW:
Application-wide configuration using Pydantic Settings.

WHAT IS HAPPENING HERE:
Every timing the connection depends on lives here: how often we ping, how long we
wait for a pong, how long the handshake and the closing handshake may take.
Values can be overridden with environment variables or a `.env` file, and every
constructor that reads them also accepts an explicit override.
"""
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Default target for the CLI client (the bundled echo server)
    WS_URL: str = "ws://127.0.0.1:8000/ws/echo"

    # Keep-alive
    WS_PING_INTERVAL_S: float = 10.0
    WS_PONG_TIMEOUT_S: float = 5.0

    # Transport handshakes
    WS_OPEN_TIMEOUT_S: float = 10.0
    WS_CLOSE_TIMEOUT_S: float = 5.0

    # External reconnect helper
    RECONNECT_BASE_DELAY_S: float = 1.0
    RECONNECT_MAX_DELAY_S: float = 32.0

    class Config:
        env_file = ".env"
        # Tolerate missing env vars to allow easy out-of-the-box execution
        env_file_encoding = 'utf-8'
        extra = 'ignore'

settings = Settings()
