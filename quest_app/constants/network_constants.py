"""Bind address and server settings for the quest API."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8000
SERVER_THREAD_NAME: str = "QuestApiServer"
UVICORN_LOG_LEVEL: str = "info"
