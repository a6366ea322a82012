from __future__ import annotations

from pathlib import Path

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_BASE_URL: str = "http://localhost:8080"
    API_PREFIX: str = "/api"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    WS_URL: str | None = "ws://localhost:8080/ws/chat"
    WS_HEARTBEAT_SECONDS: int = 30
    WS_RECONNECT_MAX_SECONDS: float = 5.0

    MESSAGES_PAGE_SIZE: int = 50
    SEARCH_PAGE_SIZE: int = 20

    BOT_REPLY_DELAY_SECONDS: float = 1.0

    TOKEN_FILE: str = "~/.chat_client/token"

    LOG_LEVEL: str = "INFO"

    CHAT_USERNAME: str | None = None
    CHAT_PASSWORD: str | None = None

    @property
    def api_url(self) -> str:
        return f"{self.API_BASE_URL.rstrip('/')}{self.API_PREFIX}"

    @property
    def token_path(self) -> Path:
        return Path(self.TOKEN_FILE).expanduser()

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
