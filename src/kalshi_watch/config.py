"""
Service configuration.

Values come from the environment (a ``.env`` file is loaded first when present).
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

DEFAULT_BASE_URL = "https://demo-api.kalshi.co"
WS_PATH = "/trade-api/ws/v2"


def _optional(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the watcher service."""

    kalshi_base_url: str = DEFAULT_BASE_URL
    kalshi_ws_url: str | None = None
    request_timeout: float = 15.0
    notify_webhook_url: str | None = None
    database_url: str = "sqlite:///./kalshi_watch.db"
    encryption_key: str = field(default="", repr=False)
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8001

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        return cls(
            kalshi_base_url=os.getenv("KALSHI_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            kalshi_ws_url=_optional("KALSHI_WS_URL"),
            request_timeout=float(os.getenv("KALSHI_REQUEST_TIMEOUT", "15")),
            notify_webhook_url=_optional("NOTIFY_WEBHOOK_URL"),
            database_url=os.getenv("DATABASE_URL", "sqlite:///./kalshi_watch.db"),
            encryption_key=os.getenv("ENCRYPTION_KEY", ""),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            host=os.getenv("HOST", "127.0.0.1"),
            port=int(os.getenv("PORT", "8001")),
        )

    @property
    def stream_url(self) -> str:
        """WebSocket URL; derived from the REST base URL unless set explicitly."""
        if self.kalshi_ws_url:
            return self.kalshi_ws_url
        base = self.kalshi_base_url.replace("https://", "wss://", 1).replace(
            "http://", "ws://", 1
        )
        return base + WS_PATH


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, read once."""
    return Settings.from_env()
