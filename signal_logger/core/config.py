"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development.

Usage:
    from signal_logger.core.config import settings
    print(settings.DEDUPLICATE_INTERVAL_MS)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Library-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Platform ──
    ENVIRONMENT: str = "development"  # value of the injected Environment label

    # ── Diagnostics ──
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL
    LOG_FORMAT: str = "pretty"  # pretty | json
    REPORT_OUTCOMES: bool = False  # log every per-channel outcome

    # ── Engine defaults ──
    LOGGER_ENABLED: bool = True
    DEDUPLICATE_INTERVAL_MS: int = 100

    # ── Telegram channel ──
    TELEGRAM_BOT_TOKEN: Optional[str] = None
    TELEGRAM_CHAT_ID: Optional[str] = None
    TELEGRAM_API_URL: str = "https://api.telegram.org"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
