"""
Reminder Bot — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # Upstash Redis (REST API)
    UPSTASH_REDIS_REST_URL: str
    UPSTASH_REDIS_REST_TOKEN: str
    DATA_KEY: str = "reminder_bot_data"

    # Health check
    PORT: int = 8000

    # Background jobs
    REMINDER_CHECK_SECONDS: int = 60
    STALE_STATE_MINUTES: int = 30

    # "I don't understand" excuses
    EXCUSE_API_URL: str = "https://naas.isalman.dev/no"

    # Security — empty means the bot answers everyone
    ALLOWED_USER_IDS: list[int] = []

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("UPSTASH_REDIS_REST_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


def _require(*names: str) -> str:
    """Return the first non-empty env var among *names*, or exit."""
    for name in names:
        value = os.getenv(name, "")
        if value and not value.startswith("your-"):
            return value
    print(f"ERROR: {names[0]} is missing or not set in .env", file=sys.stderr)
    sys.exit(1)


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = _require("TELEGRAM_BOT_TOKEN")
    redis_url = _require("UPSTASH_REDIS_REST_URL", "UPSTASH_REDIS_URL")
    redis_token = _require("UPSTASH_REDIS_REST_TOKEN", "UPSTASH_REDIS_TOKEN")

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        UPSTASH_REDIS_REST_URL=redis_url,
        UPSTASH_REDIS_REST_TOKEN=redis_token,
        DATA_KEY=os.getenv("DATA_KEY", "reminder_bot_data"),
        PORT=os.getenv("PORT", "8000"),
        REMINDER_CHECK_SECONDS=os.getenv("REMINDER_CHECK_SECONDS", "60"),
        STALE_STATE_MINUTES=os.getenv("STALE_STATE_MINUTES", "30"),
        EXCUSE_API_URL=os.getenv("EXCUSE_API_URL", "https://naas.isalman.dev/no"),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
    )


# Singleton — imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
