"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides common fixtures like an in-memory key-value client.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("UPSTASH_REDIS_REST_URL", "https://fake.upstash.io")
os.environ.setdefault("UPSTASH_REDIS_REST_TOKEN", "fake-upstash-token")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest


class FakeKV:
    """In-memory KeyValueStore; records every SET."""

    def __init__(self, initial=None):
        self.values = dict(initial or {})
        self.get = AsyncMock(side_effect=self._get)
        self.set = AsyncMock(side_effect=self._set)

    async def _get(self, key):
        return self.values.get(key)

    async def _set(self, key, value):
        self.values[key] = value


def ms(*args) -> int:
    """Epoch millis for a UTC datetime(*args)."""
    return int(datetime(*args, tzinfo=timezone.utc).timestamp() * 1000)


@pytest.fixture
def kv():
    return FakeKV()


@pytest.fixture
def data_store(kv):
    """A DataStore over an empty in-memory client."""
    from src.data.db import DataStore
    return DataStore(kv)
