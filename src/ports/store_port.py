"""Store port — abstract interface for the remote key-value store.

The data store depends on this protocol, never on a specific backend.
"""

from __future__ import annotations

from typing import Any, Protocol


class StoreError(Exception):
    """Raised when a key-value store operation fails."""


class KeyValueStore(Protocol):
    """Abstract key-value interface holding JSON values."""

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any) -> None: ...
