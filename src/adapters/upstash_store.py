"""Upstash Redis adapter — implements KeyValueStore over the REST API.

Values are stored as JSON strings: ``POST /set/<key>`` with the serialized
value as the request body, ``GET /get/<key>`` returning ``{"result": ...}``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from src.ports.store_port import StoreError

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 10


class UpstashStore:
    """Upstash REST implementation of KeyValueStore."""

    def __init__(self, base_url: str, token: str) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {token}"}

    async def get(self, key: str) -> Any | None:
        """Fetch and decode the JSON value at *key*; None when absent."""
        url = f"{self._base_url}/get/{key}"
        try:
            async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
                resp = await client.get(url, headers=self._headers)
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPStatusError as exc:
            raise StoreError(
                f"GET {key} failed: {exc.response.status_code} {exc.response.text}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise StoreError(f"GET {key} failed: {exc}") from exc

        raw = payload.get("result")
        if not raw:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise StoreError(f"GET {key} returned undecodable value: {exc}") from exc

    async def set(self, key: str, value: Any) -> None:
        """Serialize *value* to JSON and store it at *key*."""
        url = f"{self._base_url}/set/{key}"
        try:
            async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
                resp = await client.post(
                    url, headers=self._headers, content=json.dumps(value),
                )
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise StoreError(
                f"SET {key} failed: {exc.response.status_code} {exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise StoreError(f"SET {key} failed: {exc}") from exc
        logger.debug("SET %s ok", key)
