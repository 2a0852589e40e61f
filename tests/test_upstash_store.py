"""Tests for src.adapters.upstash_store — Upstash REST key-value client."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from src.adapters.upstash_store import UpstashStore
from src.ports.store_port import StoreError

BASE = "https://fake.upstash.io"


def _client(response=None, error=None):
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    if error is not None:
        mock_client.get = AsyncMock(side_effect=error)
        mock_client.post = AsyncMock(side_effect=error)
    else:
        mock_client.get = AsyncMock(return_value=response)
        mock_client.post = AsyncMock(return_value=response)
    return mock_client


def _response(payload=None, status_error=None):
    resp = MagicMock()
    resp.json.return_value = payload
    resp.raise_for_status = MagicMock(side_effect=status_error)
    return resp


def _status_error(code=401):
    request = httpx.Request("GET", f"{BASE}/get/k")
    response = httpx.Response(code, text="unauthorized", request=request)
    return httpx.HTTPStatusError("bad status", request=request, response=response)


class TestGet:
    @pytest.mark.asyncio
    async def test_decodes_json_string_result(self):
        client = _client(_response({"result": json.dumps({"reminders": []})}))
        with patch("src.adapters.upstash_store.httpx.AsyncClient", return_value=client):
            value = await UpstashStore(BASE + "/", "tok").get("k")

        assert value == {"reminders": []}
        url = client.get.await_args.args[0]
        assert url == f"{BASE}/get/k"
        assert client.get.await_args.kwargs["headers"] == {"Authorization": "Bearer tok"}

    @pytest.mark.asyncio
    async def test_missing_key_returns_none(self):
        client = _client(_response({"result": None}))
        with patch("src.adapters.upstash_store.httpx.AsyncClient", return_value=client):
            assert await UpstashStore(BASE, "tok").get("k") is None

    @pytest.mark.asyncio
    async def test_http_status_error_raises_store_error(self):
        client = _client(_response(status_error=_status_error()))
        with patch("src.adapters.upstash_store.httpx.AsyncClient", return_value=client):
            with pytest.raises(StoreError, match="401"):
                await UpstashStore(BASE, "tok").get("k")

    @pytest.mark.asyncio
    async def test_network_error_raises_store_error(self):
        client = _client(error=httpx.ConnectError("refused"))
        with patch("src.adapters.upstash_store.httpx.AsyncClient", return_value=client):
            with pytest.raises(StoreError):
                await UpstashStore(BASE, "tok").get("k")

    @pytest.mark.asyncio
    async def test_undecodable_value_raises_store_error(self):
        client = _client(_response({"result": "{not json"}))
        with patch("src.adapters.upstash_store.httpx.AsyncClient", return_value=client):
            with pytest.raises(StoreError):
                await UpstashStore(BASE, "tok").get("k")


class TestSet:
    @pytest.mark.asyncio
    async def test_posts_serialized_value(self):
        client = _client(_response({"result": "OK"}))
        with patch("src.adapters.upstash_store.httpx.AsyncClient", return_value=client):
            await UpstashStore(BASE, "tok").set("k", {"todos": {"42": []}})

        call = client.post.await_args
        assert call.args[0] == f"{BASE}/set/k"
        assert json.loads(call.kwargs["content"]) == {"todos": {"42": []}}

    @pytest.mark.asyncio
    async def test_failure_raises_store_error(self):
        client = _client(_response(status_error=_status_error(500)))
        with patch("src.adapters.upstash_store.httpx.AsyncClient", return_value=client):
            with pytest.raises(StoreError, match="500"):
                await UpstashStore(BASE, "tok").set("k", {})
