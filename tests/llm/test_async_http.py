"""Tests for _async_http.py helpers."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from omnillm.llm._async_http import async_post_json, async_stream_bytes
from omnillm.llm._exceptions import APIError, RateLimitError
from tests.conftest import Handler, achunks

type Install = Callable[[Handler], list[httpx.Request]]


async def test_async_post_json_success(async_handler: Install) -> None:
    seen = async_handler(lambda request: httpx.Response(200, json={"result": "ok"}))
    result = await async_post_json("https://example.com", {"Auth": "key"}, {"q": "test"})
    assert result == {"result": "ok"}
    assert json.loads(seen[0].content) == {"q": "test"}
    assert seen[0].headers["Auth"] == "key"


async def test_async_post_json_api_error(async_handler: Install) -> None:
    async_handler(lambda request: httpx.Response(400, json={"error": "bad"}))
    with pytest.raises(APIError) as exc_info:
        await async_post_json("https://example.com", {}, {})
    assert exc_info.value.status_code == 400
    assert exc_info.value.body == {"error": "bad"}


async def test_async_post_json_non_json_error(async_handler: Install) -> None:
    async_handler(lambda request: httpx.Response(502, text="Bad Gateway"))
    with pytest.raises(APIError) as exc_info:
        await async_post_json("https://example.com", {}, {})
    assert exc_info.value.body == "Bad Gateway"


async def test_async_post_json_rate_limit(async_handler: Install) -> None:
    async_handler(
        lambda request: httpx.Response(
            429, json={"error": "rate limited"}, headers={"Retry-After": "3"}
        )
    )
    with pytest.raises(RateLimitError) as exc_info:
        await async_post_json("https://example.com", {}, {})
    assert exc_info.value.status_code == 429
    assert exc_info.value.retry_after == 3.0


async def test_async_stream_bytes_yields_body(async_handler: Install) -> None:
    chunks = [b"data: {\"a\"", b": 1}\n", b"\n"]
    async_handler(lambda request: httpx.Response(200, content=achunks(chunks)))
    received = [c async for c in async_stream_bytes("https://example.com", {}, {})]
    assert b"".join(received) == b"".join(chunks)


async def test_async_stream_bytes_error_reads_body(async_handler: Install) -> None:
    async_handler(lambda request: httpx.Response(401, json={"error": "unauthorized"}))
    with pytest.raises(APIError) as exc_info:
        async for _ in async_stream_bytes("https://example.com", {}, {}):
            pass
    assert exc_info.value.status_code == 401
    assert exc_info.value.body == {"error": "unauthorized"}


async def test_async_stream_bytes_rate_limit(async_handler: Install) -> None:
    async_handler(
        lambda request: httpx.Response(429, text="slow down", headers={"Retry-After": "2"})
    )
    with pytest.raises(RateLimitError) as exc_info:
        async for _ in async_stream_bytes("https://example.com", {}, {}):
            pass
    assert exc_info.value.retry_after == 2.0
