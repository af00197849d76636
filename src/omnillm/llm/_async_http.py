"""Async HTTP helpers using ``httpx``."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import httpx

from omnillm.llm._exceptions import APIError, RateLimitError
from omnillm.llm._http import _retry_after


def _raise_for_status_httpx(r: httpx.Response) -> None:
    if r.is_success:
        return
    try:
        body: dict[str, Any] | str = r.json()
    except Exception:
        body = r.text
    if r.status_code == 429:
        raise RateLimitError(r.status_code, body, _retry_after(r.headers.get("Retry-After")))
    raise APIError(r.status_code, body)


async def async_post_json(
    url: str,
    headers: dict[str, str],
    payload: dict[str, Any],
    timeout: int = 60,
) -> dict[str, Any]:
    """POST JSON asynchronously and return the parsed response."""
    async with httpx.AsyncClient() as client:
        r = await client.post(url, headers=headers, json=payload, timeout=timeout)
        _raise_for_status_httpx(r)
        return r.json()


async def async_stream_bytes(
    url: str,
    headers: dict[str, str],
    payload: dict[str, Any],
    timeout: int = 120,
) -> AsyncIterator[bytes]:
    """POST and yield raw body chunks asynchronously, exactly as received."""
    async with (
        httpx.AsyncClient() as client,
        client.stream("POST", url, headers=headers, json=payload, timeout=timeout) as r,
    ):
        if not r.is_success:
            await r.aread()
            _raise_for_status_httpx(r)
        async for chunk in r.aiter_bytes():
            if chunk:
                yield chunk
