"""Thin HTTP helpers around ``requests``."""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from typing import Any

import requests

from omnillm.llm._exceptions import APIError, RateLimitError


def _retry_after(raw: str | None) -> float | None:
    if raw is None:
        return None
    with contextlib.suppress(ValueError, TypeError):
        return float(raw)
    return None


def _raise_for_status(r: requests.Response) -> None:
    if not r.ok:
        try:
            body: dict[str, Any] | str = r.json()
        except Exception:
            body = r.text
        if r.status_code == 429:
            raise RateLimitError(r.status_code, body, _retry_after(r.headers.get("Retry-After")))
        raise APIError(r.status_code, body)


def post_json(
    url: str,
    headers: dict[str, str],
    payload: dict[str, Any],
    timeout: int = 60,
) -> dict[str, Any]:
    """POST JSON and return the parsed response, raising on HTTP errors."""
    r = requests.post(url, headers=headers, json=payload, timeout=timeout)
    _raise_for_status(r)
    return r.json()


def stream_bytes(
    url: str,
    headers: dict[str, str],
    payload: dict[str, Any],
    timeout: int = 120,
) -> Iterator[bytes]:
    """POST and yield the raw response body as it arrives.

    Chunks are passed through untouched: they may end mid-line or in the
    middle of a multi-byte character. Framing and decoding belong to
    :class:`~omnillm.llm._pipeline.StreamPipeline`.
    """
    with requests.post(url, headers=headers, json=payload, stream=True, timeout=timeout) as r:
        _raise_for_status(r)
        for chunk in r.iter_content(chunk_size=None):
            if chunk:
                yield chunk
