"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest

from omnillm.llm._types import Tool


@pytest.fixture
def weather_tool() -> Tool:
    return Tool(
        name="get_weather",
        description="Get current weather for a city",
        parameters={
            "type": "object",
            "properties": {"city": {"type": "string"}},
            "required": ["city"],
        },
    )


def sse_body(*payloads: str, done: bool = False) -> bytes:
    """Encode ``payloads`` as SSE ``data:`` events."""
    body = "".join(f"data: {p}\n\n" for p in payloads)
    if done:
        body += "data: [DONE]\n\n"
    return body.encode()


def split_every(data: bytes, size: int) -> list[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]


class MockResponse:
    """Mimics ``requests.Response`` for testing post_json / stream_bytes."""

    def __init__(
        self,
        json_data: dict[str, Any] | None = None,
        status_code: int = 200,
        text: str = "",
        chunks: list[bytes] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.status_code = status_code
        self._json_data = json_data
        self.text = text or ""
        self.ok = 200 <= status_code < 300
        self._chunks = chunks or []
        self.headers: dict[str, str] = headers or {}

    def json(self) -> dict[str, Any]:
        if self._json_data is None:
            raise ValueError("No JSON")
        return self._json_data

    def iter_content(self, chunk_size: int | None = None) -> list[bytes]:
        return self._chunks

    def __enter__(self) -> MockResponse:
        return self

    def __exit__(self, *args: object) -> None:
        pass


@pytest.fixture
def mock_post(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Monkeypatch ``requests.post`` and return the mock."""
    mock = MagicMock()
    monkeypatch.setattr("requests.post", mock)
    return mock


_REAL_ASYNC_CLIENT = httpx.AsyncClient

type Handler = Callable[[httpx.Request], httpx.Response]


async def achunks(chunks: list[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


@pytest.fixture
def async_handler(monkeypatch: pytest.MonkeyPatch) -> Callable[[Handler], list[httpx.Request]]:
    """Route ``httpx.AsyncClient`` through a ``MockTransport``.

    Call the fixture with a handler; it returns the list of requests seen.
    """

    def install(handler: Handler) -> list[httpx.Request]:
        seen: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        transport = httpx.MockTransport(record)
        monkeypatch.setattr(
            "omnillm.llm._async_http.httpx.AsyncClient",
            lambda *args, **kwargs: _REAL_ASYNC_CLIENT(*args, transport=transport, **kwargs),
        )
        return seen

    return install
