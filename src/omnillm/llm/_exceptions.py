"""Exceptions raised by the LLM client and the streaming pipeline."""

from __future__ import annotations

from typing import Any


class OmniLLMError(Exception):
    """Base class for every error raised by omnillm."""


class APIError(OmniLLMError):
    """Raised when an LLM provider returns an HTTP error."""

    def __init__(self, status_code: int, body: dict[str, Any] | str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code}: {body}")


class RateLimitError(APIError):
    """Raised on HTTP 429; carries the server's ``retry_after`` when given."""

    def __init__(
        self,
        status_code: int,
        body: dict[str, Any] | str,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(status_code, body)
        self.retry_after = retry_after


class StreamClosedError(OmniLLMError):
    """Raised when bytes are fed to a pipeline that has already finished."""
