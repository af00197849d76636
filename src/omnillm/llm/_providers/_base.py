"""Abstract base for LLM providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterator
from typing import Any, ClassVar

from omnillm.llm._async_http import async_post_json, async_stream_bytes
from omnillm.llm._events import ContentDelta, StreamEvent
from omnillm.llm._http import post_json, stream_bytes
from omnillm.llm._payload import WireProtocol
from omnillm.llm._pipeline import aiter_stream_events, iter_stream_events
from omnillm.llm._tracing import NO_TRACE, TraceConfig, trace_request
from omnillm.llm._types import ConversationItem, EmbeddingResponse, JsonSchema, Response, Tool


def _requested_choices(payload: dict[str, Any]) -> int:
    return int(payload.get("n") or 1)


class BaseProvider(ABC):
    """Interface that every provider must implement.

    Subclasses describe the request (URL, headers, body) and parse the
    non-streaming response. Streaming is shared: the body bytes go through a
    :class:`~omnillm.llm._pipeline.StreamPipeline` for the provider's
    ``protocol``.
    """

    protocol: ClassVar[WireProtocol]

    def __init__(self, name: str, model: str, *, trace: TraceConfig | None = None) -> None:
        self.name = name
        self._model = model
        self._trace = trace or NO_TRACE

    @property
    def model(self) -> str:
        return self._model

    @abstractmethod
    def _url(self, *, stream: bool) -> str: ...

    @abstractmethod
    def _headers(self) -> dict[str, str]: ...

    @abstractmethod
    def _build_payload(
        self,
        messages: list[ConversationItem],
        *,
        system: str | None = None,
        tools: list[Tool] | None = None,
        json_schema: JsonSchema | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]: ...

    @abstractmethod
    def _parse_response(self, raw: dict[str, Any]) -> Response: ...

    def _enable_streaming(self, payload: dict[str, Any]) -> None:
        payload["stream"] = True

    def _embed_request(
        self, texts: list[str], model: str | None, kwargs: dict[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        """Return the ``(url, payload)`` of an embeddings request."""
        raise NotImplementedError(f"Provider {self.name!r} does not support embeddings.")

    def _parse_embeddings(self, raw: dict[str, Any]) -> EmbeddingResponse:
        raise NotImplementedError(f"Provider {self.name!r} does not support embeddings.")

    def _stream_request(
        self,
        messages: list[ConversationItem],
        system: str | None,
        tools: list[Tool] | None,
        kwargs: dict[str, Any],
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        payload = self._build_payload(messages, system=system, tools=tools, **kwargs)
        self._enable_streaming(payload)
        url, headers = self._url(stream=True), self._headers()
        trace_request(url, headers, self._trace)
        return url, headers, payload

    def complete(
        self,
        messages: list[ConversationItem],
        *,
        system: str | None = None,
        tools: list[Tool] | None = None,
        json_schema: JsonSchema | None = None,
        **kwargs: Any,
    ) -> Response:
        timeout = kwargs.pop("timeout", 60)
        payload = self._build_payload(
            messages, system=system, tools=tools, json_schema=json_schema, **kwargs
        )
        url, headers = self._url(stream=False), self._headers()
        trace_request(url, headers, self._trace)
        return self._parse_response(post_json(url, headers, payload, timeout=timeout))

    def stream_events(
        self,
        messages: list[ConversationItem],
        *,
        system: str | None = None,
        tools: list[Tool] | None = None,
        **kwargs: Any,
    ) -> Iterator[StreamEvent]:
        timeout = kwargs.pop("timeout", 120)
        url, headers, payload = self._stream_request(messages, system, tools, kwargs)
        yield from iter_stream_events(
            stream_bytes(url, headers, payload, timeout=timeout),
            self.protocol,
            provider=self.name,
            choices=_requested_choices(payload),
            trace=self._trace,
        )

    def embed(
        self, texts: list[str], *, model: str | None = None, **kwargs: Any
    ) -> EmbeddingResponse:
        """Embed ``texts`` in one request; vectors come back in input order."""
        timeout = kwargs.pop("timeout", 60)
        url, payload = self._embed_request(texts, model, kwargs)
        headers = self._headers()
        trace_request(url, headers, self._trace)
        return self._parse_embeddings(post_json(url, headers, payload, timeout=timeout))

    def stream(
        self,
        messages: list[ConversationItem],
        *,
        system: str | None = None,
        **kwargs: Any,
    ) -> Iterator[str]:
        for event in self.stream_events(messages, system=system, **kwargs):
            if isinstance(event, ContentDelta) and event.index == 0:
                yield event.text

    async def acomplete(
        self,
        messages: list[ConversationItem],
        *,
        system: str | None = None,
        tools: list[Tool] | None = None,
        json_schema: JsonSchema | None = None,
        **kwargs: Any,
    ) -> Response:
        timeout = kwargs.pop("timeout", 60)
        payload = self._build_payload(
            messages, system=system, tools=tools, json_schema=json_schema, **kwargs
        )
        url, headers = self._url(stream=False), self._headers()
        trace_request(url, headers, self._trace)
        raw = await async_post_json(url, headers, payload, timeout=timeout)
        return self._parse_response(raw)

    async def aembed(
        self, texts: list[str], *, model: str | None = None, **kwargs: Any
    ) -> EmbeddingResponse:
        timeout = kwargs.pop("timeout", 60)
        url, payload = self._embed_request(texts, model, kwargs)
        headers = self._headers()
        trace_request(url, headers, self._trace)
        raw = await async_post_json(url, headers, payload, timeout=timeout)
        return self._parse_embeddings(raw)

    async def astream_events(
        self,
        messages: list[ConversationItem],
        *,
        system: str | None = None,
        tools: list[Tool] | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[StreamEvent]:
        timeout = kwargs.pop("timeout", 120)
        url, headers, payload = self._stream_request(messages, system, tools, kwargs)
        async for event in aiter_stream_events(
            async_stream_bytes(url, headers, payload, timeout=timeout),
            self.protocol,
            provider=self.name,
            choices=_requested_choices(payload),
            trace=self._trace,
        ):
            yield event

    async def astream(
        self,
        messages: list[ConversationItem],
        *,
        system: str | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[str]:
        async for event in self.astream_events(messages, system=system, **kwargs):
            if isinstance(event, ContentDelta) and event.index == 0:
                yield event.text
