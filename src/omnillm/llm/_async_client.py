"""AsyncClient: the async user-facing entry point."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from typing import Any

from omnillm.llm._assembler import acollect
from omnillm.llm._client import Prompt, normalize_input, normalize_texts
from omnillm.llm._events import StreamEvent
from omnillm.llm._providers import create_provider
from omnillm.llm._tracing import TraceConfig
from omnillm.llm._types import EmbeddingResponse, JsonSchema, Response, Tool


class AsyncClient:
    """Async unified LLM client that delegates to provider-specific implementations.

    Usage::

        from omnillm.llm import AsyncClient

        client = AsyncClient("openai", model="gpt-4o")
        response = await client.chat("Hello!")
        print(response.text)
    """

    def __init__(
        self,
        provider: str,
        *,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        trace: TraceConfig | None = None,
    ) -> None:
        self._provider = create_provider(
            provider, model, api_key, base_url=base_url, trace=trace
        )

    @property
    def provider(self) -> str:
        return self._provider.name

    async def chat(
        self,
        prompt_or_messages: Prompt,
        *,
        system: str | None = None,
        tools: list[Tool] | None = None,
        json_schema: JsonSchema | None = None,
        **kwargs: Any,
    ) -> Response:
        """Send an async chat request and return a unified Response."""
        messages = normalize_input(prompt_or_messages)
        return await self._provider.acomplete(
            messages, system=system, tools=tools, json_schema=json_schema, **kwargs
        )

    async def stream(
        self,
        prompt_or_messages: Prompt,
        *,
        system: str | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[str]:
        """Stream text chunks from the model asynchronously."""
        messages = normalize_input(prompt_or_messages)
        async for chunk in self._provider.astream(messages, system=system, **kwargs):
            yield chunk

    async def stream_events(
        self,
        prompt_or_messages: Prompt,
        *,
        system: str | None = None,
        tools: list[Tool] | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[StreamEvent]:
        """Stream normalized events asynchronously."""
        messages = normalize_input(prompt_or_messages)
        async for event in self._provider.astream_events(
            messages, system=system, tools=tools, **kwargs
        ):
            yield event

    async def stream_response(
        self,
        prompt_or_messages: Prompt,
        *,
        system: str | None = None,
        tools: list[Tool] | None = None,
        **kwargs: Any,
    ) -> Response:
        """Stream the request and assemble the events into a single Response."""
        return await acollect(
            self.stream_events(prompt_or_messages, system=system, tools=tools, **kwargs)
        )

    async def embed(
        self, texts: str | Sequence[str], *, model: str | None = None, **kwargs: Any
    ) -> EmbeddingResponse:
        """Embed one text or a batch of texts."""
        return await self._provider.aembed(normalize_texts(texts), model=model, **kwargs)
