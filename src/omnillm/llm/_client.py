"""Client: the main user-facing entry point."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import Any

from omnillm.llm._assembler import collect
from omnillm.llm._events import StreamEvent
from omnillm.llm._providers import create_provider
from omnillm.llm._tracing import TraceConfig
from omnillm.llm._types import (
    ConversationItem,
    EmbeddingResponse,
    JsonSchema,
    Message,
    Response,
    Tool,
    ToolResult,
)

type Prompt = str | Sequence[dict[str, str] | Message | ToolResult]


def normalize_input(prompt_or_messages: Prompt) -> list[ConversationItem]:
    if isinstance(prompt_or_messages, str):
        return [Message(role="user", content=prompt_or_messages)]
    items: list[ConversationItem] = []
    for m in prompt_or_messages:
        if isinstance(m, (Message, ToolResult)):
            items.append(m)
        else:
            items.append(Message(role=m["role"], content=m["content"]))
    return items


def normalize_texts(texts: str | Sequence[str]) -> list[str]:
    if isinstance(texts, str):
        return [texts]
    if not texts:
        raise ValueError("embed() needs at least one text.")
    return list(texts)


class Client:
    """Unified LLM client that delegates to provider-specific implementations.

    Usage::

        from omnillm.llm import Client

        client = Client("openai", model="gpt-4o")
        response = client.chat("Hello!")
        print(response.text)

        for event in client.stream_events("Tell me a story"):
            ...
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

    def chat(
        self,
        prompt_or_messages: Prompt,
        *,
        system: str | None = None,
        tools: list[Tool] | None = None,
        json_schema: JsonSchema | None = None,
        **kwargs: Any,
    ) -> Response:
        """Send a chat request and return a unified Response."""
        messages = normalize_input(prompt_or_messages)
        return self._provider.complete(
            messages, system=system, tools=tools, json_schema=json_schema, **kwargs
        )

    def stream(
        self,
        prompt_or_messages: Prompt,
        *,
        system: str | None = None,
        **kwargs: Any,
    ) -> Iterator[str]:
        """Stream text chunks from the model."""
        messages = normalize_input(prompt_or_messages)
        yield from self._provider.stream(messages, system=system, **kwargs)

    def stream_events(
        self,
        prompt_or_messages: Prompt,
        *,
        system: str | None = None,
        tools: list[Tool] | None = None,
        **kwargs: Any,
    ) -> Iterator[StreamEvent]:
        """Stream normalized events (content, thinking, tool calls, usage, end, errors)."""
        messages = normalize_input(prompt_or_messages)
        yield from self._provider.stream_events(messages, system=system, tools=tools, **kwargs)

    def stream_response(
        self,
        prompt_or_messages: Prompt,
        *,
        system: str | None = None,
        tools: list[Tool] | None = None,
        **kwargs: Any,
    ) -> Response:
        """Stream the request and assemble the events into a single Response."""
        return collect(
            self.stream_events(prompt_or_messages, system=system, tools=tools, **kwargs)
        )

    def embed(
        self, texts: str | Sequence[str], *, model: str | None = None, **kwargs: Any
    ) -> EmbeddingResponse:
        """Embed one text or a batch of texts.

        ``model`` defaults to the provider's embedding model, not the chat
        model the client was created with.
        """
        return self._provider.embed(normalize_texts(texts), model=model, **kwargs)
