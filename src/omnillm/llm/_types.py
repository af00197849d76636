"""Unified request and response types shared by every provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# --- Multimodal content parts ---


@dataclass(frozen=True, slots=True)
class TextPart:
    """A plain text content part."""

    text: str


@dataclass(frozen=True, slots=True)
class ImagePart:
    """An image content part (URL, data URI, or raw base64)."""

    url: str = ""
    media_type: str = ""
    data: str = ""
    detail: str = "auto"


type ContentPart = TextPart | ImagePart
type Content = str | tuple[ContentPart, ...]


@dataclass(frozen=True, slots=True)
class ThinkingConfig:
    """Thinking/reasoning configuration passed to providers."""

    effort: str = "medium"
    budget_tokens: int | None = None


# --- Core types ---


@dataclass(frozen=True, slots=True)
class Message:
    """A chat message."""

    role: str
    content: Content = ""
    tool_calls: tuple[ToolCall, ...] = ()


@dataclass(frozen=True, slots=True)
class ToolResult:
    """A tool result sent back to the model after executing a tool call."""

    tool_call_id: str
    name: str
    content: str


@dataclass(frozen=True, slots=True)
class Tool:
    """A tool/function definition passed to the model."""

    name: str
    description: str
    parameters: dict[str, object]


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool call returned by the model."""

    id: str
    name: str
    arguments: dict[str, object]


@dataclass(frozen=True, slots=True)
class Usage:
    """Token usage counts.

    ``reasoning_tokens`` stays ``None`` when the provider does not report it,
    so a zero count can be told apart from a missing one.
    """

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    reasoning_tokens: int | None = None
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0


@dataclass(frozen=True, slots=True)
class JsonSchema:
    """Schema for structured JSON output."""

    name: str
    schema: dict[str, Any]
    strict: bool = True


@dataclass(frozen=True, slots=True)
class ResponseMetadata:
    """Identifying data about a response, filled in as the stream reveals it."""

    id: str = ""
    model: str = ""
    provider: str = ""


@dataclass(frozen=True, slots=True)
class Response:
    """Unified response from any LLM provider."""

    text: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    usage: Usage = field(default_factory=Usage)
    stop_reason: str = ""
    thinking: str = ""
    metadata: ResponseMetadata = field(default_factory=ResponseMetadata)
    errors: tuple[str, ...] = ()
    raw: dict[str, object] = field(default_factory=dict)

    def to_message(self) -> Message:
        """Convert this response to a Message suitable for multi-turn conversations."""
        return Message(role="assistant", content=self.text, tool_calls=self.tool_calls)


@dataclass(frozen=True, slots=True)
class EmbeddingResponse:
    """Embedding vectors, one per input text and in input order."""

    embeddings: tuple[tuple[float, ...], ...] = ()
    model: str = ""
    usage: Usage = field(default_factory=Usage)
    raw: dict[str, object] = field(default_factory=dict)


type ConversationItem = Message | ToolResult
