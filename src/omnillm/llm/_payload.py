"""Per-protocol payload parsing: one frame in, one structured document out.

The typed dicts below mirror the parts of each provider's streaming schema
that the normalizers read. They are ``total=False`` because providers omit
fields freely from chunk to chunk.
"""

from __future__ import annotations

import enum
import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict, cast

from omnillm.llm._framing import Frame, FrameKind, Framing

_MAX_RAW = 200


class WireProtocol(enum.StrEnum):
    """Streaming wire schemas understood by the pipeline."""

    OPENAI_CHAT = "openai_chat"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    OLLAMA = "ollama"


# --- OpenAI Chat Completions (and compatible providers) ---


class FunctionDelta(TypedDict, total=False):
    name: str
    arguments: str


class ToolCallFragment(TypedDict, total=False):
    index: int
    id: str
    type: str
    function: FunctionDelta


class ChoiceDelta(TypedDict, total=False):
    role: str
    content: str | None
    reasoning_content: str | None
    reasoning: str | None
    thinking: str | None
    tool_calls: list[ToolCallFragment]


class ChunkChoice(TypedDict, total=False):
    index: int
    delta: ChoiceDelta
    finish_reason: str | None


class ChatCompletionChunk(TypedDict, total=False):
    id: str
    model: str
    choices: list[ChunkChoice]
    usage: dict[str, Any] | None
    x_groq: dict[str, Any]
    error: dict[str, Any]


# --- Anthropic Messages ---


class AnthropicStreamEvent(TypedDict, total=False):
    type: str
    index: int
    message: dict[str, Any]
    content_block: dict[str, Any]
    delta: dict[str, Any]
    usage: dict[str, Any]
    error: dict[str, Any]


# --- Gemini generateContent ---


class GeminiPart(TypedDict, total=False):
    text: str
    thought: bool
    functionCall: dict[str, Any]


class GeminiCandidate(TypedDict, total=False):
    index: int
    content: dict[str, Any]
    finishReason: str


class GeminiChunk(TypedDict, total=False):
    candidates: list[GeminiCandidate]
    usageMetadata: dict[str, Any]
    modelVersion: str
    responseId: str
    error: dict[str, Any]


# --- Ollama /api/chat and /api/generate ---


class OllamaChunk(TypedDict, total=False):
    model: str
    message: dict[str, Any]
    response: str
    thinking: str
    done: bool
    done_reason: str
    prompt_eval_count: int
    eval_count: int
    error: str


type StructuredEvent = ChatCompletionChunk | AnthropicStreamEvent | GeminiChunk | OllamaChunk


class _Terminal(enum.Enum):
    TERMINAL = "terminal"


TERMINAL: Final = _Terminal.TERMINAL
"""Marker returned for the ``[DONE]`` sentinel."""


@dataclass(frozen=True, slots=True)
class Malformed:
    """A frame whose payload could not be turned into a structured event."""

    reason: str
    raw: str


type Parsed = StructuredEvent | Literal[_Terminal.TERMINAL] | Malformed


def _truncate(raw: str) -> str:
    return raw if len(raw) <= _MAX_RAW else raw[:_MAX_RAW] + "..."


def _load_object(frame: Frame) -> dict[str, Any] | Malformed:
    if frame.kind is FrameKind.MALFORMED:
        return Malformed("payload is not a JSON object", _truncate(frame.data))
    try:
        doc = json.loads(frame.data)
    except json.JSONDecodeError as exc:
        return Malformed(f"invalid JSON: {exc.msg}", _truncate(frame.data))
    if not isinstance(doc, dict):
        return Malformed("payload is not a JSON object", _truncate(frame.data))
    return doc


def parse_openai_chat(frame: Frame) -> Parsed:
    if frame.kind is FrameKind.DONE:
        return TERMINAL
    doc = _load_object(frame)
    if isinstance(doc, Malformed):
        return doc
    return cast(ChatCompletionChunk, doc)


def parse_anthropic(frame: Frame) -> Parsed:
    if frame.kind is FrameKind.DONE:
        return TERMINAL
    doc = _load_object(frame)
    if isinstance(doc, Malformed):
        return doc
    # The SSE ``event:`` line names the type; the body normally repeats it.
    if "type" not in doc and frame.event:
        doc["type"] = frame.event
    if not isinstance(doc.get("type"), str):
        return Malformed("event has no type", _truncate(frame.data))
    return cast(AnthropicStreamEvent, doc)


def parse_gemini(frame: Frame) -> Parsed:
    if frame.kind is FrameKind.DONE:
        return TERMINAL
    doc = _load_object(frame)
    if isinstance(doc, Malformed):
        return doc
    return cast(GeminiChunk, doc)


def parse_ollama(frame: Frame) -> Parsed:
    doc = _load_object(frame)
    if isinstance(doc, Malformed):
        return doc
    return cast(OllamaChunk, doc)


_PARSERS: dict[WireProtocol, Callable[[Frame], Parsed]] = {
    WireProtocol.OPENAI_CHAT: parse_openai_chat,
    WireProtocol.ANTHROPIC: parse_anthropic,
    WireProtocol.GEMINI: parse_gemini,
    WireProtocol.OLLAMA: parse_ollama,
}

_FRAMINGS: dict[WireProtocol, Framing] = {
    WireProtocol.OPENAI_CHAT: Framing.SSE,
    WireProtocol.ANTHROPIC: Framing.SSE,
    WireProtocol.GEMINI: Framing.SSE,
    WireProtocol.OLLAMA: Framing.NDJSON,
}


def payload_parser(protocol: WireProtocol) -> Callable[[Frame], Parsed]:
    """Return the parse function for ``protocol``; chosen once per stream."""
    return _PARSERS[protocol]


def parse_payload(protocol: WireProtocol, frame: Frame) -> Parsed:
    return _PARSERS[protocol](frame)


def framing_for(protocol: WireProtocol, *, json_array: bool = False) -> Framing:
    """Default framing for ``protocol``.

    Gemini's ``streamGenerateContent`` without ``alt=sse`` returns a JSON
    array instead of SSE; pass ``json_array=True`` for that endpoint.
    """
    if json_array and protocol is WireProtocol.GEMINI:
        return Framing.JSON_ARRAY
    return _FRAMINGS[protocol]
