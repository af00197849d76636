"""Map provider payloads onto the unified stream events.

Each normalizer owns the per-stream state machine::

    IDLE -> STREAMING -> ENDED -> CLOSED

Deltas are only valid before ``ENDED``; usage may still arrive after it.
``CLOSED`` is reached on the terminal sentinel, on an explicit close event
from the provider, or when the transport runs out of bytes.
"""

from __future__ import annotations

import enum
import json
import logging
from typing import Any, ClassVar

from omnillm.llm._events import (
    ContentDelta,
    ErrorEvent,
    ErrorKind,
    FinishReason,
    StreamEnd,
    StreamEvent,
    ThinkingDelta,
    ToolCallDelta,
    UsageUpdate,
)
from omnillm.llm._payload import (
    TERMINAL,
    AnthropicStreamEvent,
    ChatCompletionChunk,
    GeminiChunk,
    Malformed,
    OllamaChunk,
    Parsed,
    WireProtocol,
)
from omnillm.llm._types import ResponseMetadata, Usage

logger = logging.getLogger(__name__)

_DELTAS = (ContentDelta, ThinkingDelta, ToolCallDelta)

_FINISH_REASONS: dict[WireProtocol, dict[str, FinishReason]] = {
    WireProtocol.OPENAI_CHAT: {
        "stop": FinishReason.STOP,
        "length": FinishReason.LENGTH,
        "tool_calls": FinishReason.TOOL_CALLS,
        "function_call": FinishReason.TOOL_CALLS,
        "content_filter": FinishReason.CONTENT_FILTER,
    },
    WireProtocol.ANTHROPIC: {
        "end_turn": FinishReason.STOP,
        "max_tokens": FinishReason.LENGTH,
        "tool_use": FinishReason.TOOL_CALLS,
        "stop_sequence": FinishReason.STOP_SEQUENCE,
        "refusal": FinishReason.CONTENT_FILTER,
    },
    WireProtocol.GEMINI: {
        "STOP": FinishReason.STOP,
        "MAX_TOKENS": FinishReason.LENGTH,
        "SAFETY": FinishReason.CONTENT_FILTER,
        "RECITATION": FinishReason.CONTENT_FILTER,
        "BLOCKLIST": FinishReason.CONTENT_FILTER,
        "PROHIBITED_CONTENT": FinishReason.CONTENT_FILTER,
        "SPII": FinishReason.CONTENT_FILTER,
        "IMAGE_SAFETY": FinishReason.CONTENT_FILTER,
        "MALFORMED_FUNCTION_CALL": FinishReason.ERROR,
    },
    WireProtocol.OLLAMA: {
        "stop": FinishReason.STOP,
        "length": FinishReason.LENGTH,
    },
}


def map_finish_reason(protocol: WireProtocol, raw: str) -> FinishReason:
    """Translate a provider finish-reason string; unknown values become ``OTHER``."""
    reason = _FINISH_REASONS[protocol].get(raw)
    if reason is None:
        logger.debug("Unrecognized %s finish reason %r", protocol, raw)
        return FinishReason.OTHER
    return reason


def resolve_finish_reason(
    protocol: WireProtocol, raw: str, *, has_tool_calls: bool = False
) -> FinishReason:
    """Like :func:`map_finish_reason`, for protocols without a tool-call reason.

    Gemini and Ollama report a plain stop after calling tools; that becomes
    ``TOOL_CALLS`` so every provider agrees on why the turn ended.
    """
    reason = map_finish_reason(protocol, raw)
    if reason is FinishReason.STOP and has_tool_calls:
        return FinishReason.TOOL_CALLS
    return reason


def stop_reason(
    protocol: WireProtocol, raw: str | None, *, has_tool_calls: bool = False
) -> str:
    """The ``Response.stop_reason`` for a non-streaming reply; ``""`` when absent."""
    if not raw:
        return ""
    return str(resolve_finish_reason(protocol, raw, has_tool_calls=has_tool_calls))


class StreamState(enum.Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    ENDED = "ended"
    CLOSED = "closed"


def _describe(parsed: Parsed) -> str:
    if isinstance(parsed, Malformed):
        return parsed.raw
    if parsed is TERMINAL:
        return "[DONE]"
    return json.dumps(parsed)[:200]


class Normalizer:
    """Base normalizer: owns the state machine, subclasses convert payloads."""

    protocol: ClassVar[WireProtocol]

    def __init__(self, *, provider: str = "", choices: int = 1) -> None:
        self.state = StreamState.IDLE
        self._provider = provider
        self._expected_choices = max(choices, 1)
        self._id = ""
        self._model = ""
        self._finish: tuple[FinishReason, str] | None = None
        self._pending_usage: Usage | None = None
        self._closing = False

    @property
    def metadata(self) -> ResponseMetadata:
        return ResponseMetadata(id=self._id, model=self._model, provider=self._provider)

    def normalize(self, parsed: Parsed) -> list[StreamEvent]:
        """Turn one parsed frame into zero or more stream events."""
        if self.state is StreamState.CLOSED:
            return [
                ErrorEvent(
                    ErrorKind.PROTOCOL,
                    "payload received after the stream closed",
                    _describe(parsed),
                )
            ]
        if isinstance(parsed, Malformed):
            return [ErrorEvent(ErrorKind.PARSE, parsed.reason, parsed.raw)]
        if parsed is TERMINAL:
            return self.finish()

        events = self._enforce_order(self._convert(parsed))
        if self._closing:
            events.extend(self.finish())
        return events

    def finish(self) -> list[StreamEvent]:
        """Close the stream, emitting the ``StreamEnd`` if none was seen yet."""
        if self.state is StreamState.CLOSED:
            return []
        events: list[StreamEvent] = []
        usage, self._pending_usage = self._pending_usage, None
        if self.state is not StreamState.ENDED:
            reason, raw = self._finish or (FinishReason.STOP, "")
            events.append(self._end(raw, reason=reason, usage=usage))
        elif usage is not None:
            events.append(UsageUpdate(usage))
        self.state = StreamState.CLOSED
        return events

    def _convert(self, doc: Any) -> list[StreamEvent]:
        raise NotImplementedError

    def _end(
        self,
        raw: str,
        *,
        reason: FinishReason | None = None,
        usage: Usage | None = None,
    ) -> StreamEnd:
        if reason is None:
            reason = map_finish_reason(self.protocol, raw)
        self._finish = (reason, raw)
        return StreamEnd(reason, raw, self.metadata, usage)

    def _enforce_order(self, events: list[StreamEvent]) -> list[StreamEvent]:
        checked: list[StreamEvent] = []
        for event in events:
            if isinstance(event, _DELTAS):
                if self.state is StreamState.ENDED:
                    checked.append(
                        ErrorEvent(
                            ErrorKind.PROTOCOL,
                            f"{type(event).__name__} received after the stream ended",
                            repr(event),
                        )
                    )
                    continue
                self.state = StreamState.STREAMING
            elif isinstance(event, StreamEnd):
                if self.state is StreamState.ENDED:
                    checked.append(
                        ErrorEvent(
                            ErrorKind.PROTOCOL,
                            "duplicate finish reason received after the stream ended",
                            event.raw_reason,
                        )
                    )
                    continue
                self.state = StreamState.ENDED
            checked.append(event)
        return checked


def _openai_usage(raw: dict[str, Any] | None) -> Usage | None:
    if not raw:
        return None
    completion_details = raw.get("completion_tokens_details") or {}
    prompt_details = raw.get("prompt_tokens_details") or {}
    prompt = raw.get("prompt_tokens") or 0
    completion = raw.get("completion_tokens") or 0
    return Usage(
        input_tokens=prompt,
        output_tokens=completion,
        total_tokens=raw.get("total_tokens") or prompt + completion,
        reasoning_tokens=completion_details.get("reasoning_tokens"),
        cache_read_tokens=prompt_details.get("cached_tokens") or 0,
    )


class OpenAIChatNormalizer(Normalizer):
    """Chat Completions chunks from OpenAI and compatible APIs (Groq, xAI, Mistral, ...).

    Reasoning text shows up under different keys depending on the provider:
    ``reasoning_content`` (xAI, DeepSeek), ``reasoning`` (Groq) or
    ``thinking``. The ``StreamEnd`` is emitted once every requested choice
    (``n``) and every choice seen so far has reported a finish reason.
    """

    protocol = WireProtocol.OPENAI_CHAT
    _THINKING_KEYS = ("reasoning_content", "reasoning", "thinking")

    def __init__(self, *, provider: str = "", choices: int = 1) -> None:
        super().__init__(provider=provider, choices=choices)
        self._choices: set[int] = set()
        self._finished: dict[int, str] = {}

    def _convert(self, doc: ChatCompletionChunk) -> list[StreamEvent]:
        self._id = doc.get("id") or self._id
        self._model = doc.get("model") or self._model
        if error := doc.get("error"):
            return [ErrorEvent(ErrorKind.PROVIDER, str(error.get("message", error)))]

        events: list[StreamEvent] = []
        for choice in doc.get("choices") or []:
            index = choice.get("index", 0)
            self._choices.add(index)
            delta = choice.get("delta") or {}
            for key in self._THINKING_KEYS:
                if thinking := delta.get(key):
                    events.append(ThinkingDelta(thinking))
                    break
            if text := delta.get("content"):
                events.append(ContentDelta(text, index))
            for fragment in delta.get("tool_calls") or []:
                function = fragment.get("function") or {}
                events.append(
                    ToolCallDelta(
                        index=fragment.get("index", 0),
                        id=fragment.get("id") or None,
                        name=function.get("name") or None,
                        arguments_delta=function.get("arguments") or None,
                    )
                )
            if finish_reason := choice.get("finish_reason"):
                self._finished[index] = finish_reason
                if index == 0 or self._finish is None:
                    # Used by finish() if the body ends before every choice does.
                    self._finish = (map_finish_reason(self.protocol, finish_reason), finish_reason)

        usage = _openai_usage(doc.get("usage") or (doc.get("x_groq") or {}).get("usage"))
        if self._all_choices_finished():
            raw = self._finished.get(0) or next(iter(self._finished.values()))
            events.append(self._end(raw, usage=usage))
            usage = None
        if usage is not None:
            events.append(UsageUpdate(usage))
        return events

    def _all_choices_finished(self) -> bool:
        return (
            self.state is not StreamState.ENDED
            and len(self._finished) >= self._expected_choices
            and self._choices <= self._finished.keys()
        )


class AnthropicNormalizer(Normalizer):
    """Anthropic Messages events.

    Tool calls are numbered in the order their ``tool_use`` blocks open,
    which matches their order in a non-streaming response, regardless of the
    content-block index Anthropic assigns.
    """

    protocol = WireProtocol.ANTHROPIC

    def __init__(self, *, provider: str = "", choices: int = 1) -> None:
        super().__init__(provider=provider, choices=choices)
        self._tool_index: dict[int, int] = {}
        self._input_usage: dict[str, Any] = {}

    def _convert(self, doc: AnthropicStreamEvent) -> list[StreamEvent]:
        match doc["type"]:
            case "message_start":
                message = doc.get("message") or {}
                self._id = message.get("id") or self._id
                self._model = message.get("model") or self._model
                self._input_usage = message.get("usage") or {}
                return []
            case "content_block_start":
                return self._block_start(doc.get("index", 0), doc.get("content_block") or {})
            case "content_block_delta":
                return self._block_delta(doc.get("index", 0), doc.get("delta") or {})
            case "message_delta":
                usage = self._usage(doc.get("usage") or {})
                if stop_reason := (doc.get("delta") or {}).get("stop_reason"):
                    return [self._end(stop_reason, usage=usage)]
                self._pending_usage = usage
                return []
            case "message_stop":
                self._closing = True
                return []
            case "error":
                error = doc.get("error") or {}
                return [
                    ErrorEvent(
                        ErrorKind.PROVIDER,
                        error.get("message", "unknown error"),
                        error.get("type", ""),
                    )
                ]
            case _:
                # ping, content_block_stop, and event types added later
                return []

    def _block_start(self, index: int, block: dict[str, Any]) -> list[StreamEvent]:
        block_type = block.get("type")
        if block_type == "tool_use":
            tool_index = len(self._tool_index)
            self._tool_index[index] = tool_index
            return [ToolCallDelta(tool_index, id=block.get("id"), name=block.get("name"))]
        if block_type == "text" and (text := block.get("text")):
            return [ContentDelta(text)]
        if block_type == "thinking" and (thinking := block.get("thinking")):
            return [ThinkingDelta(thinking)]
        return []

    def _block_delta(self, index: int, delta: dict[str, Any]) -> list[StreamEvent]:
        match delta.get("type"):
            case "text_delta" if text := delta.get("text"):
                return [ContentDelta(text)]
            case "thinking_delta" if thinking := delta.get("thinking"):
                return [ThinkingDelta(thinking)]
            case "input_json_delta" if partial := delta.get("partial_json"):
                tool_index = self._tool_index.get(index, index)
                return [ToolCallDelta(tool_index, arguments_delta=partial)]
        return []

    def _usage(self, raw: dict[str, Any]) -> Usage | None:
        if not raw:
            return None
        merged = {**self._input_usage, **{k: v for k, v in raw.items() if v is not None}}
        input_tokens = merged.get("input_tokens") or 0
        output_tokens = merged.get("output_tokens") or 0
        return Usage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            cache_read_tokens=merged.get("cache_read_input_tokens") or 0,
            cache_creation_tokens=merged.get("cache_creation_input_tokens") or 0,
        )


def _gemini_usage(raw: dict[str, Any]) -> Usage:
    return Usage(
        input_tokens=raw.get("promptTokenCount", 0),
        output_tokens=raw.get("candidatesTokenCount", 0),
        total_tokens=raw.get("totalTokenCount", 0),
        reasoning_tokens=raw.get("thoughtsTokenCount"),
        cache_read_tokens=raw.get("cachedContentTokenCount", 0),
    )


class GeminiNormalizer(Normalizer):
    """Gemini ``streamGenerateContent`` chunks.

    A part is thinking only when it carries ``"thought": true``. Usage
    metadata is cumulative and repeated on many chunks, so only the latest
    value is kept and reported once, on the ``StreamEnd``. A chunk carrying
    only usage therefore yields no events; usage that arrives after the end
    comes out as a ``UsageUpdate`` when the stream closes.
    """

    protocol = WireProtocol.GEMINI

    def __init__(self, *, provider: str = "", choices: int = 1) -> None:
        super().__init__(provider=provider, choices=choices)
        self._tool_count = 0

    def _convert(self, doc: GeminiChunk) -> list[StreamEvent]:
        if error := doc.get("error"):
            return [ErrorEvent(ErrorKind.PROVIDER, str(error.get("message", error)))]
        self._id = doc.get("responseId") or self._id
        self._model = doc.get("modelVersion") or self._model
        if raw_usage := doc.get("usageMetadata"):
            self._pending_usage = _gemini_usage(raw_usage)

        events: list[StreamEvent] = []
        finish_reason = ""
        for candidate in doc.get("candidates") or []:
            index = candidate.get("index", 0)
            for part in (candidate.get("content") or {}).get("parts") or []:
                if "functionCall" in part:
                    call = part["functionCall"]
                    events.append(
                        ToolCallDelta(
                            self._tool_count,
                            id=call.get("id") or None,
                            name=call.get("name", ""),
                            arguments_delta=json.dumps(call.get("args") or {}),
                        )
                    )
                    self._tool_count += 1
                elif text := part.get("text"):
                    if part.get("thought") is True:
                        events.append(ThinkingDelta(text))
                    else:
                        events.append(ContentDelta(text, index))
            finish_reason = candidate.get("finishReason") or finish_reason

        if finish_reason and self.state is not StreamState.ENDED:
            reason = resolve_finish_reason(
                self.protocol, finish_reason, has_tool_calls=bool(self._tool_count)
            )
            usage, self._pending_usage = self._pending_usage, None
            events.append(self._end(finish_reason, reason=reason, usage=usage))
        return events


class OllamaNormalizer(Normalizer):
    """Ollama ``/api/chat`` and ``/api/generate`` NDJSON lines.

    Ollama sends whole tool calls with already-parsed arguments, so each call
    becomes a single ``ToolCallDelta`` whose arguments are re-serialized.
    """

    protocol = WireProtocol.OLLAMA

    def __init__(self, *, provider: str = "", choices: int = 1) -> None:
        super().__init__(provider=provider, choices=choices)
        self._tool_count = 0

    def _convert(self, doc: OllamaChunk) -> list[StreamEvent]:
        if error := doc.get("error"):
            return [ErrorEvent(ErrorKind.PROVIDER, str(error))]
        self._model = doc.get("model") or self._model

        events: list[StreamEvent] = []
        message = doc.get("message") or {}
        if thinking := message.get("thinking") or doc.get("thinking"):
            events.append(ThinkingDelta(thinking))
        if text := message.get("content") or doc.get("response"):
            events.append(ContentDelta(text))
        for call in message.get("tool_calls") or []:
            function = call.get("function") or {}
            arguments = function.get("arguments") or {}
            events.append(
                ToolCallDelta(
                    self._tool_count,
                    id=call.get("id") or None,
                    name=function.get("name", ""),
                    arguments_delta=(
                        arguments if isinstance(arguments, str) else json.dumps(arguments)
                    ),
                )
            )
            self._tool_count += 1

        if doc.get("done"):
            raw = doc.get("done_reason") or "stop"
            reason = resolve_finish_reason(
                self.protocol, raw, has_tool_calls=bool(self._tool_count)
            )
            events.append(self._end(raw, reason=reason, usage=self._usage(doc)))
        return events

    @staticmethod
    def _usage(doc: OllamaChunk) -> Usage | None:
        if "prompt_eval_count" not in doc and "eval_count" not in doc:
            return None
        prompt = doc.get("prompt_eval_count", 0)
        completion = doc.get("eval_count", 0)
        return Usage(
            input_tokens=prompt,
            output_tokens=completion,
            total_tokens=prompt + completion,
        )


_NORMALIZERS: dict[WireProtocol, type[Normalizer]] = {
    WireProtocol.OPENAI_CHAT: OpenAIChatNormalizer,
    WireProtocol.ANTHROPIC: AnthropicNormalizer,
    WireProtocol.GEMINI: GeminiNormalizer,
    WireProtocol.OLLAMA: OllamaNormalizer,
}


def make_normalizer(
    protocol: WireProtocol, *, provider: str = "", choices: int = 1
) -> Normalizer:
    """Create a fresh normalizer for one stream of ``protocol``.

    ``choices`` is the number of completions requested (OpenAI ``n``).
    """
    return _NORMALIZERS[protocol](provider=provider, choices=choices)
