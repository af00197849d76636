"""Normalized streaming events emitted by the pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from omnillm.llm._types import ResponseMetadata, Usage


class FinishReason(enum.StrEnum):
    """Why generation stopped, independent of the provider's vocabulary."""

    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"
    STOP_SEQUENCE = "stop_sequence"
    ERROR = "error"
    OTHER = "other"


class ErrorKind(enum.StrEnum):
    """Category of a recoverable, in-stream error."""

    PARSE = "parse"
    PROTOCOL = "protocol"
    PROVIDER = "provider"


@dataclass(frozen=True, slots=True)
class ContentDelta:
    """A fragment of answer text for choice ``index``."""

    text: str
    index: int = 0


@dataclass(frozen=True, slots=True)
class ThinkingDelta:
    """A fragment of reasoning text."""

    text: str


@dataclass(frozen=True, slots=True)
class ToolCallDelta:
    """A fragment of the tool call at ``index``.

    The first fragment for an index usually carries ``id`` and ``name``; later
    ones carry only ``arguments_delta``. Concatenating every ``arguments_delta``
    for an index, in order, yields the complete JSON arguments.
    """

    index: int
    id: str | None = None
    name: str | None = None
    arguments_delta: str | None = None


@dataclass(frozen=True, slots=True)
class UsageUpdate:
    """Token usage reported separately from the end of the stream."""

    usage: Usage


@dataclass(frozen=True, slots=True)
class StreamEnd:
    """The single terminal event of a stream."""

    finish_reason: FinishReason
    raw_reason: str = ""
    metadata: ResponseMetadata = field(default_factory=ResponseMetadata)
    usage: Usage | None = None


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    """A recoverable problem; the stream keeps going after it."""

    kind: ErrorKind
    message: str
    raw: str = ""


type DeltaEvent = ContentDelta | ThinkingDelta | ToolCallDelta
type StreamEvent = (
    ContentDelta | ThinkingDelta | ToolCallDelta | UsageUpdate | StreamEnd | ErrorEvent
)
