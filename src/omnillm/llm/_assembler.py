"""Fold stream events back into a complete :class:`Response`."""

from __future__ import annotations

import json
from collections.abc import AsyncIterable, Iterable
from dataclasses import dataclass

from omnillm.llm._events import (
    ContentDelta,
    ErrorEvent,
    StreamEnd,
    StreamEvent,
    ThinkingDelta,
    ToolCallDelta,
    UsageUpdate,
)
from omnillm.llm._types import Response, ResponseMetadata, ToolCall, Usage


def parse_tool_args(raw_args: str | dict[str, object]) -> dict[str, object]:
    """Decode tool-call arguments; invalid JSON is kept under ``_raw``."""
    if isinstance(raw_args, dict):
        return raw_args
    if not raw_args:
        return {}
    try:
        return json.loads(raw_args)
    except (json.JSONDecodeError, TypeError):
        return {"_raw": raw_args}


@dataclass(slots=True)
class _PartialCall:
    id: str = ""
    name: str = ""
    arguments: str = ""


class ToolCallAccumulator:
    """Rebuilds tool calls from :class:`ToolCallDelta` fragments, keyed by index."""

    def __init__(self) -> None:
        self._calls: dict[int, _PartialCall] = {}

    def add(self, delta: ToolCallDelta) -> None:
        call = self._calls.setdefault(delta.index, _PartialCall())
        if delta.id:
            call.id = delta.id
        if delta.name:
            call.name = delta.name
        if delta.arguments_delta:
            call.arguments += delta.arguments_delta

    def arguments(self, index: int) -> str:
        """The raw argument text accumulated so far for ``index``."""
        return self._calls[index].arguments

    def build(self) -> tuple[ToolCall, ...]:
        return tuple(
            ToolCall(id=call.id, name=call.name, arguments=parse_tool_args(call.arguments))
            for _, call in sorted(self._calls.items())
        )

    def __len__(self) -> int:
        return len(self._calls)


class StreamAssembler:
    """Accumulates events into the same :class:`Response` a non-streaming call returns.

    Only choice 0 contributes to ``text``; other choices are kept per index
    in :meth:`choice_text`.
    """

    def __init__(self) -> None:
        self._text: dict[int, list[str]] = {}
        self._thinking: list[str] = []
        self._tools = ToolCallAccumulator()
        self._usage: Usage | None = None
        self._end: StreamEnd | None = None
        self._errors: list[str] = []

    def add(self, event: StreamEvent) -> None:
        match event:
            case ContentDelta(text=text, index=index):
                self._text.setdefault(index, []).append(text)
            case ThinkingDelta(text=text):
                self._thinking.append(text)
            case ToolCallDelta():
                self._tools.add(event)
            case UsageUpdate(usage=usage):
                self._usage = usage
            case StreamEnd():
                self._end = event
                if event.usage is not None:
                    self._usage = event.usage
            case ErrorEvent(kind=kind, message=message):
                self._errors.append(f"{kind}: {message}")

    def choice_text(self, index: int) -> str:
        return "".join(self._text.get(index, ()))

    @property
    def ended(self) -> bool:
        return self._end is not None

    def response(self) -> Response:
        end = self._end
        return Response(
            text=self.choice_text(0),
            tool_calls=self._tools.build(),
            usage=self._usage or Usage(),
            stop_reason=str(end.finish_reason) if end else "",
            thinking="".join(self._thinking),
            metadata=end.metadata if end else ResponseMetadata(),
            errors=tuple(self._errors),
        )


def collect(events: Iterable[StreamEvent]) -> Response:
    """Consume ``events`` and return the assembled response."""
    assembler = StreamAssembler()
    for event in events:
        assembler.add(event)
    return assembler.response()


async def acollect(events: AsyncIterable[StreamEvent]) -> Response:
    assembler = StreamAssembler()
    async for event in events:
        assembler.add(event)
    return assembler.response()
