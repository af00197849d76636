"""The streaming pipeline: bytes -> text -> frames -> payloads -> events."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator

from omnillm.llm._events import StreamEvent
from omnillm.llm._exceptions import StreamClosedError
from omnillm.llm._framing import Frame, FrameKind, Framing, make_splitter
from omnillm.llm._normalize import make_normalizer
from omnillm.llm._payload import WireProtocol, framing_for, payload_parser
from omnillm.llm._tracing import NO_TRACE, TraceConfig, format_payload
from omnillm.llm._utf8 import Utf8StreamDecoder

logger = logging.getLogger(__name__)


class StreamPipeline:
    """Processes one response body, chunk by chunk.

    A pipeline is single-use and owned by the task reading the stream; the
    only state it carries between chunks is an unfinished UTF-8 character and
    an unfinished frame::

        pipeline = StreamPipeline(WireProtocol.OPENAI_CHAT)
        for chunk in body:
            for event in pipeline.feed(chunk):
                ...
        for event in pipeline.finish():
            ...
    """

    def __init__(
        self,
        protocol: WireProtocol,
        *,
        framing: Framing | None = None,
        provider: str = "",
        choices: int = 1,
        trace: TraceConfig | None = None,
    ) -> None:
        self.protocol = protocol
        self._trace = trace or NO_TRACE
        self._decoder = Utf8StreamDecoder()
        self._splitter = make_splitter(framing or framing_for(protocol))
        self._parse = payload_parser(protocol)
        self._normalizer = make_normalizer(protocol, provider=provider, choices=choices)
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def feed(self, chunk: bytes) -> list[StreamEvent]:
        """Process one transport chunk and return the events it completes."""
        if self._finished:
            raise StreamClosedError("cannot feed a pipeline after finish()")
        text = self._decoder.decode(chunk)
        if not text:
            return []
        return self._handle_frames(self._splitter.feed(text))

    def finish(self) -> list[StreamEvent]:
        """Flush buffered state at end of body. Safe to call more than once."""
        if self._finished:
            return []
        self._finished = True
        frames: list[Frame] = []
        if text := self._decoder.flush():
            frames.extend(self._splitter.feed(text))
        frames.extend(self._splitter.flush())
        events = self._handle_frames(frames)
        events.extend(self._normalizer.finish())
        return events

    def _handle_frames(self, frames: list[Frame]) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        for frame in frames:
            if frame.kind is FrameKind.COMMENT:
                continue
            if self._trace.enabled:
                logger.debug(
                    "%s frame event=%r: %s",
                    self.protocol,
                    frame.event,
                    format_payload(frame.data, self._trace),
                )
            events.extend(self._normalizer.normalize(self._parse(frame)))
        return events


def iter_stream_events(
    chunks: Iterable[bytes],
    protocol: WireProtocol,
    *,
    framing: Framing | None = None,
    provider: str = "",
    choices: int = 1,
    trace: TraceConfig | None = None,
) -> Iterator[StreamEvent]:
    """Yield normalized events for a synchronous byte stream."""
    pipeline = StreamPipeline(
        protocol, framing=framing, provider=provider, choices=choices, trace=trace
    )
    for chunk in chunks:
        yield from pipeline.feed(chunk)
    yield from pipeline.finish()


async def aiter_stream_events(
    chunks: AsyncIterable[bytes],
    protocol: WireProtocol,
    *,
    framing: Framing | None = None,
    provider: str = "",
    choices: int = 1,
    trace: TraceConfig | None = None,
) -> AsyncIterator[StreamEvent]:
    """Yield normalized events for an asynchronous byte stream."""
    pipeline = StreamPipeline(
        protocol, framing=framing, provider=provider, choices=choices, trace=trace
    )
    async for chunk in chunks:
        for event in pipeline.feed(chunk):
            yield event
    for event in pipeline.finish():
        yield event
