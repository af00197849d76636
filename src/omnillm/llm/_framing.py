"""Split decoded stream text into protocol frames (SSE, NDJSON, JSON array)."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Protocol

DONE_SENTINEL = "[DONE]"


class Framing(enum.StrEnum):
    """How a provider delimits events in its response body."""

    SSE = "sse"
    NDJSON = "ndjson"
    JSON_ARRAY = "json_array"


class FrameKind(enum.StrEnum):
    DATA = "data"
    COMMENT = "comment"
    DONE = "done"
    MALFORMED = "malformed"


@dataclass(frozen=True, slots=True)
class Frame:
    """One wire-level event: its payload plus SSE ``event``/``id`` fields when present."""

    kind: FrameKind
    data: str
    event: str = ""
    id: str = ""


class FrameSplitter(Protocol):
    def feed(self, text: str) -> list[Frame]: ...

    def flush(self) -> list[Frame]: ...

    def reset(self) -> None: ...


class SSEFrameSplitter:
    """Server-Sent Events parser following the WHATWG field rules.

    Text may arrive cut anywhere, including between ``\\r`` and ``\\n``.
    Only complete lines are interpreted, and an event is dispatched on the
    blank line that closes it, so one chunk can yield many frames or none.
    """

    def __init__(self, *, emit_comments: bool = False) -> None:
        self._emit_comments = emit_comments
        self._pending = ""
        self._data: list[str] = []
        self._event = ""
        self._id = ""

    def feed(self, text: str) -> list[Frame]:
        self._pending += text
        frames: list[Frame] = []
        for line in self._take_lines():
            if frame := self._process_line(line):
                frames.append(frame)
        return frames

    def flush(self) -> list[Frame]:
        """Dispatch whatever is left when the body ends without a closing blank line."""
        frames: list[Frame] = []
        leftover = self._pending.rstrip("\r")
        self._pending = ""
        if leftover and (frame := self._process_line(leftover)):
            frames.append(frame)
        if frame := self._dispatch():
            frames.append(frame)
        return frames

    def reset(self) -> None:
        self._pending = ""
        self._data.clear()
        self._event = ""
        self._id = ""

    def _take_lines(self) -> list[str]:
        lines: list[str] = []
        buf = self._pending
        start = 0
        i = 0
        while i < len(buf):
            ch = buf[i]
            if ch == "\n":
                lines.append(buf[start:i])
                start = i + 1
            elif ch == "\r":
                if i + 1 == len(buf):
                    # Can't tell yet whether a "\n" follows.
                    break
                lines.append(buf[start:i])
                if buf[i + 1] == "\n":
                    i += 1
                start = i + 1
            i += 1
        self._pending = buf[start:]
        return lines

    def _process_line(self, line: str) -> Frame | None:
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            if self._emit_comments:
                return Frame(FrameKind.COMMENT, line[1:].lstrip(" "))
            return None

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if name == "data":
            self._data.append(value)
        elif name == "event":
            self._event = value
        elif name == "id" and "\0" not in value:
            self._id = value
        return None

    def _dispatch(self) -> Frame | None:
        if not self._data:
            self._event = ""
            return None
        data = "\n".join(self._data)
        kind = FrameKind.DONE if data == DONE_SENTINEL else FrameKind.DATA
        frame = Frame(kind, data, event=self._event, id=self._id)
        self._data.clear()
        self._event = ""
        return frame


class NDJSONFrameSplitter:
    """One JSON document per line; a trailing partial line waits for its newline."""

    def __init__(self) -> None:
        self._pending = ""

    def feed(self, text: str) -> list[Frame]:
        self._pending += text
        *lines, self._pending = self._pending.split("\n")
        return [frame for line in lines if (frame := _line_frame(line))]

    def flush(self) -> list[Frame]:
        line, self._pending = self._pending, ""
        frame = _line_frame(line)
        return [frame] if frame else []

    def reset(self) -> None:
        self._pending = ""


def _line_frame(line: str) -> Frame | None:
    line = line.strip()
    if not line:
        return None
    if not line.startswith("{"):
        return Frame(FrameKind.MALFORMED, line)
    return Frame(FrameKind.DATA, line)


class JSONArrayFrameSplitter:
    """Extracts top-level objects from a streamed JSON array (``[{...},{...}]``).

    Braces inside strings are ignored; escapes inside strings are honored.
    Scanning resumes where it stopped, so a large object split over many
    chunks is scanned only once.
    """

    def __init__(self) -> None:
        self._pending = ""
        self._pos = 0
        self._depth = 0
        self._start = -1
        self._in_string = False
        self._escape = False

    def feed(self, text: str) -> list[Frame]:
        self._pending += text
        frames: list[Frame] = []
        buf = self._pending
        i = self._pos
        while i < len(buf):
            ch = buf[i]
            if self._in_string:
                if self._escape:
                    self._escape = False
                elif ch == "\\":
                    self._escape = True
                elif ch == '"':
                    self._in_string = False
            elif ch == '"':
                self._in_string = True
            elif ch == "{":
                if self._depth == 0:
                    self._start = i
                self._depth += 1
            elif ch == "}" and self._depth > 0:
                self._depth -= 1
                if self._depth == 0:
                    frames.append(Frame(FrameKind.DATA, buf[self._start : i + 1]))
                    self._start = -1
            i += 1

        # Drop everything that is not part of an unfinished object.
        keep_from = self._start if self._start >= 0 else len(buf)
        self._pending = buf[keep_from:]
        self._pos = len(buf) - keep_from
        if self._start >= 0:
            self._start = 0
        return frames

    def flush(self) -> list[Frame]:
        leftover = self._pending.strip()
        self.reset()
        if leftover:
            return [Frame(FrameKind.MALFORMED, leftover)]
        return []

    def reset(self) -> None:
        self._pending = ""
        self._pos = 0
        self._depth = 0
        self._start = -1
        self._in_string = False
        self._escape = False


def make_splitter(framing: Framing, *, emit_comments: bool = False) -> FrameSplitter:
    """Create a fresh splitter for ``framing``."""
    if framing is Framing.SSE:
        return SSEFrameSplitter(emit_comments=emit_comments)
    if framing is Framing.NDJSON:
        return NDJSONFrameSplitter()
    return JSONArrayFrameSplitter()
