"""Tests for the SSE / NDJSON / JSON-array frame splitters."""

from __future__ import annotations

import pytest

from omnillm.llm._framing import (
    Frame,
    FrameKind,
    Framing,
    JSONArrayFrameSplitter,
    NDJSONFrameSplitter,
    SSEFrameSplitter,
    make_splitter,
)


def _feed_all(splitter: SSEFrameSplitter | NDJSONFrameSplitter | JSONArrayFrameSplitter,
              pieces: list[str]) -> list[Frame]:
    frames: list[Frame] = []
    for piece in pieces:
        frames.extend(splitter.feed(piece))
    frames.extend(splitter.flush())
    return frames


# --- SSE ---


def test_sse_single_event() -> None:
    frames = SSEFrameSplitter().feed('data: {"a": 1}\n\n')
    assert frames == [Frame(FrameKind.DATA, '{"a": 1}')]


def test_sse_many_events_in_one_chunk() -> None:
    text = "".join(f"data: {i}\n\n" for i in range(5))
    frames = SSEFrameSplitter().feed(text)
    assert [f.data for f in frames] == ["0", "1", "2", "3", "4"]


def test_sse_partial_event_is_held() -> None:
    splitter = SSEFrameSplitter()
    assert splitter.feed('data: {"a"') == []
    assert splitter.feed(": 1}\n") == []
    assert splitter.feed("\n") == [Frame(FrameKind.DATA, '{"a": 1}')]


@pytest.mark.parametrize("newline", ["\n", "\r\n", "\r"])
def test_sse_line_endings(newline: str) -> None:
    text = f"event: ping{newline}data: x{newline}{newline}data: y{newline}{newline}"
    # A lone trailing "\r" is held until flush decides it ends a line.
    frames = _feed_all(SSEFrameSplitter(), [text])
    assert frames == [Frame(FrameKind.DATA, "x", event="ping"), Frame(FrameKind.DATA, "y")]


def test_sse_crlf_split_between_cr_and_lf() -> None:
    splitter = SSEFrameSplitter()
    frames = _feed_all(splitter, ["data: a\r", "\n\r", "\ndata: b\r\n\r\n"])
    assert [f.data for f in frames] == ["a", "b"]


def test_sse_multiline_data_joined_with_newline() -> None:
    frames = SSEFrameSplitter().feed("data: line1\ndata: line2\n\n")
    assert frames == [Frame(FrameKind.DATA, "line1\nline2")]


def test_sse_field_without_space_and_without_colon() -> None:
    frames = SSEFrameSplitter().feed("data:tight\ndata\n\n")
    assert frames == [Frame(FrameKind.DATA, "tight\n")]


def test_sse_event_and_id_fields() -> None:
    frames = SSEFrameSplitter().feed("id: 7\nevent: message_start\ndata: {}\n\n")
    assert frames == [Frame(FrameKind.DATA, "{}", event="message_start", id="7")]


def test_sse_id_persists_and_event_resets() -> None:
    frames = SSEFrameSplitter().feed("id: 1\nevent: a\ndata: x\n\ndata: y\n\n")
    assert frames[1] == Frame(FrameKind.DATA, "y", event="", id="1")


def test_sse_comments_skipped_by_default() -> None:
    frames = SSEFrameSplitter().feed(": keep-alive\n\ndata: x\n\n")
    assert frames == [Frame(FrameKind.DATA, "x")]


def test_sse_comments_emitted_on_request() -> None:
    frames = SSEFrameSplitter(emit_comments=True).feed(": OPENROUTER PROCESSING\n")
    assert frames == [Frame(FrameKind.COMMENT, "OPENROUTER PROCESSING")]


def test_sse_unknown_fields_ignored() -> None:
    frames = SSEFrameSplitter().feed("retry: 1000\nfoo: bar\ndata: x\n\n")
    assert frames == [Frame(FrameKind.DATA, "x")]


def test_sse_blank_line_without_data_dispatches_nothing() -> None:
    assert SSEFrameSplitter().feed("event: ping\n\n\n") == []


def test_sse_done_sentinel() -> None:
    frames = SSEFrameSplitter().feed("data: [DONE]\n\n")
    assert frames == [Frame(FrameKind.DONE, "[DONE]")]


def test_sse_flush_dispatches_unterminated_event() -> None:
    splitter = SSEFrameSplitter()
    assert splitter.feed('data: {"last": true}') == []
    assert splitter.flush() == [Frame(FrameKind.DATA, '{"last": true}')]


def test_sse_flush_on_empty_is_empty() -> None:
    assert SSEFrameSplitter().flush() == []


def test_sse_reset_drops_partial_state() -> None:
    splitter = SSEFrameSplitter()
    splitter.feed("event: a\ndata: partial")
    splitter.reset()
    assert splitter.feed("data: fresh\n\n") == [Frame(FrameKind.DATA, "fresh")]


def test_sse_every_character_split() -> None:
    text = 'event: e\ndata: {"k": "v"}\r\n\r\ndata: [DONE]\n\n'
    frames = _feed_all(SSEFrameSplitter(), list(text))
    assert frames == [
        Frame(FrameKind.DATA, '{"k": "v"}', event="e"),
        Frame(FrameKind.DONE, "[DONE]"),
    ]


# --- NDJSON ---


def test_ndjson_lines() -> None:
    frames = NDJSONFrameSplitter().feed('{"a": 1}\n{"b": 2}\n')
    assert [f.data for f in frames] == ['{"a": 1}', '{"b": 2}']


def test_ndjson_partial_line_held_until_newline() -> None:
    splitter = NDJSONFrameSplitter()
    assert splitter.feed('{"a": ') == []
    assert splitter.feed('1}\n{"b"') == [Frame(FrameKind.DATA, '{"a": 1}')]
    assert splitter.flush() == [Frame(FrameKind.DATA, '{"b"')]


def test_ndjson_blank_lines_and_crlf() -> None:
    frames = NDJSONFrameSplitter().feed('\r\n{"a": 1}\r\n\n')
    assert frames == [Frame(FrameKind.DATA, '{"a": 1}')]


def test_ndjson_non_object_line_is_malformed() -> None:
    frames = NDJSONFrameSplitter().feed("garbage\n")
    assert frames == [Frame(FrameKind.MALFORMED, "garbage")]


# --- JSON array ---


def test_json_array_objects() -> None:
    frames = JSONArrayFrameSplitter().feed('[{"a": 1},\n{"b": {"c": 2}}]')
    assert [f.data for f in frames] == ['{"a": 1}', '{"b": {"c": 2}}']


def test_json_array_braces_inside_strings() -> None:
    frames = JSONArrayFrameSplitter().feed('[{"t": "} { \\" }"}]')
    assert [f.data for f in frames] == ['{"t": "} { \\" }"}']


def test_json_array_character_by_character() -> None:
    text = '[{"text": "a}b"}, {"n": [1, {"x": 2}]}]'
    frames = _feed_all(JSONArrayFrameSplitter(), list(text))
    assert [f.data for f in frames] == ['{"text": "a}b"}', '{"n": [1, {"x": 2}]}']


def test_json_array_truncated_object_is_malformed_on_flush() -> None:
    splitter = JSONArrayFrameSplitter()
    assert splitter.feed('[{"a": 1}, {"b": ') == [Frame(FrameKind.DATA, '{"a": 1}')]
    assert splitter.flush() == [Frame(FrameKind.MALFORMED, '{"b":')]


def test_make_splitter() -> None:
    assert isinstance(make_splitter(Framing.SSE), SSEFrameSplitter)
    assert isinstance(make_splitter(Framing.NDJSON), NDJSONFrameSplitter)
    assert isinstance(make_splitter(Framing.JSON_ARRAY), JSONArrayFrameSplitter)
