"""Tests for per-protocol payload parsing."""

from __future__ import annotations

import pytest

from omnillm.llm._framing import Frame, FrameKind, Framing
from omnillm.llm._payload import (
    TERMINAL,
    Malformed,
    WireProtocol,
    framing_for,
    parse_anthropic,
    parse_payload,
    payload_parser,
)


@pytest.mark.parametrize(
    "protocol", [WireProtocol.OPENAI_CHAT, WireProtocol.ANTHROPIC, WireProtocol.GEMINI]
)
def test_done_frame_is_terminal(protocol: WireProtocol) -> None:
    assert parse_payload(protocol, Frame(FrameKind.DONE, "[DONE]")) is TERMINAL


def test_openai_chunk_parsed() -> None:
    doc = parse_payload(
        WireProtocol.OPENAI_CHAT,
        Frame(FrameKind.DATA, '{"id": "c1", "choices": [{"delta": {"content": "hi"}}]}'),
    )
    assert doc == {"id": "c1", "choices": [{"delta": {"content": "hi"}}]}


def test_invalid_json_is_malformed() -> None:
    parsed = parse_payload(WireProtocol.OPENAI_CHAT, Frame(FrameKind.DATA, "{not json"))
    assert isinstance(parsed, Malformed)
    assert parsed.reason.startswith("invalid JSON")
    assert parsed.raw == "{not json"


def test_non_object_json_is_malformed() -> None:
    parsed = parse_payload(WireProtocol.GEMINI, Frame(FrameKind.DATA, "[1, 2]"))
    assert isinstance(parsed, Malformed)


def test_malformed_frame_stays_malformed() -> None:
    parsed = parse_payload(WireProtocol.OLLAMA, Frame(FrameKind.MALFORMED, "oops"))
    assert isinstance(parsed, Malformed)
    assert parsed.raw == "oops"


def test_malformed_raw_is_truncated() -> None:
    parsed = parse_payload(WireProtocol.OPENAI_CHAT, Frame(FrameKind.DATA, "x" * 500))
    assert isinstance(parsed, Malformed)
    assert len(parsed.raw) == 203
    assert parsed.raw.endswith("...")


def test_anthropic_type_taken_from_sse_event_name() -> None:
    parsed = parse_anthropic(Frame(FrameKind.DATA, '{"index": 0}', event="content_block_stop"))
    assert parsed == {"index": 0, "type": "content_block_stop"}


def test_anthropic_body_type_wins_over_event_name() -> None:
    parsed = parse_anthropic(Frame(FrameKind.DATA, '{"type": "ping"}', event="other"))
    assert parsed == {"type": "ping"}


def test_anthropic_event_without_type_is_malformed() -> None:
    parsed = parse_anthropic(Frame(FrameKind.DATA, '{"index": 0}'))
    assert isinstance(parsed, Malformed)
    assert parsed.reason == "event has no type"


def test_ollama_line_parsed() -> None:
    parsed = parse_payload(WireProtocol.OLLAMA, Frame(FrameKind.DATA, '{"done": true}'))
    assert parsed == {"done": True}


def test_payload_parser_is_stable_per_protocol() -> None:
    assert payload_parser(WireProtocol.ANTHROPIC) is parse_anthropic


@pytest.mark.parametrize(
    ("protocol", "expected"),
    [
        (WireProtocol.OPENAI_CHAT, Framing.SSE),
        (WireProtocol.ANTHROPIC, Framing.SSE),
        (WireProtocol.GEMINI, Framing.SSE),
        (WireProtocol.OLLAMA, Framing.NDJSON),
    ],
)
def test_default_framing(protocol: WireProtocol, expected: Framing) -> None:
    assert framing_for(protocol) is expected


def test_gemini_json_array_framing() -> None:
    assert framing_for(WireProtocol.GEMINI, json_array=True) is Framing.JSON_ARRAY
    assert framing_for(WireProtocol.OPENAI_CHAT, json_array=True) is Framing.SSE
