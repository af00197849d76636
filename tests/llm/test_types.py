"""Tests for _types.py and _events.py dataclasses."""

import dataclasses

import pytest

from omnillm.llm._events import (
    ContentDelta,
    ErrorEvent,
    ErrorKind,
    FinishReason,
    StreamEnd,
    ToolCallDelta,
)
from omnillm.llm._types import (
    ImagePart,
    JsonSchema,
    Message,
    Response,
    ResponseMetadata,
    TextPart,
    ThinkingConfig,
    Tool,
    ToolCall,
    ToolResult,
    Usage,
)


def test_message_defaults() -> None:
    m = Message(role="user")
    assert m.content == ""
    assert m.tool_calls == ()


def test_message_with_tuple_content() -> None:
    parts = (TextPart("hello"), ImagePart(url="https://example.com/img.png"))
    m = Message(role="user", content=parts)
    assert isinstance(m.content[0], TextPart)
    assert m.content[1].detail == "auto"


def test_messages_are_frozen() -> None:
    m = Message(role="user", content="hi")
    with pytest.raises(dataclasses.FrozenInstanceError):
        m.role = "assistant"  # type: ignore[misc]


def test_tool_result_creation() -> None:
    tr = ToolResult(tool_call_id="call_1", name="get_weather", content='{"temp": 20}')
    assert tr.tool_call_id == "call_1"
    assert tr.content == '{"temp": 20}'


def test_tool_creation() -> None:
    t = Tool(name="f", description="does f", parameters={"type": "object"})
    assert t.parameters == {"type": "object"}


def test_usage_defaults() -> None:
    u = Usage()
    assert u.input_tokens == 0
    assert u.total_tokens == 0
    assert u.reasoning_tokens is None
    assert u.cache_read_tokens == 0
    assert u.cache_creation_tokens == 0


def test_usage_positional() -> None:
    u = Usage(10, 5, 15)
    assert (u.input_tokens, u.output_tokens, u.total_tokens) == (10, 5, 15)


def test_response_defaults() -> None:
    r = Response()
    assert r.text == ""
    assert r.tool_calls == ()
    assert r.usage == Usage()
    assert r.metadata == ResponseMetadata()
    assert r.errors == ()


def test_response_to_message() -> None:
    tc = ToolCall(id="1", name="f", arguments={})
    r = Response(text="hi", tool_calls=(tc,))
    assert r.to_message() == Message(role="assistant", content="hi", tool_calls=(tc,))


def test_json_schema_strict_by_default() -> None:
    s = JsonSchema(name="person", schema={"type": "object"})
    assert s.strict is True


def test_thinking_config_defaults() -> None:
    tc = ThinkingConfig()
    assert tc.effort == "medium"
    assert tc.budget_tokens is None


def test_finish_reason_values() -> None:
    assert FinishReason("tool_calls") is FinishReason.TOOL_CALLS
    assert {r.value for r in FinishReason} == {
        "stop",
        "length",
        "tool_calls",
        "content_filter",
        "stop_sequence",
        "error",
        "other",
    }


def test_event_defaults() -> None:
    assert ContentDelta("x").index == 0
    assert ToolCallDelta(2) == ToolCallDelta(2, id=None, name=None, arguments_delta=None)
    end = StreamEnd(FinishReason.STOP)
    assert end.raw_reason == ""
    assert end.usage is None
    assert ErrorEvent(ErrorKind.PARSE, "bad").raw == ""
