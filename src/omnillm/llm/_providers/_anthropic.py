"""Provider for the Anthropic Messages API."""

from __future__ import annotations

import json
from typing import Any

from omnillm.llm._normalize import stop_reason
from omnillm.llm._payload import WireProtocol
from omnillm.llm._providers._base import BaseProvider
from omnillm.llm._tracing import TraceConfig
from omnillm.llm._types import (
    Content,
    ConversationItem,
    ImagePart,
    JsonSchema,
    Response,
    ResponseMetadata,
    TextPart,
    ThinkingConfig,
    Tool,
    ToolCall,
    ToolResult,
    Usage,
)

_BASE_URL = "https://api.anthropic.com/v1/messages"
_API_VERSION = "2023-06-01"
_DEFAULT_MAX_TOKENS = 4096
_DEFAULT_THINKING_BUDGET = 2048


def _tool_to_anthropic(tool: Tool) -> dict[str, Any]:
    return {
        "name": tool.name,
        "description": tool.description,
        "input_schema": tool.parameters,
    }


def _content_to_anthropic(content: Content) -> str | list[dict[str, Any]]:
    """Convert Content to Anthropic wire format."""
    if isinstance(content, str):
        return content
    parts: list[dict[str, Any]] = []
    for part in content:
        if isinstance(part, TextPart):
            parts.append({"type": "text", "text": part.text})
        elif isinstance(part, ImagePart):
            if part.data:
                source = {"type": "base64", "media_type": part.media_type, "data": part.data}
            else:
                source = {"type": "url", "url": part.url}
            parts.append({"type": "image", "source": source})
    return parts


def _parse_response(raw: dict[str, Any]) -> Response:
    text_parts: list[str] = []
    thinking_parts: list[str] = []
    tool_calls: list[ToolCall] = []

    for block in raw.get("content", []):
        block_type = block.get("type")
        if block_type == "text":
            text_parts.append(block.get("text", ""))
        elif block_type == "thinking":
            thinking_parts.append(block.get("thinking", ""))
        elif block_type == "tool_use":
            tool_calls.append(
                ToolCall(
                    id=block.get("id", ""),
                    name=block.get("name", ""),
                    arguments=block.get("input", {}),
                )
            )

    raw_usage = raw.get("usage", {})
    usage = Usage(
        input_tokens=raw_usage.get("input_tokens", 0),
        output_tokens=raw_usage.get("output_tokens", 0),
        total_tokens=raw_usage.get("input_tokens", 0) + raw_usage.get("output_tokens", 0),
        cache_creation_tokens=raw_usage.get("cache_creation_input_tokens") or 0,
        cache_read_tokens=raw_usage.get("cache_read_input_tokens") or 0,
    )

    return Response(
        text="".join(text_parts),
        tool_calls=tuple(tool_calls),
        usage=usage,
        stop_reason=stop_reason(WireProtocol.ANTHROPIC, raw.get("stop_reason")),
        thinking="".join(thinking_parts),
        metadata=ResponseMetadata(
            id=raw.get("id", ""), model=raw.get("model", ""), provider="anthropic"
        ),
        raw=raw,
    )


def _items_to_wire(items: list[ConversationItem]) -> list[dict[str, Any]]:
    """Convert conversation items to Anthropic wire format messages.

    Consecutive tool results are merged into a single user turn.
    """
    msgs: list[dict[str, Any]] = []
    pending_tool_results: list[dict[str, Any]] = []

    def _flush_tool_results() -> None:
        if pending_tool_results:
            msgs.append({"role": "user", "content": list(pending_tool_results)})
            pending_tool_results.clear()

    for item in items:
        if isinstance(item, ToolResult):
            pending_tool_results.append(
                {
                    "type": "tool_result",
                    "tool_use_id": item.tool_call_id,
                    "content": item.content,
                }
            )
            continue

        _flush_tool_results()
        if not item.tool_calls:
            msgs.append({"role": item.role, "content": _content_to_anthropic(item.content)})
            continue

        blocks: list[dict[str, Any]] = []
        if item.content:
            wire_content = _content_to_anthropic(item.content)
            if isinstance(wire_content, str):
                blocks.append({"type": "text", "text": wire_content})
            else:
                blocks.extend(wire_content)
        blocks.extend(
            {"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.arguments}
            for tc in item.tool_calls
        )
        msgs.append({"role": item.role, "content": blocks})

    _flush_tool_results()
    return msgs


class AnthropicProvider(BaseProvider):
    """Anthropic Messages API provider."""

    protocol = WireProtocol.ANTHROPIC

    def __init__(
        self,
        model: str,
        api_key: str,
        *,
        base_url: str | None = None,
        trace: TraceConfig | None = None,
    ) -> None:
        super().__init__("anthropic", model, trace=trace)
        self._endpoint = base_url.rstrip("/") + "/v1/messages" if base_url else _BASE_URL
        self._api_key = api_key

    def _url(self, *, stream: bool) -> str:
        return self._endpoint

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self._api_key,
            "anthropic-version": _API_VERSION,
            "Content-Type": "application/json",
        }

    def _build_payload(
        self,
        messages: list[ConversationItem],
        *,
        system: str | None = None,
        tools: list[Tool] | None = None,
        json_schema: JsonSchema | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        thinking: ThinkingConfig | None = kwargs.pop("thinking", None)

        payload: dict[str, Any] = {
            "model": self._model,
            "messages": _items_to_wire(messages),
            "max_tokens": kwargs.pop("max_tokens", _DEFAULT_MAX_TOKENS),
            **kwargs,
        }
        sys_text = system or ""
        if json_schema:
            sys_text += (
                "\n\nYou must respond with valid JSON matching this schema:\n"
                f"```json\n{json.dumps(json_schema.schema, indent=2)}\n```"
            )
        if sys_text.strip():
            payload["system"] = sys_text.strip()
        if tools:
            payload["tools"] = [_tool_to_anthropic(t) for t in tools]
        if thinking:
            payload["thinking"] = {
                "type": "enabled",
                "budget_tokens": thinking.budget_tokens or _DEFAULT_THINKING_BUDGET,
            }
        return payload

    def _parse_response(self, raw: dict[str, Any]) -> Response:
        return _parse_response(raw)
