"""Provider for the Google Gemini generateContent API."""

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
    EmbeddingResponse,
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

_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
_DEFAULT_THINKING_BUDGET = 8192
_DEFAULT_EMBEDDING_MODEL = "gemini-embedding-001"
_VALID_ROLES = {"user", "assistant"}


def _tool_to_gemini(tools: list[Tool]) -> list[dict[str, Any]]:
    return [
        {
            "functionDeclarations": [
                {
                    "name": t.name,
                    "description": t.description,
                    "parameters": t.parameters,
                }
                for t in tools
            ]
        }
    ]


def _content_to_gemini_parts(content: Content) -> list[dict[str, Any]]:
    """Convert Content to Gemini parts format."""
    if isinstance(content, str):
        return [{"text": content}]
    parts: list[dict[str, Any]] = []
    for part in content:
        if isinstance(part, TextPart):
            parts.append({"text": part.text})
        elif isinstance(part, ImagePart):
            if part.data:
                parts.append({"inlineData": {"mimeType": part.media_type, "data": part.data}})
            else:
                parts.append({"fileData": {"mimeType": part.media_type, "fileUri": part.url}})
    return parts


def _parse_response(raw: dict[str, Any]) -> Response:
    metadata = ResponseMetadata(
        id=raw.get("responseId", ""), model=raw.get("modelVersion", ""), provider="gemini"
    )
    candidates = raw.get("candidates", [])
    if not candidates:
        return Response(metadata=metadata, raw=raw)

    candidate = candidates[0]
    text_parts: list[str] = []
    thinking_parts: list[str] = []
    tool_calls: list[ToolCall] = []

    for part in candidate.get("content", {}).get("parts", []):
        if "functionCall" in part:
            fc = part["functionCall"]
            tool_calls.append(
                ToolCall(id=fc.get("id", ""), name=fc.get("name", ""), arguments=fc.get("args", {}))
            )
        elif "text" in part:
            if part.get("thought") is True:
                thinking_parts.append(part["text"])
            else:
                text_parts.append(part["text"])

    raw_usage = raw.get("usageMetadata", {})
    usage = Usage(
        input_tokens=raw_usage.get("promptTokenCount", 0),
        output_tokens=raw_usage.get("candidatesTokenCount", 0),
        total_tokens=raw_usage.get("totalTokenCount", 0),
        reasoning_tokens=raw_usage.get("thoughtsTokenCount"),
        cache_read_tokens=raw_usage.get("cachedContentTokenCount", 0),
    )

    return Response(
        text="".join(text_parts),
        tool_calls=tuple(tool_calls),
        usage=usage,
        stop_reason=stop_reason(
            WireProtocol.GEMINI, candidate.get("finishReason"), has_tool_calls=bool(tool_calls)
        ),
        thinking="".join(thinking_parts),
        metadata=metadata,
        raw=raw,
    )


def _items_to_contents(items: list[ConversationItem]) -> list[dict[str, Any]]:
    """Convert conversation items to Gemini contents format."""
    contents: list[dict[str, Any]] = []
    pending_fn_responses: list[dict[str, Any]] = []

    def _flush_fn_responses() -> None:
        if pending_fn_responses:
            contents.append({"role": "user", "parts": list(pending_fn_responses)})
            pending_fn_responses.clear()

    for item in items:
        if isinstance(item, ToolResult):
            # functionResponse.response must be an object
            try:
                response_data = json.loads(item.content)
            except (json.JSONDecodeError, TypeError):
                response_data = {"result": item.content}
            if not isinstance(response_data, dict):
                response_data = {"result": response_data}
            pending_fn_responses.append(
                {"functionResponse": {"name": item.name, "response": response_data}}
            )
            continue

        _flush_fn_responses()
        if item.tool_calls:
            parts: list[dict[str, Any]] = []
            if item.content:
                parts.extend(_content_to_gemini_parts(item.content))
            parts.extend(
                {"functionCall": {"name": tc.name, "args": tc.arguments}}
                for tc in item.tool_calls
            )
            contents.append({"role": "model", "parts": parts})
            continue

        if item.role not in _VALID_ROLES:
            raise ValueError(
                f"Gemini does not support role {item.role!r}. "
                "Use the system= parameter for system prompts."
            )
        role = "model" if item.role == "assistant" else item.role
        contents.append({"role": role, "parts": _content_to_gemini_parts(item.content)})

    _flush_fn_responses()
    return contents


class GeminiProvider(BaseProvider):
    """Google Gemini generateContent provider.

    Streams use ``streamGenerateContent?alt=sse`` so the body is SSE framed
    like every other provider.
    """

    protocol = WireProtocol.GEMINI

    def __init__(
        self,
        model: str,
        api_key: str,
        *,
        base_url: str | None = None,
        trace: TraceConfig | None = None,
    ) -> None:
        super().__init__("gemini", model, trace=trace)
        root = base_url.rstrip("/") if base_url else _BASE_URL
        self._root = root
        self._complete_url = f"{root}/{model}:generateContent"
        self._stream_url = f"{root}/{model}:streamGenerateContent?alt=sse"
        self._api_key = api_key

    def _url(self, *, stream: bool) -> str:
        return self._stream_url if stream else self._complete_url

    def _headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self._api_key, "Content-Type": "application/json"}

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

        payload: dict[str, Any] = {"contents": _items_to_contents(messages)}
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        if tools:
            payload["tools"] = _tool_to_gemini(tools)

        # Map common kwargs to generationConfig
        gen_config: dict[str, Any] = {}
        if "temperature" in kwargs:
            gen_config["temperature"] = kwargs.pop("temperature")
        if "max_tokens" in kwargs:
            gen_config["maxOutputTokens"] = kwargs.pop("max_tokens")
        if "top_p" in kwargs:
            gen_config["topP"] = kwargs.pop("top_p")
        if json_schema:
            gen_config["responseMimeType"] = "application/json"
            gen_config["responseSchema"] = json_schema.schema
        if thinking:
            gen_config["thinkingConfig"] = {
                "thinkingBudget": thinking.budget_tokens or _DEFAULT_THINKING_BUDGET,
                "includeThoughts": True,
            }
        if gen_config:
            payload["generationConfig"] = gen_config
        return payload

    def _enable_streaming(self, payload: dict[str, Any]) -> None:
        # Streaming is selected by the URL, not the body.
        pass

    def _parse_response(self, raw: dict[str, Any]) -> Response:
        return _parse_response(raw)

    def _embed_request(
        self, texts: list[str], model: str | None, kwargs: dict[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        model = model or _DEFAULT_EMBEDDING_MODEL
        options: dict[str, Any] = {}
        if "task_type" in kwargs:
            options["taskType"] = kwargs.pop("task_type")
        if "dimensions" in kwargs:
            options["outputDimensionality"] = kwargs.pop("dimensions")
        requests = [
            {"model": f"models/{model}", "content": {"parts": [{"text": t}]}, **options}
            for t in texts
        ]
        return f"{self._root}/{model}:batchEmbedContents", {"requests": requests}

    def _parse_embeddings(self, raw: dict[str, Any]) -> EmbeddingResponse:
        return EmbeddingResponse(
            embeddings=tuple(tuple(e.get("values") or ()) for e in raw.get("embeddings") or []),
            raw=raw,
        )
