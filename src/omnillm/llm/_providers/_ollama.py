"""Provider for a local Ollama server (``/api/chat``)."""

from __future__ import annotations

from typing import Any

from omnillm.llm._assembler import parse_tool_args
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

DEFAULT_HOST = "http://localhost:11434"
_DEFAULT_EMBEDDING_MODEL = "nomic-embed-text"

# Sampling kwargs that Ollama expects under "options"
_OPTION_KEYS = {"temperature": "temperature", "top_p": "top_p", "max_tokens": "num_predict"}


def _tool_to_ollama(tool: Tool) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.parameters,
        },
    }


def _split_content(content: Content) -> tuple[str, list[str]]:
    """Ollama takes plain text plus a separate list of base64 images."""
    if isinstance(content, str):
        return content, []
    texts: list[str] = []
    images: list[str] = []
    for part in content:
        if isinstance(part, TextPart):
            texts.append(part.text)
        elif isinstance(part, ImagePart):
            if not part.data:
                raise ValueError("Ollama only accepts base64 image data, not URLs.")
            images.append(part.data)
    return "".join(texts), images


def _message_to_wire(item: ConversationItem) -> dict[str, Any]:
    if isinstance(item, ToolResult):
        return {"role": "tool", "content": item.content, "tool_name": item.name}
    text, images = _split_content(item.content)
    msg: dict[str, Any] = {"role": item.role, "content": text}
    if images:
        msg["images"] = images
    if item.tool_calls:
        msg["tool_calls"] = [
            {"function": {"name": tc.name, "arguments": tc.arguments}} for tc in item.tool_calls
        ]
    return msg


def _parse_response(raw: dict[str, Any]) -> Response:
    message = raw.get("message", {})
    tool_calls = tuple(
        ToolCall(
            id=tc.get("id", ""),
            name=tc.get("function", {}).get("name", ""),
            arguments=parse_tool_args(tc.get("function", {}).get("arguments") or {}),
        )
        for tc in message.get("tool_calls") or []
    )
    prompt = raw.get("prompt_eval_count", 0)
    completion = raw.get("eval_count", 0)
    return Response(
        text=message.get("content", ""),
        tool_calls=tool_calls,
        usage=Usage(input_tokens=prompt, output_tokens=completion, total_tokens=prompt + completion),
        stop_reason=stop_reason(
            WireProtocol.OLLAMA, raw.get("done_reason"), has_tool_calls=bool(tool_calls)
        ),
        thinking=message.get("thinking", ""),
        metadata=ResponseMetadata(model=raw.get("model", ""), provider="ollama"),
        raw=raw,
    )


class OllamaProvider(BaseProvider):
    """Ollama chat provider. Streams are newline-delimited JSON."""

    protocol = WireProtocol.OLLAMA

    def __init__(
        self,
        model: str,
        *,
        base_url: str | None = None,
        trace: TraceConfig | None = None,
    ) -> None:
        super().__init__("ollama", model, trace=trace)
        host = (base_url or DEFAULT_HOST).rstrip("/")
        self._endpoint = host + "/api/chat"
        self._embed_endpoint = host + "/api/embed"

    def _url(self, *, stream: bool) -> str:
        return self._endpoint

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

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
        options = {
            wire: kwargs.pop(key) for key, wire in _OPTION_KEYS.items() if key in kwargs
        }

        msgs: list[dict[str, Any]] = []
        if system:
            msgs.append({"role": "system", "content": system})
        msgs.extend(_message_to_wire(m) for m in messages)

        payload: dict[str, Any] = {"model": self._model, "messages": msgs, "stream": False}
        payload.update(kwargs)
        if options:
            payload["options"] = options
        if tools:
            payload["tools"] = [_tool_to_ollama(t) for t in tools]
        if json_schema:
            payload["format"] = json_schema.schema
        if thinking:
            payload["think"] = True
        return payload

    def _parse_response(self, raw: dict[str, Any]) -> Response:
        return _parse_response(raw)

    def _embed_request(
        self, texts: list[str], model: str | None, kwargs: dict[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        payload: dict[str, Any] = {
            "model": model or _DEFAULT_EMBEDDING_MODEL, "input": texts, "truncate": True
        }
        payload.update(kwargs)
        return self._embed_endpoint, payload

    def _parse_embeddings(self, raw: dict[str, Any]) -> EmbeddingResponse:
        prompt = raw.get("prompt_eval_count", 0)
        return EmbeddingResponse(
            embeddings=tuple(tuple(e) for e in raw.get("embeddings") or []),
            model=raw.get("model", ""),
            usage=Usage(input_tokens=prompt, total_tokens=prompt),
            raw=raw,
        )
