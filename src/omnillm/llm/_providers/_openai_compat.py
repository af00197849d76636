"""Provider for OpenAI-compatible Chat Completions APIs (OpenAI, Groq, xAI, ...)."""

from __future__ import annotations

import json
import re
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

OPENAI_COMPAT_PROVIDERS: dict[str, dict[str, str]] = {
    "openai": {
        "base_url": "https://api.openai.com",
        "path": "/v1/chat/completions",
        "env_key": "OPENAI_API_KEY",
    },
    "xai": {
        "base_url": "https://api.x.ai",
        "path": "/v1/chat/completions",
        "env_key": "XAI_API_KEY",
    },
    "mistral": {
        "base_url": "https://api.mistral.ai",
        "path": "/v1/chat/completions",
        "env_key": "MISTRAL_API_KEY",
    },
    "groq": {
        "base_url": "https://api.groq.com",
        "path": "/openai/v1/chat/completions",
        "env_key": "GROQ_API_KEY",
    },
    "deepseek": {
        "base_url": "https://api.deepseek.com",
        "path": "/v1/chat/completions",
        "env_key": "DEEPSEEK_API_KEY",
    },
    "openrouter": {
        "base_url": "https://openrouter.ai",
        "path": "/api/v1/chat/completions",
        "env_key": "OPENROUTER_API_KEY",
    },
    # Any other server speaking the same protocol; base_url is required.
    "openai-compatible": {
        "base_url": "",
        "path": "/chat/completions",
        "env_key": "OPENAI_COMPATIBLE_API_KEY",
    },
}

_DEFAULT_EMBEDDING_MODELS = {
    "openai": "text-embedding-3-small",
    "mistral": "mistral-embed",
}


def _tool_to_openai(tool: Tool) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.parameters,
        },
    }


def _content_to_openai(content: Content) -> str | list[dict[str, Any]]:
    if isinstance(content, str):
        return content
    parts: list[dict[str, Any]] = []
    for part in content:
        if isinstance(part, TextPart):
            parts.append({"type": "text", "text": part.text})
        elif isinstance(part, ImagePart):
            url = f"data:{part.media_type};base64,{part.data}" if part.data else part.url
            parts.append({"type": "image_url", "image_url": {"url": url, "detail": part.detail}})
    return parts


def _message_to_wire(item: ConversationItem) -> dict[str, Any]:
    if isinstance(item, ToolResult):
        return {"role": "tool", "tool_call_id": item.tool_call_id, "content": item.content}
    msg: dict[str, Any] = {"role": item.role, "content": _content_to_openai(item.content)}
    if item.tool_calls:
        msg["content"] = msg["content"] or None
        msg["tool_calls"] = [
            {
                "id": tc.id,
                "type": "function",
                "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
            }
            for tc in item.tool_calls
        ]
    return msg


_THINK_BLOCK = re.compile(r"<think>(.*?)</think>", re.DOTALL)


def split_think_tags(text: str) -> tuple[str, str]:
    """Separate inline ``<think>...</think>`` reasoning from the answer text.

    Models served through OpenAI-compatible APIs (DeepSeek R1, QwQ) often
    put their reasoning in the content instead of a dedicated field.
    Returns ``(answer, thinking)``.
    """
    if "<think>" not in text:
        return text, ""
    blocks = [b.strip() for b in _THINK_BLOCK.findall(text)]
    thinking = "\n\n".join(b for b in blocks if b)
    return _THINK_BLOCK.sub("", text).strip(), thinking


def _message_text(content: str | list[dict[str, Any]] | None) -> str:
    if isinstance(content, list):
        return "".join(p.get("text", "") for p in content if p.get("type") == "text")
    return content or ""


def _parse_response(raw: dict[str, Any], provider: str) -> Response:
    choices = raw.get("choices", [])
    metadata = ResponseMetadata(id=raw.get("id", ""), model=raw.get("model", ""), provider=provider)
    if not choices:
        return Response(metadata=metadata, raw=raw)

    choice = choices[0]
    message = choice.get("message", {})
    tool_calls = tuple(
        ToolCall(
            id=tc.get("id", ""),
            name=tc.get("function", {}).get("name", ""),
            arguments=parse_tool_args(tc.get("function", {}).get("arguments", "{}")),
        )
        for tc in message.get("tool_calls") or []
    )

    raw_usage = raw.get("usage") or {}
    details = raw_usage.get("completion_tokens_details") or {}
    usage = Usage(
        input_tokens=raw_usage.get("prompt_tokens", 0),
        output_tokens=raw_usage.get("completion_tokens", 0),
        total_tokens=raw_usage.get("total_tokens", 0),
        reasoning_tokens=details.get("reasoning_tokens"),
    )

    text = _message_text(message.get("content"))
    thinking = message.get("reasoning_content") or message.get("reasoning") or ""
    if not thinking:
        text, thinking = split_think_tags(text)

    return Response(
        text=text,
        tool_calls=tool_calls,
        usage=usage,
        stop_reason=stop_reason(WireProtocol.OPENAI_CHAT, choice.get("finish_reason")),
        thinking=thinking,
        metadata=metadata,
        raw=raw,
    )


def _parse_embeddings(raw: dict[str, Any]) -> EmbeddingResponse:
    data = sorted(raw.get("data") or [], key=lambda d: d.get("index", 0))
    raw_usage = raw.get("usage") or {}
    prompt = raw_usage.get("prompt_tokens", 0)
    return EmbeddingResponse(
        embeddings=tuple(tuple(d.get("embedding") or ()) for d in data),
        model=raw.get("model", ""),
        usage=Usage(input_tokens=prompt, total_tokens=raw_usage.get("total_tokens", prompt)),
        raw=raw,
    )


class OpenAICompatProvider(BaseProvider):
    """Handles every provider that shares the Chat Completions wire format."""

    protocol = WireProtocol.OPENAI_CHAT

    def __init__(
        self,
        provider_name: str,
        model: str,
        api_key: str,
        *,
        base_url: str | None = None,
        trace: TraceConfig | None = None,
    ) -> None:
        super().__init__(provider_name, model, trace=trace)
        cfg = OPENAI_COMPAT_PROVIDERS[provider_name]
        root = (base_url or cfg["base_url"]).rstrip("/")
        if not root:
            raise ValueError(f"Provider {provider_name!r} requires base_url=.")
        self._endpoint = root + cfg["path"]
        self._embeddings_endpoint = root + cfg["path"].replace("chat/completions", "embeddings")
        self._api_key = api_key

    def _url(self, *, stream: bool) -> str:
        return self._endpoint

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

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

        msgs: list[dict[str, Any]] = []
        if system:
            msgs.append({"role": "system", "content": system})
        msgs.extend(_message_to_wire(m) for m in messages)

        payload: dict[str, Any] = {"model": self._model, "messages": msgs, **kwargs}
        if tools:
            payload["tools"] = [_tool_to_openai(t) for t in tools]
        if json_schema:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": json_schema.name,
                    "schema": json_schema.schema,
                    "strict": json_schema.strict,
                },
            }
        if thinking:
            payload["reasoning_effort"] = thinking.effort
            if self.name == "groq":
                payload["include_reasoning"] = True
        return payload

    def _enable_streaming(self, payload: dict[str, Any]) -> None:
        payload["stream"] = True
        payload["stream_options"] = {"include_usage": True}

    def _parse_response(self, raw: dict[str, Any]) -> Response:
        return _parse_response(raw, self.name)

    def _embed_request(
        self, texts: list[str], model: str | None, kwargs: dict[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        model = model or _DEFAULT_EMBEDDING_MODELS.get(self.name)
        if not model:
            raise ValueError(f"Provider {self.name!r} has no default embedding model; pass model=.")
        return self._embeddings_endpoint, {"model": model, "input": texts, **kwargs}

    def _parse_embeddings(self, raw: dict[str, Any]) -> EmbeddingResponse:
        return _parse_embeddings(raw)
