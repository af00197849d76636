"""Provider registry: maps provider names to configured provider instances."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from omnillm.llm._providers._anthropic import AnthropicProvider
from omnillm.llm._providers._gemini import GeminiProvider
from omnillm.llm._providers._ollama import DEFAULT_HOST, OllamaProvider
from omnillm.llm._providers._openai_compat import (
    OPENAI_COMPAT_PROVIDERS,
    OpenAICompatProvider,
)

if TYPE_CHECKING:
    from omnillm.llm._providers._base import BaseProvider
    from omnillm.llm._tracing import TraceConfig


def _resolve_key(env_var: str, api_key: str | None) -> str:
    key = api_key or os.environ.get(env_var, "")
    if not key:
        raise ValueError(
            f"No API key provided. Pass api_key= or set the {env_var} environment variable."
        )
    return key


def supported_providers() -> list[str]:
    return sorted([*OPENAI_COMPAT_PROVIDERS, "anthropic", "gemini", "ollama"])


def create_provider(
    name: str,
    model: str,
    api_key: str | None = None,
    *,
    base_url: str | None = None,
    trace: TraceConfig | None = None,
) -> BaseProvider:
    """Create a provider instance by name.

    API keys fall back to the provider's environment variable. Ollama needs
    no key; its host comes from ``base_url``, then ``OLLAMA_HOST``.
    """
    if name in OPENAI_COMPAT_PROVIDERS:
        env_var = OPENAI_COMPAT_PROVIDERS[name]["env_key"]
        if name == "openai-compatible":
            if not base_url:
                raise ValueError("Provider 'openai-compatible' requires base_url=.")
            # Local servers (vLLM, LM Studio, llama.cpp) usually take no key.
            key = api_key or os.environ.get(env_var, "")
        else:
            key = _resolve_key(env_var, api_key)
        return OpenAICompatProvider(name, model, key, base_url=base_url, trace=trace)

    if name == "anthropic":
        key = _resolve_key("ANTHROPIC_API_KEY", api_key)
        return AnthropicProvider(model, key, base_url=base_url, trace=trace)

    if name == "gemini":
        key = _resolve_key("GEMINI_API_KEY", api_key)
        return GeminiProvider(model, key, base_url=base_url, trace=trace)

    if name == "ollama":
        host = base_url or os.environ.get("OLLAMA_HOST") or DEFAULT_HOST
        return OllamaProvider(model, base_url=host, trace=trace)

    raise ValueError(f"Unknown provider {name!r}. Supported: {supported_providers()}")
