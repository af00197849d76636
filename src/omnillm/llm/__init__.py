"""LLM client: unified interface and streaming pipeline for multiple LLM providers."""

from omnillm.llm._assembler import StreamAssembler, ToolCallAccumulator, acollect, collect
from omnillm.llm._async_client import AsyncClient
from omnillm.llm._client import Client
from omnillm.llm._events import (
    ContentDelta,
    ErrorEvent,
    ErrorKind,
    FinishReason,
    StreamEnd,
    StreamEvent,
    ThinkingDelta,
    ToolCallDelta,
    UsageUpdate,
)
from omnillm.llm._exceptions import APIError, OmniLLMError, RateLimitError, StreamClosedError
from omnillm.llm._framing import Frame, FrameKind, Framing, make_splitter
from omnillm.llm._payload import WireProtocol
from omnillm.llm._pipeline import StreamPipeline, aiter_stream_events, iter_stream_events
from omnillm.llm._providers import create_provider
from omnillm.llm._tracing import TraceConfig
from omnillm.llm._types import (
    EmbeddingResponse,
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
from omnillm.llm._utf8 import Utf8StreamDecoder

__all__ = [
    "APIError",
    "AsyncClient",
    "Client",
    "ContentDelta",
    "EmbeddingResponse",
    "ErrorEvent",
    "ErrorKind",
    "FinishReason",
    "Frame",
    "FrameKind",
    "Framing",
    "ImagePart",
    "JsonSchema",
    "Message",
    "OmniLLMError",
    "RateLimitError",
    "Response",
    "ResponseMetadata",
    "StreamAssembler",
    "StreamClosedError",
    "StreamEnd",
    "StreamEvent",
    "StreamPipeline",
    "TextPart",
    "ThinkingConfig",
    "ThinkingDelta",
    "Tool",
    "ToolCall",
    "ToolCallAccumulator",
    "ToolCallDelta",
    "ToolResult",
    "TraceConfig",
    "Usage",
    "UsageUpdate",
    "Utf8StreamDecoder",
    "WireProtocol",
    "acollect",
    "aiter_stream_events",
    "collect",
    "create_provider",
    "iter_stream_events",
    "make_splitter",
]
