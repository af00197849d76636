"""02: Streaming (Gemini).

Two streaming modes:
  1. stream()        yields plain text chunks
  2. stream_events() yields normalized events, the same for every provider
"""

import logging

from omnillm.llm import (
    Client,
    ContentDelta,
    ErrorEvent,
    StreamEnd,
    ThinkingConfig,
    ThinkingDelta,
    UsageUpdate,
)

logging.basicConfig(level=logging.WARNING)

client = Client("gemini", model="gemini-2.5-flash")

# --- Mode 1: Simple text streaming ---
print("=== stream() ===")
for chunk in client.stream("Explain photosynthesis in three sentences."):
    print(chunk, end="", flush=True)
print("\n")

# --- Mode 2: Normalized event streaming ---
print("=== stream_events() ===")
for event in client.stream_events(
    "Why is the sky blue? One paragraph.", thinking=ThinkingConfig(budget_tokens=1024)
):
    match event:
        case ThinkingDelta(text=text):
            print(f"\033[2m{text}\033[0m", end="", flush=True)
        case ContentDelta(text=text):
            print(text, end="", flush=True)
        case UsageUpdate(usage=usage):
            print(f"\n[usage: {usage.total_tokens} tokens]")
        case ErrorEvent(kind=kind, message=message):
            print(f"\n[{kind}: {message}]")
        case StreamEnd(finish_reason=reason, usage=usage):
            tokens = usage.total_tokens if usage else "?"
            print(f"\n\n[finished: {reason}, {tokens} tokens]")
