"""04: Async Client (OpenAI and a local Ollama server).

Demonstrates AsyncClient with:
  - Single async chat
  - Async streaming
  - Parallel streamed requests with asyncio.gather()
"""

import asyncio

from omnillm.llm import AsyncClient


async def main():
    client = AsyncClient("openai", model="gpt-5-nano")

    # --- Single async request ---
    print("=== Async Chat ===")
    resp = await client.chat("What is 2 + 2? Reply in one word.")
    print(f"Answer: {resp.text}\n")

    # --- Async streaming from Ollama (NDJSON on the wire) ---
    print("=== Async Streaming (Ollama) ===")
    local = AsyncClient("ollama", model="llama3.2")
    async for chunk in local.stream("Count from 1 to 5, one number per line."):
        print(chunk, end="", flush=True)
    print("\n")

    # --- Parallel streamed requests ---
    print("=== Parallel Requests (3 concurrent) ===")
    questions = [
        "Name one planet in our solar system.",
        "Name one programming language.",
        "Name one chemical element.",
    ]
    responses = await asyncio.gather(*(client.stream_response(q) for q in questions))

    for question, resp in zip(questions, responses, strict=True):
        print(f"  Q: {question}")
        print(f"  A: {resp.text} ({resp.stop_reason})\n")


if __name__ == "__main__":
    asyncio.run(main())
