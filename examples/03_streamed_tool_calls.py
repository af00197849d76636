"""03: Streamed Tool Calling (Anthropic).

Stream a request that may call a tool. stream_response() folds the
tool-call fragments back into complete ToolCall objects, so the result
can be handled exactly like a non-streaming response.
"""

from omnillm.llm import Client, Message, Tool, ToolResult

client = Client("anthropic", model="claude-haiku-4-5")

weather_tool = Tool(
    name="get_weather",
    description="Get the current weather for a city.",
    parameters={
        "type": "object",
        "properties": {
            "city": {"type": "string", "description": "City name"},
        },
        "required": ["city"],
    },
)

# Simulated weather data
WEATHER_DATA = {
    "london": "14°C, cloudy with light rain",
    "tokyo": "26°C, sunny and humid",
    "new york": "18°C, partly cloudy",
}

messages = [Message(role="user", content="What's the weather in Tokyo?")]
response = client.stream_response(messages, tools=[weather_tool])

if response.tool_calls:
    tc = response.tool_calls[0]
    city = str(tc.arguments["city"]).lower()
    weather = WEATHER_DATA.get(city, "Unknown city")
    print(f"[Tool called: {tc.name}(city={city!r}) -> {weather}]")

    messages.append(response.to_message())
    messages.append(ToolResult(tool_call_id=tc.id, name=tc.name, content=weather))

    print("\nAssistant: ", end="")
    for chunk in client.stream(messages, tools=[weather_tool]):
        print(chunk, end="", flush=True)
    print()
else:
    print("Assistant:", response.text)

for error in response.errors:
    print("[stream warning]", error)
