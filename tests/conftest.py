"""Shared pytest fixtures."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from contextkit.tools import ToolManifest, ToolsEngine
from contextkit.types import Message, ToolInvocation


WEATHER_MANIFEST: dict[str, Any] = {
    "identifier": "weather",
    "type": "default",
    "systemRole": "Use the weather tools for forecasts.",
    "meta": {"title": "Weather"},
    "api": [
        {
            "name": "getCurrent",
            "description": "Get the current weather for a city.",
            "parameters": {
                "type": "object",
                "properties": {"city": {"type": "string"}},
                "required": ["city"],
            },
        },
        {
            "name": "getForecast",
            "description": "Get a multi-day forecast.",
            "parameters": {
                "type": "object",
                "properties": {"city": {"type": "string"}, "days": {"type": "integer"}},
            },
        },
    ],
}

SEARCH_MANIFEST: dict[str, Any] = {
    "identifier": "web-search",
    "api": [
        {
            "name": "search",
            "description": "Search the web.",
            "parameters": {"type": "object", "properties": {"query": {"type": "string"}}},
        }
    ],
}


@pytest.fixture
def weather_manifest() -> ToolManifest:
    return ToolManifest.from_mapping(WEATHER_MANIFEST)


@pytest.fixture
def search_manifest() -> ToolManifest:
    return ToolManifest.from_mapping(SEARCH_MANIFEST)


@pytest.fixture
def make_tools_engine(
    weather_manifest: ToolManifest, search_manifest: ToolManifest
) -> Callable[..., ToolsEngine]:
    """Factory building a tools engine over the sample manifests."""

    def factory(**kwargs: Any) -> ToolsEngine:
        return ToolsEngine([weather_manifest, search_manifest], **kwargs)

    return factory


@pytest.fixture
def tool_turn() -> list[Message]:
    """One turn with an assistant calling two tools and both results."""
    calls = [
        ToolInvocation(id="call_a", identifier="weather", api_name="getCurrent", arguments='{"city": "Oslo"}'),
        ToolInvocation(id="call_b", identifier="weather", api_name="getForecast", arguments='{"city": "Oslo"}'),
    ]
    return [
        Message.user("What's the weather in Oslo?", message_id="u1"),
        Message.assistant("", calls, message_id="a1"),
        Message.tool("sunny", "call_a", plugin=calls[0], message_id="t1"),
        Message.tool("rain tomorrow", "call_b", plugin=calls[1], message_id="t2"),
        Message.assistant("Sunny now, rain tomorrow.", message_id="a2"),
    ]


@pytest.fixture
def make_conversation() -> Callable[[int], list[Message]]:
    """Factory building ``turns`` plain user/assistant turns."""

    def factory(turns: int) -> list[Message]:
        messages: list[Message] = []
        for index in range(1, turns + 1):
            messages.append(Message.user(f"question {index}", message_id=f"u{index}"))
            messages.append(Message.assistant(f"answer {index}", message_id=f"a{index}"))
        return messages

    return factory
