"""Unit tests for pipeline types."""

from __future__ import annotations

import pytest

from contextkit.types import (
    Attachment,
    BudgetEstimate,
    ContextResult,
    ConversationState,
    Message,
    ToolInvocation,
)


# -----------------------------------------------------------------------------
# Message Tests
# -----------------------------------------------------------------------------


class TestMessage:
    """Tests for the Message dataclass."""

    def test_message_is_frozen(self) -> None:
        msg = Message(role="user", content="test")
        with pytest.raises(AttributeError):
            msg.content = "modified"  # type: ignore[misc]

    def test_factories(self) -> None:
        assert Message.system("prompt", message_id="s").role == "system"
        user = Message.user("hi", message_id="u1", images=[Attachment("img", kind="image")])
        assert user.id == "u1"
        assert user.has_attachments
        tool = Message.tool("result", "call_1")
        assert tool.role == "tool"
        assert tool.tool_call_id == "call_1"

    def test_assistant_factory_with_tools(self) -> None:
        call = ToolInvocation(id="call_1", identifier="weather", api_name="getCurrent")

        msg = Message.assistant("", [call])

        assert msg.tools == (call,)

    def test_text_joins_text_parts(self) -> None:
        msg = Message(
            role="user",
            content=(
                {"type": "text", "text": "first"},
                {"type": "image_url", "image_url": {"url": "https://img"}},
                {"type": "text", "text": "second"},
            ),
        )

        assert msg.text == "first\nsecond"

    def test_evolve_returns_copy(self) -> None:
        msg = Message.user("hello")

        updated = msg.evolve(content="changed")

        assert msg.content == "hello"
        assert updated.content == "changed"

    def test_to_chat_param_minimal(self) -> None:
        assert Message.user("hello").to_chat_param() == {"role": "user", "content": "hello"}

    def test_to_chat_param_tool_fields(self) -> None:
        msg = Message(role="tool", content="ok", name="weather____getCurrent", tool_call_id="call_1")

        assert msg.to_chat_param() == {
            "role": "tool",
            "content": "ok",
            "name": "weather____getCurrent",
            "tool_call_id": "call_1",
        }

    def test_from_mapping_camel_case(self) -> None:
        record = {
            "id": "m1",
            "role": "assistant",
            "content": None,
            "tools": [
                {"id": "call_1", "identifier": "weather", "apiName": "getCurrent", "arguments": {"city": "Oslo"}}
            ],
            "imageList": [{"id": "img1", "url": "https://img", "alt": "cat.png"}],
        }

        msg = Message.from_mapping(record)

        assert msg.content == ""
        assert msg.tools is not None
        assert msg.tools[0].api_name == "getCurrent"
        assert msg.tools[0].arguments == '{"city": "Oslo"}'
        assert msg.images[0].name == "cat.png"
        assert msg.images[0].kind == "image"

    def test_from_mapping_tool_result(self) -> None:
        msg = Message.from_mapping(
            {
                "role": "tool",
                "content": "sunny",
                "toolCallId": "call_1",
                "plugin": {"id": "call_1", "identifier": "weather", "apiName": "getCurrent", "type": "builtin"},
            }
        )

        assert msg.tool_call_id == "call_1"
        assert msg.plugin is not None
        assert msg.plugin.type == "builtin"

    def test_from_mapping_keeps_openai_tool_calls(self) -> None:
        msg = Message.from_mapping(
            {
                "role": "assistant",
                "content": None,
                "tool_calls": [
                    {"id": "c1", "type": "function", "function": {"name": "weather____getCurrent", "arguments": {"city": "Oslo"}}},
                ],
            }
        )

        assert msg.content == ""
        assert msg.tool_calls == (
            {
                "id": "c1",
                "type": "function",
                "function": {"name": "weather____getCurrent", "arguments": '{"city": "Oslo"}'},
            },
        )
        assert msg.to_chat_param()["tool_calls"][0]["id"] == "c1"

    def test_from_mapping_rejects_unknown_role(self) -> None:
        with pytest.raises(ValueError):
            Message.from_mapping({"role": "function", "content": "x"})


class TestToolInvocation:
    def test_defaults(self) -> None:
        call = ToolInvocation.from_mapping({"id": "c", "identifier": "x", "api_name": "y"})

        assert call.arguments == "{}"
        assert call.type == "default"


# -----------------------------------------------------------------------------
# State Tests
# -----------------------------------------------------------------------------


class TestConversationState:
    def test_create_normalizes_records(self) -> None:
        state = ConversationState.create(
            [{"role": "user", "content": "hi"}, Message.assistant("hello")],
            model="gpt-4o",
            provider="openai",
            tool_ids=["weather"],
            system_role="Be nice",
        )

        assert all(isinstance(m, Message) for m in state.messages)
        assert state.tool_ids == ("weather",)
        assert state.system_role == "Be nice"

    def test_evolve_tuples_messages(self) -> None:
        state = ConversationState()

        updated = state.evolve(messages=[Message.user("x")])

        assert isinstance(updated.messages, tuple)
        assert state.messages == ()


class TestResults:
    def test_budget_is_ok(self) -> None:
        assert BudgetEstimate(prompt_tokens=1, completion_budget=1, total_budget=10).is_ok
        assert not BudgetEstimate(
            prompt_tokens=1, completion_budget=1, total_budget=10, verdict="reject"
        ).is_ok

    def test_to_request_omits_empty_tools(self) -> None:
        result = ContextResult(messages=({"role": "user", "content": "hi"},))

        assert result.to_request() == {"messages": [{"role": "user", "content": "hi"}]}

    def test_to_request_includes_tools(self) -> None:
        tool = {"type": "function", "function": {"name": "x", "description": "", "parameters": {}}}
        result = ContextResult(messages=(), tools=(tool,))  # type: ignore[arg-type]

        assert result.to_request()["tools"] == [tool]
