"""Tests for token estimation and budgeting."""

from __future__ import annotations

from contextkit.tokens import (
    ApproxByteCounter,
    TokenCounterRegistry,
    estimate_budget,
    estimate_message_tokens,
    estimate_text_tokens,
)
from contextkit.types import Message


class _FailingCounter:
    model_name = "broken"

    def count(self, text: str) -> int:
        raise RuntimeError("no tokenizer")

    def estimate(self, text: str) -> int:
        return 7


class TestApproxByteCounter:
    def test_rounds_up(self) -> None:
        counter = ApproxByteCounter()

        assert counter.count("") == 0
        assert counter.count("abc") == 1
        assert counter.count("abcdefgh") == 2
        assert counter.count("abcdefghi") == 3

    def test_custom_ratio(self) -> None:
        assert ApproxByteCounter(bytes_per_token=2).count("abcdef") == 3


class TestRegistry:
    def test_fallback_and_registration(self) -> None:
        fallback = ApproxByteCounter()
        custom = ApproxByteCounter(bytes_per_token=1)
        registry = TokenCounterRegistry(fallback=fallback)

        assert registry.counter_for("gpt-4o") is fallback
        registry.register("GPT-4o", custom)
        assert registry.has("gpt-4o")
        assert registry.counter_for(" gpt-4o ") is custom

        registry.unregister("gpt-4o")
        assert not registry.has("gpt-4o")

    def test_initial_counters(self) -> None:
        custom = ApproxByteCounter(bytes_per_token=1)

        registry = TokenCounterRegistry({"claude-3": custom})

        assert registry.counter_for("Claude-3") is custom
        assert registry.counter_for("") is not custom

    def test_factory_builds_once_per_model(self) -> None:
        built: list[str] = []

        def factory(model_name: str) -> ApproxByteCounter:
            built.append(model_name)
            return ApproxByteCounter(model_name=model_name)

        registry = TokenCounterRegistry(factory=factory)

        first = registry.counter_for("gpt-4o")
        assert registry.counter_for("GPT-4O") is first
        assert built == ["gpt-4o"]
        assert registry.has("gpt-4o")

    def test_failing_factory_uses_fallback(self) -> None:
        fallback = _FailingCounter()

        def factory(model_name: str) -> ApproxByteCounter:
            raise LookupError(model_name)

        registry = TokenCounterRegistry(factory=factory, fallback=fallback)

        assert registry.counter_for("mystery") is fallback
        assert not registry.has("mystery")


class TestEstimation:
    def test_text_tokens_with_failing_counter(self) -> None:
        assert estimate_text_tokens("hello", counter=_FailingCounter()) == 7

    def test_message_overhead(self) -> None:
        assert estimate_message_tokens(Message.user("abcdefgh")) == 4 + 2

    def test_media_parts_have_flat_cost(self) -> None:
        message = {
            "role": "user",
            "content": [
                {"type": "text", "text": "abcd"},
                {"type": "image_url", "image_url": {"url": "https://img"}},
            ],
        }

        assert estimate_message_tokens(message) == 4 + 1 + 85

    def test_tool_calls_are_counted(self) -> None:
        plain = estimate_message_tokens({"role": "assistant", "content": ""})
        with_calls = estimate_message_tokens(
            {
                "role": "assistant",
                "content": "",
                "tool_calls": [{"id": "c1", "type": "function", "function": {"name": "x", "arguments": "{}"}}],
            }
        )

        assert with_calls > plain


class TestBudget:
    def test_within_budget(self) -> None:
        budget = estimate_budget([Message.user("hello")], context_limit=100_000, response_reserve=1_000)

        assert budget.is_ok
        assert budget.completion_budget == 1_000
        assert budget.headroom == 100_000 - budget.prompt_tokens - 1_000

    def test_needs_summary(self) -> None:
        messages = [{"role": "user", "content": "x" * 4 * 10_000}]

        budget = estimate_budget(messages, context_limit=8_000, response_reserve=0)

        assert budget.verdict == "needs_summary"
        assert budget.reason == "exceeds-budget"

    def test_reject(self) -> None:
        messages = [{"role": "user", "content": "x" * 4 * 50_000}]

        budget = estimate_budget(messages, context_limit=8_000)

        assert budget.verdict == "reject"
        assert not budget.is_ok

    def test_tools_add_to_prompt(self) -> None:
        messages = [Message.user("hi")]
        tools = [{"type": "function", "function": {"name": "x", "description": "d" * 400, "parameters": {}}}]

        without = estimate_budget(messages, context_limit=10_000)
        with_tools = estimate_budget(messages, context_limit=10_000, tools=tools)

        assert with_tools.prompt_tokens > without.prompt_tokens
