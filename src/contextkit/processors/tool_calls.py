"""Tool call stage: wire format tool calls, or text when the model has none."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from .. import prompts
from ..capabilities import CapabilityChecker
from ..errors import UnknownToolNameError
from ..tools.engine import ToolNameGenerator
from ..tools.names import ToolNameResolver, generate_tool_name
from ..types import DEFAULT_TOOL_TYPE, ConversationState, Message, ToolInvocation
from .base import Processor

__all__ = ["ToolCallProcessor"]

LOGGER = logging.getLogger(__name__)


def _always(model: str, provider: str) -> bool:
    return True


@dataclass(slots=True, frozen=True)
class ToolCallProcessor(Processor):
    """Regenerate assistant tool calls through the calling name generator.

    When the model supports function calling, each assistant ``tools`` entry
    becomes an OpenAI ``tool_calls`` item and tool result messages receive
    the matching function ``name``. Otherwise tool data is dropped: the
    assistant message describes the calls in text and tool results become
    user messages.

    Stored wire ``tool_calls`` that carry no invocations pass through as
    they are; the text form maps their names back through ``name_resolver``.
    """

    name = "tool_calls"

    supports_function_calling: CapabilityChecker = _always
    tool_name: ToolNameGenerator = generate_tool_name
    name_resolver: ToolNameResolver | None = None

    async def process(self, state: ConversationState) -> ConversationState:
        if not any(m.tools or m.tool_calls or m.role == "tool" for m in state.messages):
            return state

        if self.supports_function_calling(state.model, state.provider):
            messages = [self._to_wire(message) for message in state.messages]
        else:
            LOGGER.debug(
                "Function calling unsupported for %s/%s; describing tool calls as text",
                state.model,
                state.provider,
            )
            messages = [self._to_text(message) for message in state.messages]
        return state.evolve(messages=messages)

    def _to_wire(self, message: Message) -> Message:
        if message.role == "assistant" and message.tools:
            calls = tuple(self._tool_call(invocation) for invocation in message.tools)
            return message.evolve(tool_calls=calls)
        if message.role == "tool" and message.plugin is not None:
            plugin = message.plugin
            return message.evolve(name=self.tool_name(plugin.identifier, plugin.api_name, plugin.type))
        return message

    def _to_text(self, message: Message) -> Message:
        if message.role == "assistant" and (message.tools or message.tool_calls):
            invocations = message.tools or tuple(self._from_wire(call) for call in message.tool_calls or ())
            lines = [prompts.describe_tool_call(invocation) for invocation in invocations]
            text = "\n".join(part for part in (message.text, *lines) if part)
            return message.evolve(content=text, tools=None, tool_calls=None)
        if message.role == "tool":
            return message.evolve(
                role="user",
                content=prompts.describe_tool_result(message.plugin, message.text),
                name=None,
                tool_call_id=None,
                plugin=None,
            )
        return message

    def _tool_call(self, invocation: ToolInvocation) -> Mapping[str, Any]:
        return {
            "id": invocation.id,
            "type": "function",
            "function": {
                "name": self.tool_name(invocation.identifier, invocation.api_name, invocation.type),
                "arguments": invocation.arguments,
            },
        }

    def _from_wire(self, call: Mapping[str, Any]) -> ToolInvocation:
        function = call.get("function") or {}
        calling_name = str(function.get("name", ""))
        try:
            parts = (self.name_resolver or ToolNameResolver()).resolve(calling_name)
        except UnknownToolNameError:
            identifier, api_name, type_ = calling_name, "", DEFAULT_TOOL_TYPE
        else:
            identifier, api_name, type_ = parts.identifier, parts.api_name, parts.type
        return ToolInvocation(
            id=str(call.get("id", "")),
            identifier=identifier,
            api_name=api_name,
            arguments=str(function.get("arguments", "{}")),
            type=type_,
        )
