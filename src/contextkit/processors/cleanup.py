"""Final stage: project messages onto the provider wire schema."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from .. import prompts
from ..settings import OrphanPolicy
from ..types import ConversationState, Message
from .base import SYSTEM_MESSAGE_ID, Processor

__all__ = ["MessageCleanupProcessor", "merge_system_messages", "to_wire_message"]

LOGGER = logging.getLogger(__name__)


def merge_system_messages(messages: Sequence[Message]) -> list[Message]:
    """Fold every system message into a single one at the front."""
    systems = [m for m in messages if m.role == "system"]
    others = [m for m in messages if m.role != "system"]
    if not systems:
        return others
    if len(systems) == 1 and messages[0] is systems[0]:
        return list(messages)

    text = "\n\n".join(m.text for m in systems if m.text)
    return [Message.system(text, message_id=SYSTEM_MESSAGE_ID), *others]


def to_wire_message(message: Message) -> Message:
    """Keep only the fields the chat completion API accepts for the role."""
    return Message(
        role=message.role,
        content=message.content,
        name=message.name if message.role == "tool" else None,
        tool_call_id=message.tool_call_id if message.role == "tool" else None,
        tool_calls=message.tool_calls if message.role == "assistant" else None,
        orphaned=message.orphaned,
    )


@dataclass(slots=True, frozen=True)
class MessageCleanupProcessor(Processor):
    """Merge system messages, settle orphans and strip bookkeeping fields.

    Orphaned tool results are kept as they are (``keep``), removed
    (``drop``), or rewritten as user text (``convert``).
    """

    name = "message_cleanup"

    orphan_policy: OrphanPolicy = "keep"

    async def process(self, state: ConversationState) -> ConversationState:
        messages: list[Message] = []
        for message in merge_system_messages(state.messages):
            if message.orphaned and message.role == "tool":
                if self.orphan_policy == "drop":
                    LOGGER.debug("Dropping orphaned tool result %s", message.id or message.tool_call_id)
                    continue
                if self.orphan_policy == "convert":
                    message = Message.user(prompts.describe_tool_result(message.plugin, message.text))
            messages.append(to_wire_message(message))
        return state.evolve(messages=messages)
