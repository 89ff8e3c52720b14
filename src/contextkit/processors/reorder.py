"""Tool message reordering."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from ..types import ConversationState, Message
from .base import Processor
from .history import split_turns

__all__ = ["call_ids", "reorder_turn", "ToolMessageReorder"]

LOGGER = logging.getLogger(__name__)


def call_ids(message: Message) -> list[str]:
    """Return the tool call ids declared by an assistant message, in order."""
    if message.tool_calls:
        return [str(call.get("id", "")) for call in message.tool_calls]
    if message.tools:
        return [invocation.id for invocation in message.tools]
    return []


def reorder_turn(turn: Sequence[Message]) -> tuple[list[Message], list[Message]]:
    """Place each tool result right after the assistant message that called it.

    Returns the reordered turn and the orphaned tool results. Results for one
    assistant message follow the declaration order of its calls; orphans are
    flagged and moved to the end of the turn. Non-tool messages keep their
    relative order.
    """
    owners: dict[str, tuple[int, int]] = {}
    for position, message in enumerate(turn):
        if message.role != "assistant":
            continue
        for declared, call_id in enumerate(call_ids(message)):
            # The first declaration of an id owns it.
            owners.setdefault(call_id, (position, declared))

    results: dict[int, list[tuple[int, Message]]] = {}
    orphans: list[Message] = []
    for message in turn:
        if message.role != "tool":
            continue
        owner = owners.get(message.tool_call_id or "")
        if owner is None:
            orphans.append(message.evolve(orphaned=True))
        else:
            results.setdefault(owner[0], []).append((owner[1], message))

    ordered: list[Message] = []
    for position, message in enumerate(turn):
        if message.role == "tool":
            continue
        ordered.append(message)
        grouped = results.get(position)
        if grouped:
            # sort is stable, so duplicate results keep their input order
            ordered.extend(item for _, item in sorted(grouped, key=lambda entry: entry[0]))
    ordered.extend(orphans)
    return ordered, orphans


@dataclass(slots=True, frozen=True)
class ToolMessageReorder(Processor):
    """Group tool results behind their owning assistant message, per turn.

    Never moves messages across turn boundaries. Orphaned results are kept
    and flagged; the cleanup stage decides what happens to them.
    """

    name = "tool_message_reorder"

    async def process(self, state: ConversationState) -> ConversationState:
        if not any(m.role == "tool" for m in state.messages):
            return state

        messages: list[Message] = []
        orphaned_ids: list[str] = list(state.orphaned_ids)
        for turn in split_turns(state.messages):
            ordered, orphans = reorder_turn(turn)
            messages.extend(ordered)
            orphaned_ids.extend(m.id or m.tool_call_id or "" for m in orphans)

        if len(orphaned_ids) > len(state.orphaned_ids):
            LOGGER.warning(
                "Found %d orphaned tool result(s): %s",
                len(orphaned_ids) - len(state.orphaned_ids),
                ", ".join(orphaned_ids[len(state.orphaned_ids):]),
            )
        return state.evolve(messages=messages, orphaned_ids=tuple(orphaned_ids))
