"""History truncation: keep the most recent complete turns."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from ..types import ConversationState, Message
from .base import Processor

__all__ = ["split_turns", "HistoryTruncateProcessor"]

LOGGER = logging.getLogger(__name__)


def split_turns(messages: Sequence[Message]) -> list[list[Message]]:
    """Partition messages into turns.

    A turn starts at a ``user`` message and runs until the next one. Messages
    ahead of the first user message form a leading group of their own.
    """
    turns: list[list[Message]] = []
    for message in messages:
        if message.role == "user" or not turns:
            turns.append([message])
        else:
            turns[-1].append(message)
    return turns


@dataclass(slots=True, frozen=True)
class HistoryTruncateProcessor(Processor):
    """Keep the last ``history_count`` turns when truncation is enabled.

    Runs first so that later injections are never cut off. A turn is kept or
    dropped as a whole, so a user/assistant/tool group is never split.
    """

    name = "history_truncate"

    async def process(self, state: ConversationState) -> ConversationState:
        if not state.enable_history_count or state.history_count is None:
            return state

        limit = max(0, int(state.history_count))
        turns = split_turns(state.messages)
        if len(turns) <= limit:
            return state

        kept = turns[len(turns) - limit:] if limit else []
        messages = tuple(message for turn in kept for message in turn)
        LOGGER.debug(
            "Truncated history from %d to %d turn(s) (%d -> %d messages)",
            len(turns),
            len(kept),
            len(state.messages),
            len(messages),
        )
        return state.evolve(messages=messages)
