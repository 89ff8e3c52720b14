"""Processor contract and helpers shared by the pipeline stages.

A processor is a small stateless object with one responsibility: it receives
the :class:`ConversationState` produced by its predecessor and returns a new
one. Processors may await I/O internally but never keep per-run state on
``self``, so one pipeline instance can serve concurrent requests.
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from enum import Enum
from typing import Awaitable, ClassVar, Sequence, TypeVar, Union

from ..types import ConversationState, Message

__all__ = [
    "Processor",
    "InjectionDecision",
    "SYSTEM_MESSAGE_ID",
    "upsert_system_message",
    "maybe_await",
]

SYSTEM_MESSAGE_ID = "system"

T = TypeVar("T")


class InjectionDecision(Enum):
    """Outcome of a conditional system role injection."""

    INJECT = "inject"  # append to the system message, creating it if needed
    REPLACE = "replace"  # overwrite the system message content
    SKIP = "skip"


class Processor(ABC):
    """A single pipeline stage."""

    __slots__ = ()

    name: ClassVar[str] = "processor"

    @abstractmethod
    async def process(self, state: ConversationState) -> ConversationState:
        """Return the state for the next stage."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"


def upsert_system_message(
    messages: Sequence[Message],
    text: str,
    *,
    decision: InjectionDecision = InjectionDecision.INJECT,
) -> tuple[Message, ...]:
    """Merge ``text`` into the leading system message.

    The first system message is updated in place; when none exists a new one
    is inserted at the front. Other messages keep their order.
    """
    if decision is InjectionDecision.SKIP or not text:
        return tuple(messages)

    for index, message in enumerate(messages):
        if message.role != "system":
            continue
        if decision is InjectionDecision.REPLACE or not message.text:
            content = text
        else:
            content = f"{message.text}\n\n{text}"
        updated = list(messages)
        updated[index] = message.evolve(content=content)
        return tuple(updated)

    return (Message.system(text, message_id=SYSTEM_MESSAGE_ID), *messages)


async def maybe_await(value: Union[T, Awaitable[T]]) -> T:
    """Await ``value`` if a collaborator returned an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value  # type: ignore[return-value]

