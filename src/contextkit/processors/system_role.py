"""System role injection stages.

Each provider evaluates an :class:`InjectionDecision` once and then applies
it through :func:`upsert_system_message`, so the conversation keeps a single
leading system message however many providers contribute to it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from .. import prompts
from ..tools.engine import ToolsEngine
from ..types import ConversationState, Message
from .base import SYSTEM_MESSAGE_ID, InjectionDecision, Processor, upsert_system_message

__all__ = [
    "SystemRoleInjector",
    "InboxGuideProvider",
    "ToolSystemRoleProvider",
    "HistorySummaryProvider",
]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class SystemRoleInjector(Processor):
    """Install the agent's system role as the only system message.

    Existing system messages are discarded and one message carrying exactly
    ``state.system_role`` is placed first. An empty role leaves the
    conversation untouched.
    """

    name = "system_role"

    def decide(self, state: ConversationState) -> InjectionDecision:
        if state.system_role and state.system_role.strip():
            return InjectionDecision.REPLACE
        return InjectionDecision.SKIP

    async def process(self, state: ConversationState) -> ConversationState:
        if self.decide(state) is InjectionDecision.SKIP:
            return state
        others = [m for m in state.messages if m.role != "system"]
        system = Message.system(state.system_role or "", message_id=SYSTEM_MESSAGE_ID)
        return state.evolve(messages=(system, *others))


@dataclass(slots=True, frozen=True)
class InboxGuideProvider(Processor):
    """Add the onboarding guide on the inbox session's welcome question."""

    name = "inbox_guide"

    inbox_session_id: str = prompts.INBOX_SESSION_ID
    guide: str = prompts.INBOX_GUIDE_SYSTEM_ROLE
    mode: InjectionDecision = InjectionDecision.INJECT

    def decide(self, state: ConversationState) -> InjectionDecision:
        if state.session_id != self.inbox_session_id or not state.is_welcome_question:
            return InjectionDecision.SKIP
        return self.mode

    async def process(self, state: ConversationState) -> ConversationState:
        decision = self.decide(state)
        if decision is InjectionDecision.SKIP:
            return state
        LOGGER.debug("Injecting inbox guide (%s)", decision.value)
        return state.evolve(
            messages=upsert_system_message(state.messages, self.guide, decision=decision)
        )


@dataclass(slots=True, frozen=True)
class ToolSystemRoleProvider(Processor):
    """Resolve the request's tools and describe them in the system role.

    The resolved tool list and the diagnostics are stored on the state so
    the caller can attach them to the same request. Nothing is injected when
    the model cannot call functions or no tools are requested.
    """

    name = "tool_system_role"

    tools_engine: ToolsEngine | None = None
    context: Mapping[str, Any] | None = None
    format_system_role: Callable[..., str] = prompts.tool_system_role

    def decide(self, state: ConversationState) -> InjectionDecision:
        if self.tools_engine is None:
            return InjectionDecision.SKIP
        if not (state.tool_ids or self.tools_engine.default_tool_ids):
            return InjectionDecision.SKIP
        if not self.tools_engine.supports_function_calling(state.model, state.provider):
            return InjectionDecision.SKIP
        return InjectionDecision.INJECT

    async def process(self, state: ConversationState) -> ConversationState:
        engine = self.tools_engine
        if engine is None:
            return state.evolve(tools=None)

        result = engine.generate_tools_detailed(
            state.tool_ids, model=state.model, provider=state.provider, context=self.context
        )
        if self.decide(state) is InjectionDecision.SKIP:
            # Diagnostics still explain why nothing was offered.
            return state.evolve(tools=None, tool_diagnostics=result)

        if result.filtered_tools:
            LOGGER.warning(
                "Filtered %d requested tool(s): %s",
                len(result.filtered_tools),
                ", ".join(f"{f.id} ({f.reason})" for f in result.filtered_tools),
            )

        with_roles = [m for m in result.manifests if m.system_role]
        text = self.format_system_role(with_roles, engine.tool_name)
        messages = upsert_system_message(state.messages, text) if text else state.messages
        return state.evolve(
            messages=messages,
            tools=result.tools or None,
            tool_diagnostics=result,
        )


@dataclass(slots=True, frozen=True)
class HistorySummaryProvider(Processor):
    """Prepend a compressed summary of older history to the system role."""

    name = "history_summary"

    format_summary: Callable[[str], str] = prompts.history_summary_prompt

    def decide(self, state: ConversationState) -> InjectionDecision:
        if state.history_summary and state.history_summary.strip():
            return InjectionDecision.INJECT
        return InjectionDecision.SKIP

    async def process(self, state: ConversationState) -> ConversationState:
        if self.decide(state) is InjectionDecision.SKIP:
            return state
        text = self.format_summary(state.history_summary or "")
        return state.evolve(messages=upsert_system_message(state.messages, text))
