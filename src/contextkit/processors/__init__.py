"""Pipeline stages, listed in the order the context engine runs them."""

from .base import SYSTEM_MESSAGE_ID, InjectionDecision, Processor, maybe_await, upsert_system_message
from .cleanup import MessageCleanupProcessor, merge_system_messages, to_wire_message
from .content import (
    AttachmentResolver,
    InputTemplateProcessor,
    MessageContentProcessor,
    PlaceholderVariablesProcessor,
)
from .history import HistoryTruncateProcessor, split_turns
from .reorder import ToolMessageReorder, call_ids, reorder_turn
from .system_role import (
    HistorySummaryProvider,
    InboxGuideProvider,
    SystemRoleInjector,
    ToolSystemRoleProvider,
)
from .tool_calls import ToolCallProcessor

__all__ = [
    # base.py exports
    "SYSTEM_MESSAGE_ID",
    "InjectionDecision",
    "Processor",
    "maybe_await",
    "upsert_system_message",
    # stages, in pipeline order
    "HistoryTruncateProcessor",
    "SystemRoleInjector",
    "InboxGuideProvider",
    "ToolSystemRoleProvider",
    "HistorySummaryProvider",
    "InputTemplateProcessor",
    "PlaceholderVariablesProcessor",
    "MessageContentProcessor",
    "ToolCallProcessor",
    "ToolMessageReorder",
    "MessageCleanupProcessor",
    # helpers
    "AttachmentResolver",
    "call_ids",
    "merge_system_messages",
    "reorder_turn",
    "split_turns",
    "to_wire_message",
]
