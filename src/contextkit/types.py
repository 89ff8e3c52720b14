"""Core type definitions for the context engineering pipeline.

This module defines the immutable dataclasses that flow through the pipeline.
All types are frozen so that every processor produces a new version instead of
mutating the one it received.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Literal, Mapping, Sequence

from openai.types.chat import ChatCompletionMessageParam, ChatCompletionToolParam

if TYPE_CHECKING:
    from .tools.engine import FilteredTool, ToolsGenerationResult, UniformTool

__all__ = [
    # Message types
    "MessageRole",
    "Attachment",
    "ToolInvocation",
    "Message",
    # Pipeline types
    "ConversationState",
    "BudgetEstimate",
    "ContextResult",
]


# -----------------------------------------------------------------------------
# Message Types
# -----------------------------------------------------------------------------

MessageRole = Literal["system", "user", "assistant", "tool"]
AttachmentKind = Literal["image", "video", "file"]


_VALID_ROLES: frozenset[str] = frozenset({"system", "user", "assistant", "tool"})
DEFAULT_TOOL_TYPE = "default"


@dataclass(slots=True, frozen=True)
class Attachment:
    """Opaque reference to an image, video or file attached to a message.

    The pipeline never fetches attachments itself; an attachment resolver
    turns the reference into renderable content.

    Attributes:
        id: Storage reference for the attachment.
        kind: One of ``image``, ``video`` or ``file``.
        name: Display name (file name for documents).
        url: Pre-resolved URL, when the repository already knows it.
        content: Inline text content for file attachments.
        file_type: MIME type hint.
    """

    id: str
    kind: AttachmentKind = "file"
    name: str = ""
    url: str | None = None
    content: str | None = None
    file_type: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, kind: AttachmentKind) -> Attachment:
        """Build an attachment from a repository record."""
        return cls(
            id=str(data.get("id", "")),
            kind=kind,
            name=str(data.get("name") or data.get("alt") or ""),
            url=data.get("url"),
            content=data.get("content"),
            file_type=str(data.get("fileType") or data.get("file_type") or ""),
        )


@dataclass(slots=True, frozen=True)
class ToolInvocation:
    """A tool call emitted by the assistant, in manifest terms.

    Attributes:
        id: Tool call id linking the invocation to its result message.
        identifier: Manifest identifier of the tool.
        api_name: Name of the API within the manifest.
        arguments: JSON encoded arguments.
        type: Manifest type tag (``default``, ``builtin``, ``mcp`` ...).
    """

    id: str
    identifier: str
    api_name: str
    arguments: str = "{}"
    type: str = DEFAULT_TOOL_TYPE

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ToolInvocation:
        """Build an invocation from a repository record (camelCase or snake_case)."""
        arguments = data.get("arguments", "{}")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments, ensure_ascii=False, sort_keys=True)
        return cls(
            id=str(data.get("id", "")),
            identifier=str(data.get("identifier", "")),
            api_name=str(data.get("apiName") or data.get("api_name") or ""),
            arguments=arguments or "{}",
            type=str(data.get("type") or DEFAULT_TOOL_TYPE),
        )


@dataclass(slots=True, frozen=True)
class Message:
    """Immutable chat message for pipeline processing.

    This is the canonical message type used throughout the pipeline. Internal
    bookkeeping (ids, attachments, tool payloads, metadata) travels with the
    message until the cleanup stage projects it onto the wire schema.

    Attributes:
        role: The role of the message sender.
        content: Text content, or content parts after attachment expansion.
        id: Stable identifier, unique within the conversation.
        name: Function name for tool result messages.
        tool_call_id: ID linking a tool result to its call.
        tool_calls: Wire format tool calls, stored or set by the tool call
            processor.
        tools: Tool invocations attached to an assistant message.
        plugin: The invocation a tool result message answers.
        images: Image attachments.
        videos: Video attachments.
        files: File attachments.
        metadata: Additional metadata (never sent to the model).
        orphaned: Set when a tool result has no owning assistant message.
    """

    role: MessageRole
    content: str | tuple[Mapping[str, Any], ...] = ""
    id: str = ""
    name: str | None = None
    tool_call_id: str | None = None
    tool_calls: tuple[Mapping[str, Any], ...] | None = None
    tools: tuple[ToolInvocation, ...] | None = None
    plugin: ToolInvocation | None = None
    images: tuple[Attachment, ...] = ()
    videos: tuple[Attachment, ...] = ()
    files: tuple[Attachment, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)
    orphaned: bool = False

    @property
    def text(self) -> str:
        """Return the textual part of the content."""
        if isinstance(self.content, str):
            return self.content
        return "\n".join(
            str(part.get("text", "")) for part in self.content if part.get("type") == "text"
        )

    @property
    def has_attachments(self) -> bool:
        return bool(self.images or self.videos or self.files)

    def evolve(self, **changes: Any) -> Message:
        """Return a copy of the message with ``changes`` applied."""
        return replace(self, **changes)

    def to_chat_param(self) -> ChatCompletionMessageParam:
        """Convert to OpenAI's ChatCompletionMessageParam format."""
        content: Any = self.content if isinstance(self.content, str) else [dict(p) for p in self.content]
        payload: dict[str, Any] = {"role": self.role, "content": content}
        if self.name is not None:
            payload["name"] = self.name
        if self.tool_call_id is not None:
            payload["tool_call_id"] = self.tool_call_id
        if self.tool_calls:
            payload["tool_calls"] = [dict(call) for call in self.tool_calls]
        return payload  # type: ignore[return-value]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Message:
        """Create a Message from a message repository record.

        Accepts both the camelCase shape stored by the chat UI and the
        snake_case shape used by OpenAI style payloads. OpenAI ``tool_calls``
        are kept as they are so their results stay attached to them.
        """
        role = str(data.get("role", "user")).lower()
        if role not in _VALID_ROLES:
            raise ValueError(f"Unsupported message role: {role!r}")

        tools = data.get("tools")
        plugin = data.get("plugin")
        return cls(
            role=role,  # type: ignore[arg-type]
            content=str(data.get("content") or ""),
            id=str(data.get("id", "")),
            name=data.get("name"),
            tool_call_id=data.get("tool_call_id") or data.get("toolCallId"),
            tool_calls=_wire_tool_calls(data),
            tools=tuple(ToolInvocation.from_mapping(t) for t in tools) if tools else None,
            plugin=ToolInvocation.from_mapping(plugin) if plugin else None,
            images=_attachments(data, ("imageList", "images"), "image"),
            videos=_attachments(data, ("videoList", "videos"), "video"),
            files=_attachments(data, ("fileList", "files"), "file"),
            metadata=dict(data.get("metadata") or {}),
        )

    @classmethod
    def system(cls, content: str, *, message_id: str = "", **metadata: Any) -> Message:
        """Create a system message."""
        return cls(role="system", content=content, id=message_id, metadata=metadata)

    @classmethod
    def user(
        cls,
        content: str,
        *,
        message_id: str = "",
        images: Sequence[Attachment] = (),
        videos: Sequence[Attachment] = (),
        files: Sequence[Attachment] = (),
        **metadata: Any,
    ) -> Message:
        """Create a user message."""
        return cls(
            role="user",
            content=content,
            id=message_id,
            images=tuple(images),
            videos=tuple(videos),
            files=tuple(files),
            metadata=metadata,
        )

    @classmethod
    def assistant(
        cls,
        content: str = "",
        tools: Sequence[ToolInvocation] | None = None,
        *,
        message_id: str = "",
        **metadata: Any,
    ) -> Message:
        """Create an assistant message."""
        return cls(
            role="assistant",
            content=content,
            id=message_id,
            tools=tuple(tools) if tools else None,
            metadata=metadata,
        )

    @classmethod
    def tool(
        cls,
        content: str,
        tool_call_id: str,
        *,
        plugin: ToolInvocation | None = None,
        message_id: str = "",
        **metadata: Any,
    ) -> Message:
        """Create a tool result message."""
        return cls(
            role="tool",
            content=content,
            id=message_id,
            tool_call_id=tool_call_id,
            plugin=plugin,
            metadata=metadata,
        )


def _attachments(
    data: Mapping[str, Any], keys: tuple[str, ...], kind: AttachmentKind
) -> tuple[Attachment, ...]:
    for key in keys:
        items = data.get(key)
        if items:
            return tuple(
                item if isinstance(item, Attachment) else Attachment.from_mapping(item, kind=kind)
                for item in items
            )
    return ()


def _wire_tool_calls(data: Mapping[str, Any]) -> tuple[Mapping[str, Any], ...] | None:
    """Normalise OpenAI style ``tool_calls`` from a stored assistant record."""
    calls = data.get("tool_calls") or data.get("toolCalls")
    if not calls:
        return None
    normalised = []
    for call in calls:
        function = call.get("function") or {}
        arguments = function.get("arguments", "{}")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments, ensure_ascii=False, sort_keys=True)
        normalised.append(
            {
                "id": str(call.get("id", "")),
                "type": call.get("type") or "function",
                "function": {"name": str(function.get("name", "")), "arguments": arguments or "{}"},
            }
        )
    return tuple(normalised)


# -----------------------------------------------------------------------------
# Conversation State
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ConversationState:
    """The record threaded through the pipeline.

    Each processor receives the state produced by its predecessor and returns
    a new one via :meth:`evolve`.

    Attributes:
        messages: Ordered conversation messages.
        model: Model identifier used for capability lookups.
        provider: Provider identifier used for capability lookups.
        system_role: Agent system role text.
        tool_ids: Requested tool identifiers, in request order.
        history_count: Number of turns kept when truncation is enabled.
        enable_history_count: Whether history truncation applies.
        history_summary: Compressed summary of older history.
        input_template: Template applied to the latest user message.
        session_id: Session the turn belongs to.
        is_welcome_question: Whether the turn is the inbox welcome question.
        tools: Resolved tool list (``None`` when tools must not be offered).
        tool_diagnostics: Detailed tools engine result for this run.
        orphaned_ids: Ids of tool result messages flagged as orphaned.
        metadata: Free-form context handed to variable generators.
    """

    messages: tuple[Message, ...] = ()
    model: str = ""
    provider: str = ""
    system_role: str | None = None
    tool_ids: tuple[str, ...] = ()
    history_count: int | None = None
    enable_history_count: bool = False
    history_summary: str | None = None
    input_template: str | None = None
    session_id: str | None = None
    is_welcome_question: bool = False
    tools: tuple[UniformTool, ...] | None = None
    tool_diagnostics: ToolsGenerationResult | None = None
    orphaned_ids: tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def evolve(self, **changes: Any) -> ConversationState:
        """Return a new state with ``changes`` applied."""
        if "messages" in changes:
            changes["messages"] = tuple(changes["messages"])
        return replace(self, **changes)

    @classmethod
    def create(
        cls,
        messages: Sequence[Message | Mapping[str, Any]],
        *,
        model: str,
        provider: str,
        tool_ids: Sequence[str] = (),
        **options: Any,
    ) -> ConversationState:
        """Build an initial state from repository records or messages."""
        normalized = tuple(
            m if isinstance(m, Message) else Message.from_mapping(m) for m in messages
        )
        return cls(
            messages=normalized,
            model=model,
            provider=provider,
            tool_ids=tuple(tool_ids),
            **options,
        )


# -----------------------------------------------------------------------------
# Budget Estimate
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class BudgetEstimate:
    """Token budget estimate for the final message list.

    Attributes:
        prompt_tokens: Estimated tokens in the prompt.
        completion_budget: Tokens reserved for the completion.
        total_budget: Total context window size.
        headroom: Tokens remaining after prompt and completion reserve.
        verdict: Budget evaluation result ("ok", "needs_summary", "reject").
        reason: Human-readable explanation of the verdict.
    """

    prompt_tokens: int
    completion_budget: int
    total_budget: int
    headroom: int = 0
    verdict: Literal["ok", "needs_summary", "reject"] = "ok"
    reason: str = "within-budget"

    @property
    def is_ok(self) -> bool:
        """Check if the budget verdict allows proceeding."""
        return self.verdict == "ok"


# -----------------------------------------------------------------------------
# Context Result
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ContextResult:
    """Provider-ready output of a pipeline run.

    Attributes:
        messages: Wire format messages, in order.
        tools: Wire format tool definitions, or ``None`` when no tools apply.
        orphaned_ids: Ids of tool results that had no owning assistant call.
        filtered_tools: Tool ids that were requested but not offered.
        budget: Advisory token budget estimate.
        state: Final conversation state, for diagnostics.
    """

    messages: tuple[ChatCompletionMessageParam, ...]
    tools: tuple[ChatCompletionToolParam, ...] | None = None
    orphaned_ids: tuple[str, ...] = ()
    filtered_tools: tuple[FilteredTool, ...] = ()
    budget: BudgetEstimate | None = None
    state: ConversationState | None = None

    def to_request(self) -> dict[str, Any]:
        """Return the ``messages``/``tools`` keyword arguments for a chat request."""
        request: dict[str, Any] = {"messages": [dict(m) for m in self.messages]}
        if self.tools:
            request["tools"] = [dict(t) for t in self.tools]
        return request
