"""Prompt fragments injected by the pipeline."""

from __future__ import annotations

from typing import Callable, Sequence

from .tools.manifest import ToolManifest
from .types import Attachment, ToolInvocation

INBOX_SESSION_ID = "inbox"

INBOX_GUIDE_SYSTEM_ROLE = """You are the built-in assistant of this chat application, talking to a user who just opened the default inbox session.
Your job on this first message is to welcome the user and help them get started:
- Explain in a few sentences what the assistant can do: answer questions, draft and edit text, analyse files and images, and call plugins when they are enabled.
- Point out that agents with their own system role can be created for recurring tasks, and that plugins are enabled per agent.
- Mention that long conversations are summarised automatically and that the history length can be limited in the agent settings.
Keep the answer short, friendly and in the user's language. Do not invent features that are not listed above."""


def history_summary_prompt(summary: str) -> str:
    """Wrap a compressed history summary for the system role."""
    return f"""<chat_history_summary>
<docstring>Users may have lots of chat messages, here is the summary of the history:</docstring>
<summary>{summary.strip()}</summary>
</chat_history_summary>"""


def tool_system_role(
    manifests: Sequence[ToolManifest],
    name_for: Callable[[str, str, str | None], str],
) -> str:
    """Describe the enabled plugins and their APIs for the system role."""
    if not manifests:
        return ""

    collections: list[str] = []
    for manifest in manifests:
        apis = "\n".join(
            f'<api identifier="{name_for(manifest.identifier, api.name, manifest.type)}">{api.description}</api>'
            for api in manifest.api
        )
        instructions = (
            f"<collection.instructions>{manifest.system_role.strip()}</collection.instructions>\n"
            if manifest.system_role
            else ""
        )
        collections.append(
            f'<collection name="{manifest.title}">\n{instructions}{apis}\n</collection>'
        )

    body = "\n".join(collections)
    return f'<plugins description="The plugins you can use below">\n{body}\n</plugins>'


def _label(invocation: ToolInvocation) -> str:
    if not invocation.api_name:
        return invocation.identifier
    return f"{invocation.identifier}.{invocation.api_name}"


def describe_tool_call(invocation: ToolInvocation) -> str:
    """Text stand-in for a tool call when the model cannot call functions."""
    return f"[Called tool {_label(invocation)} with arguments {invocation.arguments}]"


def describe_tool_result(invocation: ToolInvocation | None, content: str) -> str:
    """Text stand-in for a tool result when the model cannot call functions."""
    return f"[Result of {_label(invocation) if invocation else 'tool'}]\n{content}"


def files_info(
    files: Sequence[tuple[Attachment, str, str | None]], *, include_url: bool = True
) -> str:
    """Render resolved file attachments as a context block.

    Each entry is ``(attachment, text, url)``.
    """
    entries: list[str] = []
    for attachment, text, url in files:
        attributes = f'name="{attachment.name or attachment.id}"'
        if attachment.file_type:
            attributes += f' type="{attachment.file_type}"'
        if include_url and url:
            attributes += f' url="{url}"'
        entries.append(f"<file {attributes}>\n{text}\n</file>")
    body = "\n".join(entries)
    return f"<files_info>\n{body}\n</files_info>"


__all__ = [
    "INBOX_SESSION_ID",
    "INBOX_GUIDE_SYSTEM_ROLE",
    "history_summary_prompt",
    "tool_system_role",
    "describe_tool_call",
    "describe_tool_result",
    "files_info",
]
