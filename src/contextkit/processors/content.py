"""Message content stages: input template, placeholders and attachments."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Union

from .. import prompts
from ..capabilities import CapabilityChecker
from ..types import Attachment, ConversationState, Message
from ..variables import VariableRegistry, default_variable_registry
from .base import Processor, maybe_await

__all__ = [
    "AttachmentResolver",
    "InputTemplateProcessor",
    "PlaceholderVariablesProcessor",
    "MessageContentProcessor",
]

LOGGER = logging.getLogger(__name__)

# Returns a URL (images, videos) or text (files); None drops the attachment.
AttachmentResolver = Callable[[Attachment], Union[str, None, Awaitable[Union[str, None]]]]

_TEMPLATE_SLOT = re.compile(r"\{\{\s*text\s*\}\}")


def _always(model: str, provider: str) -> bool:
    return True


@dataclass(slots=True, frozen=True)
class InputTemplateProcessor(Processor):
    """Rewrite the latest user message through the agent's input template.

    ``{{text}}`` in the template is replaced with the message content. A
    template without that slot is ignored.
    """

    name = "input_template"

    async def process(self, state: ConversationState) -> ConversationState:
        template = state.input_template
        if not template:
            return state
        if not _TEMPLATE_SLOT.search(template):
            LOGGER.warning("Input template has no {{text}} slot; leaving the user message as is")
            return state

        messages = list(state.messages)
        for index in range(len(messages) - 1, -1, -1):
            message = messages[index]
            if message.role != "user":
                continue
            text = message.text
            rendered = _TEMPLATE_SLOT.sub(lambda _match: text, template)
            messages[index] = message.evolve(content=rendered)
            return state.evolve(messages=messages)
        return state


@dataclass(slots=True, frozen=True)
class PlaceholderVariablesProcessor(Processor):
    """Expand ``{{name}}`` placeholders in every text message."""

    name = "placeholder_variables"

    variables: VariableRegistry = field(default_factory=default_variable_registry)

    async def process(self, state: ConversationState) -> ConversationState:
        changed = False
        messages: list[Message] = []
        for message in state.messages:
            if isinstance(message.content, str) and "{{" in message.content:
                rendered = self.variables.render(message.content, state)
                if rendered != message.content:
                    message = message.evolve(content=rendered)
                    changed = True
            messages.append(message)
        return state.evolve(messages=messages) if changed else state


@dataclass(slots=True, frozen=True)
class MessageContentProcessor(Processor):
    """Turn attachments into provider content parts.

    User messages gain ``image_url``/``video_url`` parts when the model can
    consume them, and file text is folded into a ``<files_info>`` block when
    file context is enabled. Anything the model cannot consume is dropped.
    Attachments on other roles are stripped and their text is kept.
    """

    name = "message_content"

    supports_vision: CapabilityChecker = _always
    supports_video: CapabilityChecker = _always
    resolver: AttachmentResolver | None = None
    file_context_enabled: bool = True
    include_file_url: bool = True

    async def process(self, state: ConversationState) -> ConversationState:
        if not any(m.has_attachments for m in state.messages):
            return state

        vision = self.supports_vision(state.model, state.provider)
        video = self.supports_video(state.model, state.provider)
        messages = [
            await self._expand(message, vision=vision, video=video)
            if message.has_attachments
            else message
            for message in state.messages
        ]
        return state.evolve(messages=messages)

    async def _expand(self, message: Message, *, vision: bool, video: bool) -> Message:
        stripped = {"images": (), "videos": (), "files": ()}
        if message.role != "user":
            return message.evolve(**stripped)

        text = message.text
        if message.files and self.file_context_enabled:
            files: list[tuple[Attachment, str, str | None]] = []
            for attachment in message.files:
                content = await self._resolve(attachment)
                if content is not None:
                    files.append((attachment, content, attachment.url))
            if files:
                block = prompts.files_info(files, include_url=self.include_file_url)
                text = f"{text}\n\n{block}" if text else block

        parts: list[Mapping[str, Any]] = []
        if vision:
            for attachment in message.images:
                url = await self._resolve(attachment)
                if url:
                    parts.append({"type": "image_url", "image_url": {"url": url, "detail": "auto"}})
        elif message.images:
            LOGGER.debug("Dropping %d image(s); model lacks vision", len(message.images))
        if video:
            for attachment in message.videos:
                url = await self._resolve(attachment)
                if url:
                    parts.append({"type": "video_url", "video_url": {"url": url}})
        elif message.videos:
            LOGGER.debug("Dropping %d video(s); model lacks video input", len(message.videos))

        if not parts:
            return message.evolve(content=text, **stripped)
        return message.evolve(content=({"type": "text", "text": text}, *parts), **stripped)

    async def _resolve(self, attachment: Attachment) -> str | None:
        if self.resolver is not None:
            return await maybe_await(self.resolver(attachment))
        if attachment.kind == "file":
            return attachment.content
        return attachment.url
