"""Context Engine: runs the fixed processor pipeline for one request.

This module provides the :class:`ContextEngine` runner, :func:`build_pipeline`
which wires the eleven stages in their documented order, and
:func:`engineer_context`, the single entry point used by chat hosts.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from .capabilities import CapabilityChecker, ModelCapabilities
from .errors import ProcessorError
from .processors import (
    AttachmentResolver,
    HistorySummaryProvider,
    HistoryTruncateProcessor,
    InboxGuideProvider,
    InjectionDecision,
    InputTemplateProcessor,
    MessageCleanupProcessor,
    MessageContentProcessor,
    PlaceholderVariablesProcessor,
    Processor,
    SystemRoleInjector,
    ToolCallProcessor,
    ToolMessageReorder,
    ToolSystemRoleProvider,
)
from .settings import ContextSettings
from .tokens import TokenCounterProtocol, TokenCounterRegistry, estimate_budget
from .tools.engine import EnableChecker, ToolNameGenerator, ToolsEngine
from .tools.manifest import ToolManifest
from .tools.names import ToolNameResolver
from .tools.registry import ManifestRegistry
from .types import ContextResult, ConversationState, Message
from .variables import VariableRegistry, default_variable_registry

__all__ = [
    "EngineConfig",
    "ContextEngine",
    "build_pipeline",
    "build_tools_engine",
    "engineer_context",
]

LOGGER = logging.getLogger(__name__)

_INBOX_MODES: Mapping[str, InjectionDecision] = {
    "append": InjectionDecision.INJECT,
    "replace": InjectionDecision.REPLACE,
}


# -----------------------------------------------------------------------------
# Engine Configuration
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class EngineConfig:
    """Configuration for the context engine.

    Attributes:
        max_context_tokens: Context window used for the budget estimate.
        response_reserve: Tokens kept free for the completion.
        log_stages: Whether to log each stage with its duration.
    """

    max_context_tokens: int = 128_000
    response_reserve: int = 4_096
    log_stages: bool = True

    @classmethod
    def from_settings(cls, settings: ContextSettings) -> EngineConfig:
        return cls(
            max_context_tokens=settings.max_context_tokens,
            response_reserve=settings.response_reserve,
            log_stages=settings.debug_logging,
        )


# -----------------------------------------------------------------------------
# Context Engine
# -----------------------------------------------------------------------------


class ContextEngine:
    """Runs an ordered list of processors over a conversation state.

    Stages run strictly one after the other; each is awaited before the next
    starts. A failing stage aborts the run with :class:`ProcessorError` and no
    partial result. The engine keeps no per-run state, so one instance can
    serve concurrent requests.

    Example:
        >>> engine = ContextEngine(build_pipeline(tools_engine=tools))
        >>> result = await engine.run(state)
        >>> client.chat.completions.create(model=state.model, **result.to_request())
    """

    def __init__(
        self,
        processors: Iterable[Processor],
        *,
        config: EngineConfig | None = None,
        token_counter: TokenCounterProtocol | TokenCounterRegistry | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            processors: Stages in execution order.
            config: Optional budget and logging configuration.
            token_counter: Counter for the budget estimate, or a registry
                that picks one per model. The byte heuristic is used when
                omitted.
        """
        self._processors = tuple(processors)
        self._config = config or EngineConfig()
        self._token_counter = token_counter
        for processor in self._processors:
            if not isinstance(processor, Processor):
                raise TypeError(f"Pipeline stages must be Processor instances, got {processor!r}")

    @property
    def processors(self) -> tuple[Processor, ...]:
        """The stages, in execution order."""
        return self._processors

    @property
    def config(self) -> EngineConfig:
        return self._config

    def stage_names(self) -> list[str]:
        return [processor.name for processor in self._processors]

    async def process(self, state: ConversationState) -> ConversationState:
        """Thread ``state`` through every stage and return the final state.

        Raises:
            ProcessorError: A stage raised or returned something other than a
                :class:`ConversationState`. The original exception is chained.
        """
        log_stages = self._config.log_stages
        for position, processor in enumerate(self._processors):
            started = time.perf_counter()
            try:
                result = await processor.process(state)
            except ProcessorError:
                raise
            except Exception as exc:
                LOGGER.error("Stage %s (#%d) failed: %s", processor.name, position, exc)
                raise ProcessorError.wrap(processor.name, position, exc) from exc

            if not isinstance(result, ConversationState):
                error = TypeError(
                    f"{type(processor).__name__}.process returned {type(result).__name__}"
                )
                raise ProcessorError.wrap(processor.name, position, error) from error

            if log_stages:
                LOGGER.debug(
                    "Stage %s done in %.2fms (%d -> %d messages)",
                    processor.name,
                    (time.perf_counter() - started) * 1000,
                    len(state.messages),
                    len(result.messages),
                )
            state = result
        return state

    async def run(self, state: ConversationState) -> ContextResult:
        """Process ``state`` and assemble the provider-ready result."""
        final = await self.process(state)
        messages = tuple(message.to_chat_param() for message in final.messages)
        tools = tuple(tool.to_chat_tool() for tool in final.tools) if final.tools else None
        budget = estimate_budget(
            messages,
            context_limit=self._config.max_context_tokens,
            response_reserve=self._config.response_reserve,
            tools=tools,
            counter=self._counter_for(final.model),
        )
        if not budget.is_ok:
            LOGGER.warning(
                "Prepared context for %s is over budget: %d prompt tokens of %d (%s)",
                final.model,
                budget.prompt_tokens,
                budget.total_budget,
                budget.reason,
            )
        diagnostics = final.tool_diagnostics
        return ContextResult(
            messages=messages,
            tools=tools,
            orphaned_ids=final.orphaned_ids,
            filtered_tools=diagnostics.filtered_tools if diagnostics else (),
            budget=budget,
            state=final,
        )

    def _counter_for(self, model: str) -> TokenCounterProtocol | None:
        if isinstance(self._token_counter, TokenCounterRegistry):
            return self._token_counter.counter_for(model)
        return self._token_counter


# -----------------------------------------------------------------------------
# Pipeline Assembly
# -----------------------------------------------------------------------------


def build_tools_engine(
    manifests: ManifestRegistry | Iterable[ToolManifest | Mapping[str, Any]] = (),
    *,
    settings: ContextSettings | None = None,
    capabilities: ModelCapabilities | None = None,
    enable_checker: EnableChecker | None = None,
    generate_tool_name: ToolNameGenerator | None = None,
) -> ToolsEngine:
    """Create a tools engine configured from settings and a capability table."""
    settings = settings or ContextSettings()
    return ToolsEngine(
        manifests,
        enable_checker=enable_checker,
        function_call_checker=capabilities.supports_function_calling if capabilities else None,
        default_tool_ids=settings.default_tool_ids,
        name_resolver=ToolNameResolver(max_length=settings.max_tool_name_length),
        generate_tool_name=generate_tool_name,
    )


def build_pipeline(
    *,
    settings: ContextSettings | None = None,
    capabilities: ModelCapabilities | None = None,
    supports_function_calling: CapabilityChecker | None = None,
    supports_vision: CapabilityChecker | None = None,
    supports_video: CapabilityChecker | None = None,
    tools_engine: ToolsEngine | None = None,
    tool_context: Mapping[str, Any] | None = None,
    variables: VariableRegistry | None = None,
    attachment_resolver: AttachmentResolver | None = None,
) -> list[Processor]:
    """Return the eleven stages in their fixed order.

    Capability checkers are taken from the explicit arguments first, then
    from ``capabilities``. Function calling falls back to the tools engine's
    own checker so tool resolution and tool call rendering always agree.
    Without any source every capability is assumed.
    """
    settings = settings or ContextSettings()

    fc_checker = supports_function_calling
    if fc_checker is None and tools_engine is not None:
        fc_checker = tools_engine.supports_function_calling
    if fc_checker is None and capabilities is not None:
        fc_checker = capabilities.supports_function_calling
    vision_checker = supports_vision or (capabilities.supports_vision if capabilities else None)
    video_checker = supports_video or (capabilities.supports_video if capabilities else None)

    content_options: dict[str, Any] = {}
    if vision_checker is not None:
        content_options["supports_vision"] = vision_checker
    if video_checker is not None:
        content_options["supports_video"] = video_checker
    tool_call_options: dict[str, Any] = {}
    if fc_checker is not None:
        tool_call_options["supports_function_calling"] = fc_checker
    if tools_engine is not None:
        tool_call_options["tool_name"] = tools_engine.tool_name
        tool_call_options["name_resolver"] = tools_engine.name_resolver

    if variables is None:
        variables = default_variable_registry(username=settings.username, language=settings.language)

    return [
        HistoryTruncateProcessor(),
        SystemRoleInjector(),
        InboxGuideProvider(
            inbox_session_id=settings.inbox_session_id,
            mode=_INBOX_MODES[settings.inbox_guide_mode],
        ),
        ToolSystemRoleProvider(tools_engine=tools_engine, context=tool_context),
        HistorySummaryProvider(),
        InputTemplateProcessor(),
        PlaceholderVariablesProcessor(variables=variables),
        MessageContentProcessor(
            resolver=attachment_resolver,
            file_context_enabled=settings.file_context_enabled,
            include_file_url=settings.include_file_url,
            **content_options,
        ),
        ToolCallProcessor(**tool_call_options),
        ToolMessageReorder(),
        MessageCleanupProcessor(orphan_policy=settings.orphan_policy),
    ]


async def engineer_context(
    messages: Sequence[Message | Mapping[str, Any]],
    *,
    model: str,
    provider: str,
    system_role: str | None = None,
    tool_ids: Sequence[str] = (),
    history_count: int | None = None,
    enable_history_count: bool = False,
    history_summary: str | None = None,
    input_template: str | None = None,
    session_id: str | None = None,
    is_welcome_question: bool = False,
    metadata: Mapping[str, Any] | None = None,
    tools_engine: ToolsEngine | None = None,
    capabilities: ModelCapabilities | None = None,
    settings: ContextSettings | None = None,
    variables: VariableRegistry | None = None,
    attachment_resolver: AttachmentResolver | None = None,
    token_counter: TokenCounterProtocol | TokenCounterRegistry | None = None,
) -> ContextResult:
    """Prepare the messages and tools for one chat completion request.

    Args:
        messages: Session history, oldest first, as messages or repository
            records.
        model: Target model id.
        provider: Target provider id.
        system_role: Agent system role.
        tool_ids: Tools requested by the agent.
        history_count: Turns kept when ``enable_history_count`` is set.
        enable_history_count: Whether to truncate history.
        history_summary: Compressed summary of older history.
        input_template: Template applied to the latest user message.
        session_id: Session the request belongs to.
        is_welcome_question: Whether this is the inbox welcome question.
        metadata: Free-form context for variable generators and plugin
            enablement checks.
        tools_engine: Engine resolving ``tool_ids``; no tools without one.
        capabilities: Capability table for the three checkers.
        settings: Deployment settings; defaults apply when omitted.
        variables: Placeholder registry; the built-in one when omitted.
        attachment_resolver: Resolves attachments to URLs or text.
        token_counter: Counter for the budget estimate, or a registry that
            picks one for ``model``.

    Returns:
        ContextResult with wire messages, tools (or ``None``) and diagnostics.

    Raises:
        ProcessorError: A stage failed; no partial output is produced.
    """
    settings = (settings or ContextSettings()).validate()
    state = ConversationState.create(
        messages,
        model=model,
        provider=provider,
        tool_ids=tool_ids,
        system_role=system_role,
        history_count=history_count,
        enable_history_count=enable_history_count,
        history_summary=history_summary,
        input_template=input_template,
        session_id=session_id,
        is_welcome_question=is_welcome_question,
        metadata=dict(metadata or {}),
    )
    pipeline = build_pipeline(
        settings=settings,
        capabilities=capabilities,
        tools_engine=tools_engine,
        tool_context=metadata,
        variables=variables,
        attachment_resolver=attachment_resolver,
    )
    engine = ContextEngine(
        pipeline,
        config=EngineConfig.from_settings(settings),
        token_counter=token_counter,
    )
    return await engine.run(state)
