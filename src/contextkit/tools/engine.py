"""Tools engine: decides which tools are offered to the model for one request.

The engine merges the requested tool ids with the always-on defaults,
resolves them against a snapshot of the manifest registry, applies the
function calling and enablement checks, and flattens the surviving manifests
into provider-ready :class:`UniformTool` entries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Literal, Mapping, Protocol, Sequence, cast

from openai.types.chat import ChatCompletionToolParam

from .manifest import ToolManifest
from .names import ToolNameResolver
from .registry import ManifestRegistry, RegistrySnapshot

__all__ = [
    "FilterReason",
    "FunctionCallChecker",
    "EnableChecker",
    "ToolNameGenerator",
    "UniformTool",
    "FilteredTool",
    "ToolsGenerationResult",
    "ToolsEngine",
]

LOGGER = logging.getLogger(__name__)

FilterReason = Literal["not_found", "disabled", "incompatible"]

FunctionCallChecker = Callable[[str, str], bool]
ToolNameGenerator = Callable[[str, str, "str | None"], str]


class EnableChecker(Protocol):
    """Decides whether a resolved manifest may be offered for this request."""

    def __call__(
        self,
        manifest: ToolManifest,
        model: str,
        provider: str,
        context: Mapping[str, Any] | None,
    ) -> bool:
        ...


# -----------------------------------------------------------------------------
# Result Types
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class UniformTool:
    """Provider-neutral function tool, recomputed on every run.

    Attributes:
        calling_name: Provider-safe function name.
        description: API description shown to the model.
        parameters: JSON Schema of the API parameters.
        identifier: Manifest the tool came from.
        api_name: API name inside the manifest.
    """

    calling_name: str
    description: str
    parameters: Mapping[str, Any]
    identifier: str = ""
    api_name: str = ""

    def to_chat_tool(self) -> ChatCompletionToolParam:
        """Return an OpenAI-compatible tool spec."""
        return cast(
            ChatCompletionToolParam,
            {
                "type": "function",
                "function": {
                    "name": self.calling_name,
                    "description": self.description,
                    "parameters": dict(self.parameters),
                },
            },
        )


@dataclass(slots=True, frozen=True)
class FilteredTool:
    """A requested tool id that was not offered, and why."""

    id: str
    reason: FilterReason


@dataclass(slots=True, frozen=True)
class ToolsGenerationResult:
    """Detailed outcome of tool resolution.

    Attributes:
        enabled_tool_ids: Identifiers of manifests that produced tools.
        filtered_tools: Requested ids left out, with the reason.
        tools: Flattened tools; empty rather than absent.
        manifests: Enabled manifests, in resolution order.
        registry_version: Registry version the request was resolved against.
    """

    enabled_tool_ids: tuple[str, ...] = ()
    filtered_tools: tuple[FilteredTool, ...] = ()
    tools: tuple[UniformTool, ...] = ()
    manifests: tuple[ToolManifest, ...] = field(default=(), repr=False)
    registry_version: int = 0

    @property
    def enabled_count(self) -> int:
        return len(self.enabled_tool_ids)

    @property
    def filtered_count(self) -> int:
        return len(self.filtered_tools)

    @property
    def tool_count(self) -> int:
        return len(self.tools)

    def reasons(self) -> dict[str, FilterReason]:
        return {item.id: item.reason for item in self.filtered_tools}


# -----------------------------------------------------------------------------
# Tools Engine
# -----------------------------------------------------------------------------


class ToolsEngine:
    """Capability gated resolution of the tool list for a request.

    Example:
        engine = ToolsEngine(
            manifests,
            function_call_checker=capabilities.supports_function_calling,
            default_tool_ids=["web-browsing"],
        )
        tools = engine.generate_tools(["realtime-weather"], model="gpt-4o", provider="openai")
    """

    def __init__(
        self,
        manifests: ManifestRegistry | Iterable[ToolManifest | Mapping[str, Any]] = (),
        *,
        enable_checker: EnableChecker | None = None,
        function_call_checker: FunctionCallChecker | None = None,
        default_tool_ids: Sequence[str] = (),
        name_resolver: ToolNameResolver | None = None,
        generate_tool_name: ToolNameGenerator | None = None,
    ) -> None:
        if isinstance(manifests, ManifestRegistry):
            self._registry = manifests
        else:
            self._registry = ManifestRegistry(manifests)
        self._enable_checker = enable_checker
        self._function_call_checker = function_call_checker
        self._default_tool_ids = tuple(default_tool_ids)
        self._name_resolver = name_resolver or ToolNameResolver()
        self._generate_tool_name = generate_tool_name

        LOGGER.debug(
            "ToolsEngine initialized with plugins=%s, default tools=%s",
            self._registry.ids(),
            list(self._default_tool_ids),
        )

    @property
    def registry(self) -> ManifestRegistry:
        return self._registry

    @property
    def name_resolver(self) -> ToolNameResolver:
        return self._name_resolver

    @property
    def default_tool_ids(self) -> tuple[str, ...]:
        return self._default_tool_ids

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate_tools(
        self,
        tool_ids: Sequence[str] = (),
        *,
        model: str,
        provider: str,
        context: Mapping[str, Any] | None = None,
    ) -> tuple[UniformTool, ...] | None:
        """Return the tools to offer, or ``None`` when no tools apply.

        ``None`` is returned when the model cannot call functions, regardless
        of the requested ids, and when nothing survives filtering.
        """
        if not self.supports_function_calling(model, provider):
            LOGGER.debug("Function calling not supported for model=%s, provider=%s", model, provider)
            return None

        result = self.generate_tools_detailed(
            tool_ids, model=model, provider=provider, context=context
        )
        if not result.tools:
            LOGGER.debug("No enabled manifests for %s/%s, offering no tools", model, provider)
            return None
        return result.tools

    def generate_tools_detailed(
        self,
        tool_ids: Sequence[str] = (),
        *,
        model: str,
        provider: str,
        context: Mapping[str, Any] | None = None,
    ) -> ToolsGenerationResult:
        """Resolve tools with full diagnostics.

        Unlike :meth:`generate_tools` an empty outcome is reported as an
        empty tool tuple with counts, never collapsed to ``None``. When the
        model cannot call functions every found id is filtered as
        ``incompatible``.
        """
        all_ids = [*tool_ids, *self._default_tool_ids]
        snapshot = self._registry.snapshot()
        LOGGER.debug(
            "Generating tools for model=%s, provider=%s, ids=%s (registry version %d)",
            model,
            provider,
            all_ids,
            snapshot.version,
        )

        fc_supported = self.supports_function_calling(model, provider)
        manifests, filtered = self._filter_manifests(
            all_ids, snapshot, model=model, provider=provider, context=context,
            fc_supported=fc_supported,
        )
        tools = self._convert_manifests(manifests)

        LOGGER.debug(
            "Generated detailed result: enabled=%d, filtered=%d, tools=%d",
            len(manifests),
            len(filtered),
            len(tools),
        )
        return ToolsGenerationResult(
            enabled_tool_ids=tuple(m.identifier for m in manifests),
            filtered_tools=tuple(filtered),
            tools=tools,
            manifests=tuple(manifests),
            registry_version=snapshot.version,
        )

    def system_roles(
        self,
        tool_ids: Sequence[str] = (),
        *,
        model: str,
        provider: str,
        context: Mapping[str, Any] | None = None,
    ) -> list[ToolManifest]:
        """Return the enabled manifests that carry usage instructions."""
        result = self.generate_tools_detailed(
            tool_ids, model=model, provider=provider, context=context
        )
        return [m for m in result.manifests if m.system_role]

    def supports_function_calling(self, model: str, provider: str) -> bool:
        if self._function_call_checker is None:
            return True
        supported = bool(self._function_call_checker(model, provider))
        LOGGER.debug("Function calling check for %s/%s: %s", model, provider, supported)
        return supported

    def tool_name(self, identifier: str, api_name: str, type: str | None = None) -> str:
        """Return the calling name for one manifest API."""
        if self._generate_tool_name is not None:
            return self._generate_tool_name(identifier, api_name, type)
        return self._name_resolver.generate(identifier, api_name, type)

    # ------------------------------------------------------------------
    # Registry passthrough
    # ------------------------------------------------------------------

    def get_available_plugins(self) -> list[str]:
        return self._registry.ids()

    def has_plugin(self, plugin_id: str) -> bool:
        return self._registry.has(plugin_id)

    def get_plugin_manifest(self, plugin_id: str) -> ToolManifest | None:
        return self._registry.get(plugin_id)

    def update_manifest_schemas(self, manifests: Iterable[ToolManifest | Mapping[str, Any]]) -> int:
        return self._registry.replace_all(manifests)

    def add_plugin_manifest(self, manifest: ToolManifest | Mapping[str, Any]) -> int:
        return self._registry.add(manifest)

    def remove_plugin_manifest(self, plugin_id: str) -> bool:
        return self._registry.remove(plugin_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _filter_manifests(
        self,
        plugin_ids: Sequence[str],
        snapshot: RegistrySnapshot,
        *,
        model: str,
        provider: str,
        context: Mapping[str, Any] | None,
        fc_supported: bool,
    ) -> tuple[list[ToolManifest], list[FilteredTool]]:
        enabled: list[ToolManifest] = []
        filtered: list[FilteredTool] = []
        seen: set[str] = set()

        for plugin_id in plugin_ids:
            if plugin_id in seen:
                continue
            seen.add(plugin_id)

            manifest = snapshot.get(plugin_id)
            if manifest is None:
                LOGGER.debug("Plugin not found: %s", plugin_id)
                filtered.append(FilteredTool(plugin_id, "not_found"))
                continue
            if not fc_supported:
                filtered.append(FilteredTool(plugin_id, "incompatible"))
                continue
            if self._enable_checker is not None and not self._enable_checker(
                manifest, model, provider, context
            ):
                LOGGER.debug("Plugin disabled: %s", plugin_id)
                filtered.append(FilteredTool(plugin_id, "disabled"))
                continue
            enabled.append(manifest)

        return enabled, filtered

    def _convert_manifests(self, manifests: Sequence[ToolManifest]) -> tuple[UniformTool, ...]:
        return tuple(
            UniformTool(
                calling_name=self.tool_name(manifest.identifier, api.name, manifest.type),
                description=api.description,
                parameters=api.parameters,
                identifier=manifest.identifier,
                api_name=api.name,
            )
            for manifest in manifests
            for api in manifest.api
        )
