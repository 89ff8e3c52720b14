"""Tool manifests, registry, calling names and the tools engine."""

from .engine import (
    EnableChecker,
    FilteredTool,
    FunctionCallChecker,
    ToolsEngine,
    ToolsGenerationResult,
    UniformTool,
)
from .manifest import (
    MANIFEST_SCHEMA,
    InterventionRule,
    ToolApi,
    ToolManifest,
    ToolMeta,
    load_manifests,
    validate_manifest,
)
from .names import NAME_SEPARATOR, ToolNameParts, ToolNameResolver, generate_tool_name
from .registry import ManifestRegistry, RegistrySnapshot

__all__ = [
    # engine.py exports
    "EnableChecker",
    "FilteredTool",
    "FunctionCallChecker",
    "ToolsEngine",
    "ToolsGenerationResult",
    "UniformTool",
    # manifest.py exports
    "MANIFEST_SCHEMA",
    "InterventionRule",
    "ToolApi",
    "ToolManifest",
    "ToolMeta",
    "load_manifests",
    "validate_manifest",
    # names.py exports
    "NAME_SEPARATOR",
    "ToolNameParts",
    "ToolNameResolver",
    "generate_tool_name",
    # registry.py exports
    "ManifestRegistry",
    "RegistrySnapshot",
]
