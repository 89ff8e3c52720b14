"""Context engineering for chat completion requests.

Turns a session's stored messages plus agent configuration into the message
list and tool definitions sent to a model provider.
"""

# Entry point and runner
from .engine import (
    ContextEngine,
    EngineConfig,
    build_pipeline,
    build_tools_engine,
    engineer_context,
)

# Core types
from .types import (
    Attachment,
    BudgetEstimate,
    ContextResult,
    ConversationState,
    Message,
    ToolInvocation,
)

# Errors
from .errors import (
    ConfigurationError,
    ContextKitError,
    ErrorCode,
    ManifestValidationError,
    ProcessorError,
    ToolNameCollisionError,
    UnknownToolNameError,
)

# Collaborators
from .capabilities import ModelCapabilities, ModelCard
from .settings import ContextSettings, SettingsStore
from .tokens import TiktokenCounter, TokenCounterRegistry
from .utils.logging import configure_logging
from .variables import VariableRegistry, default_variable_registry

# Tool system
from .tools import (
    ManifestRegistry,
    ToolManifest,
    ToolNameResolver,
    ToolsEngine,
    UniformTool,
)

__all__ = [
    # Entry point and runner
    "ContextEngine",
    "EngineConfig",
    "build_pipeline",
    "build_tools_engine",
    "engineer_context",
    # Core types
    "Attachment",
    "BudgetEstimate",
    "ContextResult",
    "ConversationState",
    "Message",
    "ToolInvocation",
    # Errors
    "ConfigurationError",
    "ContextKitError",
    "ErrorCode",
    "ManifestValidationError",
    "ProcessorError",
    "ToolNameCollisionError",
    "UnknownToolNameError",
    # Collaborators
    "ModelCapabilities",
    "ModelCard",
    "ContextSettings",
    "SettingsStore",
    "TiktokenCounter",
    "TokenCounterRegistry",
    "configure_logging",
    "VariableRegistry",
    "default_variable_registry",
    # Tool system
    "ManifestRegistry",
    "ToolManifest",
    "ToolNameResolver",
    "ToolsEngine",
    "UniformTool",
]
