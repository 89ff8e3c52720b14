"""Standardized error types for the context engine.

Only contract violations raise. Degraded paths (missing capabilities,
unknown or disabled tools, orphaned tool results) are recorded on the
pipeline state instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence


# -----------------------------------------------------------------------------
# Error Code Constants
# -----------------------------------------------------------------------------

class ErrorCode:
    """Constants for machine-readable error codes."""

    # Configuration errors
    INVALID_CONFIGURATION = "invalid_configuration"
    MISSING_CONFIGURATION = "missing_configuration"

    # Pipeline errors
    PROCESSOR_FAILED = "processor_failed"

    # Tool errors
    INVALID_MANIFEST = "invalid_manifest"
    TOOL_NAME_COLLISION = "tool_name_collision"
    UNKNOWN_TOOL_NAME = "unknown_tool_name"


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------

@dataclass
class ContextKitError(Exception):
    """Base exception class for all context engine errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary for logs and API responses."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# -----------------------------------------------------------------------------
# Configuration Errors
# -----------------------------------------------------------------------------

@dataclass
class ConfigurationError(ContextKitError):
    """Raised when required configuration is missing or invalid."""

    error_code: str = field(default=ErrorCode.INVALID_CONFIGURATION)
    message: str = field(default="Invalid configuration")
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def missing(cls, name: str) -> ConfigurationError:
        return cls(
            error_code=ErrorCode.MISSING_CONFIGURATION,
            message=f"Missing required configuration: {name}",
            details={"name": name},
        )


# -----------------------------------------------------------------------------
# Pipeline Errors
# -----------------------------------------------------------------------------

@dataclass
class ProcessorError(ContextKitError):
    """Raised by the engine when a pipeline stage fails.

    The original exception is available as ``__cause__``.
    """

    error_code: str = field(default=ErrorCode.PROCESSOR_FAILED)
    message: str = field(default="Pipeline stage failed")
    details: dict[str, Any] = field(default_factory=dict)

    stage: str = ""
    position: int = -1

    @classmethod
    def wrap(cls, stage: str, position: int, error: BaseException) -> ProcessorError:
        return cls(
            message=f"Stage '{stage}' failed: {error}",
            details={
                "stage": stage,
                "position": position,
                "exception": type(error).__name__,
            },
            stage=stage,
            position=position,
        )


# -----------------------------------------------------------------------------
# Tool Errors
# -----------------------------------------------------------------------------

@dataclass
class ManifestValidationError(ContextKitError):
    """Raised when a tool manifest does not match the manifest schema."""

    error_code: str = field(default=ErrorCode.INVALID_MANIFEST)
    message: str = field(default="Invalid tool manifest")
    details: dict[str, Any] = field(default_factory=dict)

    identifier: str | None = None
    problems: Sequence[str] = ()

    @classmethod
    def from_problems(cls, identifier: str | None, problems: Sequence[str]) -> ManifestValidationError:
        label = identifier or "<unknown>"
        return cls(
            message=f"Manifest '{label}' is invalid: " + "; ".join(problems),
            details={"identifier": identifier, "problems": list(problems)},
            identifier=identifier,
            problems=tuple(problems),
        )


@dataclass
class ToolNameCollisionError(ContextKitError):
    """Raised when two distinct tool APIs would share one calling name."""

    error_code: str = field(default=ErrorCode.TOOL_NAME_COLLISION)
    message: str = field(default="Tool calling name collision")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class UnknownToolNameError(ContextKitError):
    """Raised when a calling name cannot be mapped back to a tool API."""

    error_code: str = field(default=ErrorCode.UNKNOWN_TOOL_NAME)
    message: str = field(default="Unknown tool calling name")
    details: dict[str, Any] = field(default_factory=dict)


__all__ = [
    "ErrorCode",
    "ContextKitError",
    "ConfigurationError",
    "ProcessorError",
    "ManifestValidationError",
    "ToolNameCollisionError",
    "UnknownToolNameError",
]
