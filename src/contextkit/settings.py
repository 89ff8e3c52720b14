"""Settings dataclass and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Literal, Mapping

from .errors import ConfigurationError

__all__ = [
    "ContextSettings",
    "SettingsStore",
    "ORPHAN_POLICIES",
    "INBOX_GUIDE_MODES",
]

LOGGER = logging.getLogger(__name__)
_DEFAULT_SETTINGS_PATH = Path.home() / ".contextkit" / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "CONTEXTKIT_INBOX_SESSION_ID": "inbox_session_id",
    "CONTEXTKIT_INBOX_GUIDE_MODE": "inbox_guide_mode",
    "CONTEXTKIT_ORPHAN_POLICY": "orphan_policy",
    "CONTEXTKIT_USERNAME": "username",
    "CONTEXTKIT_LANGUAGE": "language",
    "CONTEXTKIT_LOG_DIR": "log_dir",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "CONTEXTKIT_FILE_CONTEXT": "file_context_enabled",
    "CONTEXTKIT_INCLUDE_FILE_URL": "include_file_url",
    "CONTEXTKIT_DEBUG_LOGGING": "debug_logging",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "CONTEXTKIT_MAX_CONTEXT_TOKENS": "max_context_tokens",
    "CONTEXTKIT_RESPONSE_RESERVE": "response_reserve",
    "CONTEXTKIT_MAX_TOOL_NAME_LENGTH": "max_tool_name_length",
}
_LIST_ENV_OVERRIDES: Mapping[str, str] = {
    "CONTEXTKIT_DEFAULT_TOOLS": "default_tool_ids",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}

ORPHAN_POLICIES: tuple[str, ...] = ("keep", "drop", "convert")
INBOX_GUIDE_MODES: tuple[str, ...] = ("append", "replace")
OrphanPolicy = Literal["keep", "drop", "convert"]
InboxGuideMode = Literal["append", "replace"]


@dataclass(slots=True)
class ContextSettings:
    """Deployment level configuration for the context engine."""

    inbox_session_id: str = "inbox"
    inbox_guide_mode: InboxGuideMode = "append"
    file_context_enabled: bool = True
    include_file_url: bool = True
    default_tool_ids: list[str] = field(default_factory=list)
    max_context_tokens: int = 128_000
    response_reserve: int = 4_096
    orphan_policy: OrphanPolicy = "keep"
    max_tool_name_length: int = 64
    username: str = "User"
    language: str = "en-US"
    debug_logging: bool = False
    log_dir: str | None = None

    def validate(self) -> ContextSettings:
        """Raise :class:`ConfigurationError` for values the engine cannot use."""
        if self.orphan_policy not in ORPHAN_POLICIES:
            raise ConfigurationError(
                message=f"orphan_policy must be one of {', '.join(ORPHAN_POLICIES)}",
                details={"orphan_policy": self.orphan_policy},
            )
        if self.inbox_guide_mode not in INBOX_GUIDE_MODES:
            raise ConfigurationError(
                message=f"inbox_guide_mode must be one of {', '.join(INBOX_GUIDE_MODES)}",
                details={"inbox_guide_mode": self.inbox_guide_mode},
            )
        if self.max_context_tokens <= 0:
            raise ConfigurationError(
                message="max_context_tokens must be positive",
                details={"max_context_tokens": self.max_context_tokens},
            )
        if self.max_tool_name_length < 20:
            # Hashed names alone take 20 characters.
            raise ConfigurationError(
                message="max_tool_name_length must be at least 20",
                details={"max_tool_name_length": self.max_tool_name_length},
            )
        return self


class SettingsStore:
    """Persistence adapter for :class:`ContextSettings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> ContextSettings:
        """Load settings from disk, applying runtime/environment overrides when present."""

        payload = self._read_payload()
        settings = ContextSettings()
        if payload:
            try:
                settings = ContextSettings(**_filter_fields(payload))
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = ContextSettings()
            LOGGER.debug("Settings loaded from %s", self._path)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="runtime")

        settings = self._apply_env_overrides(settings)
        return settings.validate()

    def save(self, settings: ContextSettings) -> Path:
        """Persist settings to disk with atomic file writes."""

        data = asdict(settings)
        data["version"] = _SETTINGS_VERSION
        body = json.dumps(data, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            return json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}

    def _apply_overrides(
        self,
        settings: ContextSettings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> ContextSettings:
        allowed = {field.name for field in fields(ContextSettings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = value
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: ContextSettings) -> ContextSettings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid integer",
                    env_name,
                    value,
                )
        for env_name, field_name in _LIST_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = [item.strip() for item in value.split(",") if item.strip()]
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(ContextSettings)}
    return {key: value for key, value in payload.items() if key in allowed}
