"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from contextkit.errors import ConfigurationError, ErrorCode
from contextkit.settings import ContextSettings, SettingsStore


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")

    settings = store.load()

    assert settings == ContextSettings()


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    original = ContextSettings(
        inbox_session_id="welcome",
        inbox_guide_mode="replace",
        file_context_enabled=False,
        default_tool_ids=["web-search"],
        max_context_tokens=32_000,
        orphan_policy="drop",
    )

    SettingsStore(path).save(original)
    reloaded = SettingsStore(path).load()

    assert reloaded == original
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1


def test_unknown_keys_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"orphan_policy": "convert", "theme": "dark"}), encoding="utf-8")

    loaded = SettingsStore(path).load()

    assert loaded.orphan_policy == "convert"


def test_invalid_json_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    assert SettingsStore(path).load() == ContextSettings()


def test_runtime_overrides_apply_before_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CONTEXTKIT_ORPHAN_POLICY", "drop")
    store = SettingsStore(tmp_path / "settings.json")

    loaded = store.load(overrides={"orphan_policy": "convert", "username": "Ada", "unknown": 1})

    assert loaded.orphan_policy == "drop"
    assert loaded.username == "Ada"


def test_env_overrides_take_precedence(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    SettingsStore(path).save(ContextSettings(inbox_session_id="inbox", max_context_tokens=8_000))
    monkeypatch.setenv("CONTEXTKIT_INBOX_SESSION_ID", "lobby")
    monkeypatch.setenv("CONTEXTKIT_MAX_CONTEXT_TOKENS", "64000")
    monkeypatch.setenv("CONTEXTKIT_FILE_CONTEXT", "off")
    monkeypatch.setenv("CONTEXTKIT_DEFAULT_TOOLS", "web-search, weather,")

    overridden = SettingsStore(path).load()

    assert overridden.inbox_session_id == "lobby"
    assert overridden.max_context_tokens == 64_000
    assert overridden.file_context_enabled is False
    assert overridden.default_tool_ids == ["web-search", "weather"]


def test_invalid_int_env_override_is_ignored(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CONTEXTKIT_RESPONSE_RESERVE", "lots")

    loaded = SettingsStore(tmp_path / "settings.json").load()

    assert loaded.response_reserve == ContextSettings().response_reserve


def test_validate_rejects_unknown_orphan_policy() -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        ContextSettings(orphan_policy="archive").validate()  # type: ignore[arg-type]

    assert excinfo.value.error_code == ErrorCode.INVALID_CONFIGURATION
    assert excinfo.value.details == {"orphan_policy": "archive"}


def test_validate_rejects_short_tool_names() -> None:
    with pytest.raises(ConfigurationError):
        ContextSettings(max_tool_name_length=10).validate()


def test_load_validates_env_values(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CONTEXTKIT_INBOX_GUIDE_MODE", "sometimes")

    with pytest.raises(ConfigurationError):
        SettingsStore(tmp_path / "settings.json").load()
