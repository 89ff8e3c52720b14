"""Tests for tools/registry.py."""

from __future__ import annotations

import threading

import pytest

from contextkit.errors import ManifestValidationError
from contextkit.tools import ManifestRegistry, ToolManifest

from conftest import SEARCH_MANIFEST, WEATHER_MANIFEST


class TestManifestRegistry:
    """Tests for the versioned manifest registry."""

    def test_initial_manifests(self, weather_manifest: ToolManifest) -> None:
        registry = ManifestRegistry([weather_manifest, SEARCH_MANIFEST])

        assert registry.ids() == ["weather", "web-search"]
        assert registry.version == 0
        assert len(registry) == 2
        assert "weather" in registry

    def test_add_bumps_version(self, search_manifest: ToolManifest) -> None:
        registry = ManifestRegistry()

        version = registry.add(search_manifest)

        assert version == 1
        assert registry.get("web-search") is search_manifest
        assert registry.has("web-search")

    def test_add_overwrites_existing(self, weather_manifest: ToolManifest) -> None:
        registry = ManifestRegistry([weather_manifest])
        updated = ToolManifest.from_mapping({**WEATHER_MANIFEST, "systemRole": "Updated"})

        registry.add(updated)

        assert registry.get("weather") is updated
        assert registry.ids() == ["weather"]

    def test_add_validates_documents(self) -> None:
        registry = ManifestRegistry()

        with pytest.raises(ManifestValidationError):
            registry.add({"identifier": "broken"})
        assert registry.version == 0

    def test_replace_all(self, weather_manifest: ToolManifest) -> None:
        registry = ManifestRegistry([weather_manifest])

        registry.replace_all([SEARCH_MANIFEST])

        assert registry.ids() == ["web-search"]
        assert registry.version == 1

    def test_remove(self, weather_manifest: ToolManifest) -> None:
        registry = ManifestRegistry([weather_manifest])

        assert registry.remove("weather") is True
        assert registry.remove("weather") is False
        assert registry.version == 1
        assert registry.manifests() == []

    def test_clear(self, weather_manifest: ToolManifest) -> None:
        registry = ManifestRegistry([weather_manifest])

        registry.clear()

        assert len(registry) == 0

    def test_snapshot_is_isolated_from_updates(self, weather_manifest: ToolManifest) -> None:
        registry = ManifestRegistry([weather_manifest])
        snapshot = registry.snapshot()

        registry.add(SEARCH_MANIFEST)
        registry.remove("weather")

        assert snapshot.version == 0
        assert "weather" in snapshot
        assert snapshot.get("web-search") is None
        assert len(snapshot) == 1

    def test_snapshot_mapping_is_read_only(self, weather_manifest: ToolManifest) -> None:
        snapshot = ManifestRegistry([weather_manifest]).snapshot()

        with pytest.raises(TypeError):
            snapshot.manifests["other"] = weather_manifest  # type: ignore[index]

    def test_concurrent_adds_are_all_recorded(self) -> None:
        registry = ManifestRegistry()
        documents = [
            {**SEARCH_MANIFEST, "identifier": f"search-{index}"} for index in range(20)
        ]
        threads = [threading.Thread(target=registry.add, args=(doc,)) for doc in documents]

        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(registry) == 20
        assert registry.version == 20
