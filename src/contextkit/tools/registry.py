"""In-memory registry of tool manifests.

The registry is the only long-lived structure shared between pipeline runs.
Writers build a new mapping and swap it in under a lock; readers take an
immutable :class:`RegistrySnapshot` and resolve a whole request against it,
so one request never observes a half-applied update.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from .manifest import ToolManifest

__all__ = ["RegistrySnapshot", "ManifestRegistry"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RegistrySnapshot:
    """Immutable view of the registry at one version."""

    version: int
    manifests: Mapping[str, ToolManifest]

    def get(self, identifier: str) -> ToolManifest | None:
        return self.manifests.get(identifier)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self.manifests

    def __len__(self) -> int:
        return len(self.manifests)


class ManifestRegistry:
    """Versioned mapping from tool identifier to manifest.

    Example:
        registry = ManifestRegistry([weather_manifest])
        registry.add(search_manifest)
        snapshot = registry.snapshot()
        manifest = snapshot.get("realtime-weather")
    """

    def __init__(self, manifests: Iterable[ToolManifest | Mapping[str, Any]] = ()) -> None:
        self._lock = threading.RLock()
        self._version = 0
        self._manifests: Mapping[str, ToolManifest] = MappingProxyType(
            self._index(manifests)
        )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    @property
    def version(self) -> int:
        return self._version

    def snapshot(self) -> RegistrySnapshot:
        """Return an immutable view of the current manifest set."""
        with self._lock:
            return RegistrySnapshot(self._version, self._manifests)

    def get(self, identifier: str) -> ToolManifest | None:
        return self._manifests.get(identifier)

    def has(self, identifier: str) -> bool:
        return identifier in self._manifests

    def ids(self) -> list[str]:
        """List known identifiers in registration order."""
        return list(self._manifests)

    def manifests(self) -> list[ToolManifest]:
        return list(self._manifests.values())

    def __len__(self) -> int:
        return len(self._manifests)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._manifests

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def add(self, manifest: ToolManifest | Mapping[str, Any]) -> int:
        """Add or overwrite one manifest. Returns the new version."""
        item = self._coerce(manifest)
        with self._lock:
            updated = dict(self._manifests)
            replaced = item.identifier in updated
            updated[item.identifier] = item
            version = self._swap(updated)
        LOGGER.debug(
            "%s manifest %s (version=%d)",
            "Replaced" if replaced else "Added",
            item.identifier,
            version,
        )
        return version

    def replace_all(self, manifests: Iterable[ToolManifest | Mapping[str, Any]]) -> int:
        """Replace the whole manifest set. Returns the new version."""
        indexed = self._index(manifests)
        with self._lock:
            version = self._swap(indexed)
        LOGGER.debug("Replaced manifest set with %d manifest(s) (version=%d)", len(indexed), version)
        return version

    def remove(self, identifier: str) -> bool:
        """Remove a manifest. Returns False if the identifier is unknown."""
        with self._lock:
            if identifier not in self._manifests:
                return False
            updated = dict(self._manifests)
            del updated[identifier]
            version = self._swap(updated)
        LOGGER.debug("Removed manifest %s (version=%d)", identifier, version)
        return True

    def clear(self) -> int:
        return self.replace_all(())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _swap(self, manifests: dict[str, ToolManifest]) -> int:
        self._manifests = MappingProxyType(manifests)
        self._version += 1
        return self._version

    @classmethod
    def _index(cls, manifests: Iterable[ToolManifest | Mapping[str, Any]]) -> dict[str, ToolManifest]:
        indexed: dict[str, ToolManifest] = {}
        for manifest in manifests:
            item = cls._coerce(manifest)
            indexed[item.identifier] = item
        return indexed

    @staticmethod
    def _coerce(manifest: ToolManifest | Mapping[str, Any]) -> ToolManifest:
        if isinstance(manifest, ToolManifest):
            return manifest
        return ToolManifest.from_mapping(manifest)
