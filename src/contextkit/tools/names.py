"""Provider-safe calling names for tool APIs.

A calling name is built from the full manifest identifier, the API name and,
for non-default manifests, the manifest type, joined by a four underscore
separator::

    realtime-weather____fetchCurrentWeather
    lobe-web-browsing____search____builtin

Identifiers that would push the name past the provider limit, or that carry
characters providers reject, are replaced by a digest of the identifier. A
segment that could blur the separator, by containing it or by starting or
ending with an underscore, is never used verbatim: such identifiers are
digested, and such API names or types digest the whole triple. Every name
therefore splits back one way only. The resolver records every name it hands
out so that calling names returned by a model can be mapped back to their
manifest API.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import threading
from dataclasses import dataclass

from ..errors import ToolNameCollisionError, UnknownToolNameError
from ..types import DEFAULT_TOOL_TYPE

__all__ = [
    "NAME_SEPARATOR",
    "MAX_CALLING_NAME_LENGTH",
    "ToolNameParts",
    "ToolNameResolver",
    "generate_tool_name",
]

LOGGER = logging.getLogger(__name__)

NAME_SEPARATOR = "____"
HASH_PREFIX = "MD5HASH_"
MAX_CALLING_NAME_LENGTH = 64
_HASH_LENGTH = 12
_SAFE_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(slots=True, frozen=True)
class ToolNameParts:
    """The (identifier, api name, type) triple behind a calling name."""

    identifier: str
    api_name: str
    type: str = DEFAULT_TOOL_TYPE


def _digest(identifier: str) -> str:
    return HASH_PREFIX + hashlib.md5(identifier.encode("utf-8")).hexdigest()[:_HASH_LENGTH]


def _is_plain(segment: str) -> bool:
    """Whether ``segment`` can appear verbatim between separators.

    A plain segment never contains the separator and never starts or ends
    with an underscore, so every run of exactly four underscores in a joined
    name is a separator and the name splits back one way only.
    """
    return (
        bool(segment)
        and NAME_SEPARATOR not in segment
        and not segment.startswith("_")
        and not segment.endswith("_")
    )


def generate_tool_name(
    identifier: str,
    api_name: str,
    type: str | None = None,
    *,
    max_length: int = MAX_CALLING_NAME_LENGTH,
) -> str:
    """Return the calling name for a manifest API.

    Stateless; use :class:`ToolNameResolver` when reverse lookup or collision
    detection is needed.
    """
    if not identifier or not api_name:
        raise ValueError("identifier and api_name are required to build a tool name")

    type_ = type or DEFAULT_TOOL_TYPE
    suffix = "" if type_ == DEFAULT_TOOL_TYPE else f"{NAME_SEPARATOR}{type_}"
    if _is_plain(api_name) and _is_plain(type_):
        candidates = [f"{_digest(identifier)}{NAME_SEPARATOR}{api_name}{suffix}"]
        # Hashed identifiers own the prefix.
        if _is_plain(identifier) and not identifier.startswith(HASH_PREFIX):
            candidates.insert(0, f"{identifier}{NAME_SEPARATOR}{api_name}{suffix}")
        for candidate in candidates:
            if len(candidate) <= max_length and _SAFE_NAME.match(candidate):
                return candidate
    # Last resort: digest of the whole triple; distinct triples never share its input.
    return _digest(json.dumps([identifier, api_name, type_]))


class ToolNameResolver:
    """Deterministic, collision checked calling name generator.

    The same ``(identifier, api_name, type)`` triple always yields the same
    name. Two different triples never share a name: if the hashing fallback
    ever produced a clash, :meth:`generate` raises instead of returning an
    ambiguous name.

    Example:
        resolver = ToolNameResolver()
        name = resolver.generate("realtime-weather", "fetchCurrentWeather")
        parts = resolver.resolve(name)
    """

    def __init__(self, *, max_length: int = MAX_CALLING_NAME_LENGTH) -> None:
        self._max_length = max_length
        self._by_name: dict[str, ToolNameParts] = {}
        self._lock = threading.Lock()

    @property
    def max_length(self) -> int:
        return self._max_length

    def generate(self, identifier: str, api_name: str, type: str | None = None) -> str:
        """Return the calling name for a manifest API and remember it."""
        parts = ToolNameParts(identifier, api_name, type or DEFAULT_TOOL_TYPE)
        name = generate_tool_name(identifier, api_name, parts.type, max_length=self._max_length)
        with self._lock:
            known = self._by_name.get(name)
            if known is None:
                self._by_name[name] = parts
            elif known != parts:
                raise ToolNameCollisionError(
                    message=f"Calling name '{name}' already maps to {known.identifier}/{known.api_name}",
                    details={
                        "name": name,
                        "existing": [known.identifier, known.api_name, known.type],
                        "incoming": [parts.identifier, parts.api_name, parts.type],
                    },
                )
        return name

    def resolve(self, calling_name: str) -> ToolNameParts:
        """Map a calling name back to its manifest API.

        Names this resolver generated are looked up directly. Unhashed names
        are also accepted when split on the separator, so tool calls stored
        by an earlier process can still be attributed.
        """
        with self._lock:
            known = self._by_name.get(calling_name)
        if known is not None:
            return known

        segments = calling_name.split(NAME_SEPARATOR)
        if len(segments) in (2, 3) and not segments[0].startswith(HASH_PREFIX) and all(segments):
            type_ = segments[2] if len(segments) == 3 else DEFAULT_TOOL_TYPE
            return ToolNameParts(segments[0], segments[1], type_)

        LOGGER.debug("Unable to resolve tool calling name %s", calling_name)
        raise UnknownToolNameError(
            message=f"Unknown tool calling name '{calling_name}'",
            details={"name": calling_name},
        )

    def known_names(self) -> list[str]:
        with self._lock:
            return sorted(self._by_name)

    def clear(self) -> None:
        with self._lock:
            self._by_name.clear()
