"""Tool manifests: declarative descriptions of a tool's callable APIs.

Manifests arrive from the plugin registry as JSON documents. They are
validated once, at load time, against :data:`MANIFEST_SCHEMA` and turned into
immutable :class:`ToolManifest` objects that are never mutated afterwards.
"""

from __future__ import annotations

import fnmatch
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Literal, Mapping, Sequence, Union

from jsonschema import Draft7Validator, ValidationError

from ..errors import ManifestValidationError
from ..types import DEFAULT_TOOL_TYPE

__all__ = [
    "MANIFEST_SCHEMA",
    "InterventionPolicy",
    "InterventionConfig",
    "InterventionRule",
    "ToolApi",
    "ToolMeta",
    "ToolManifest",
    "validate_manifest",
    "load_manifests",
]

LOGGER = logging.getLogger(__name__)

InterventionPolicy = Literal["never", "always", "first"]
_POLICIES: tuple[str, ...] = ("never", "always", "first")
DEFAULT_POLICY: InterventionPolicy = "never"


# -----------------------------------------------------------------------------
# Schema
# -----------------------------------------------------------------------------

_POLICY_SCHEMA: dict[str, Any] = {"type": "string", "enum": list(_POLICIES)}

_INTERVENTION_CONFIG_SCHEMA: dict[str, Any] = {
    "oneOf": [
        _POLICY_SCHEMA,
        {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["policy"],
                "properties": {
                    "match": {"type": "object"},
                    "policy": _POLICY_SCHEMA,
                },
            },
        },
    ]
}

MANIFEST_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["identifier", "api"],
    "properties": {
        "identifier": {"type": "string", "minLength": 1},
        "type": {"type": "string", "minLength": 1},
        "systemRole": {"type": "string"},
        "humanIntervention": _INTERVENTION_CONFIG_SCHEMA,
        "meta": {
            "type": "object",
            "properties": {
                "title": {"type": "string"},
                "description": {"type": "string"},
                "avatar": {"type": "string"},
                "tags": {"type": "array", "items": {"type": "string"}},
            },
        },
        "api": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "description", "parameters"],
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "description": {"type": "string"},
                    "parameters": {"type": "object"},
                    "url": {"type": "string"},
                    "humanIntervention": _INTERVENTION_CONFIG_SCHEMA,
                },
            },
        },
    },
}

_VALIDATOR = Draft7Validator(MANIFEST_SCHEMA)


# -----------------------------------------------------------------------------
# Manifest Types
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class InterventionRule:
    """Parameter-level human intervention rule.

    ``match`` maps argument names to glob patterns; a trailing ``:*`` is a
    prefix match (``"git add:*"`` matches ``"git add ."``). A rule without
    ``match`` applies to every call.
    """

    policy: InterventionPolicy
    match: Mapping[str, str] = field(default_factory=dict)

    def matches(self, arguments: Mapping[str, Any]) -> bool:
        for key, pattern in self.match.items():
            if key not in arguments:
                return False
            glob = pattern[:-2] + "*" if pattern.endswith(":*") else pattern
            if not fnmatch.fnmatchcase(str(arguments[key]), glob):
                return False
        return True


InterventionConfig = Union[InterventionPolicy, tuple[InterventionRule, ...]]


def _parse_intervention(config: Any) -> InterventionConfig | None:
    if isinstance(config, list):
        return tuple(
            InterventionRule(policy=rule["policy"], match=dict(rule.get("match") or {}))
            for rule in config
        )
    return config


def _dump_intervention(config: InterventionConfig) -> Any:
    if isinstance(config, tuple):
        return [{"policy": r.policy, **({"match": dict(r.match)} if r.match else {})} for r in config]
    return config


def _evaluate_intervention(
    config: InterventionConfig, arguments: Mapping[str, Any]
) -> InterventionPolicy | None:
    """Return the policy ``config`` selects, or ``None`` when no rule matches."""
    if isinstance(config, str):
        return config
    for rule in config:
        if rule.matches(arguments):
            return rule.policy
    return None


@dataclass(slots=True, frozen=True)
class ToolApi:
    """One callable API declared by a manifest."""

    name: str
    description: str
    parameters: Mapping[str, Any]
    url: str | None = None
    human_intervention: InterventionConfig | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ToolApi:
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            parameters=dict(data.get("parameters") or {}),
            url=data.get("url"),
            human_intervention=_parse_intervention(data.get("humanIntervention")),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "parameters": dict(self.parameters),
        }
        if self.url:
            payload["url"] = self.url
        if self.human_intervention is not None:
            payload["humanIntervention"] = _dump_intervention(self.human_intervention)
        return payload


@dataclass(slots=True, frozen=True)
class ToolMeta:
    title: str = ""
    description: str = ""
    avatar: str = ""
    tags: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class ToolManifest:
    """Immutable description of a tool and its APIs.

    Attributes:
        identifier: Unique key in the manifest registry.
        api: Declared APIs, in declaration order.
        type: Plugin category tag; affects calling name generation.
        system_role: Usage instructions injected into the system role.
        meta: Display metadata.
        human_intervention: Manifest-level default, a policy or a rule list.
    """

    identifier: str
    api: tuple[ToolApi, ...] = ()
    type: str = DEFAULT_TOOL_TYPE
    system_role: str = ""
    meta: ToolMeta = field(default_factory=ToolMeta)
    human_intervention: InterventionConfig = DEFAULT_POLICY

    @property
    def title(self) -> str:
        return self.meta.title or self.identifier

    def get_api(self, name: str) -> ToolApi | None:
        for api in self.api:
            if api.name == name:
                return api
        return None

    def intervention_for(
        self, api_name: str, arguments: Mapping[str, Any] | None = None
    ) -> InterventionPolicy:
        """Resolve the effective human intervention policy for one call.

        Per-API configuration wins over the manifest default. Rule lists are
        evaluated in order and the first matching rule decides; when none
        matches, the manifest-level configuration is consulted the same way
        and ``never`` applies last.
        """
        args = arguments or {}
        api = self.get_api(api_name)
        if api is not None and api.human_intervention is not None:
            policy = _evaluate_intervention(api.human_intervention, args)
            if policy is not None:
                return policy
        return _evaluate_intervention(self.human_intervention, args) or DEFAULT_POLICY

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, validate: bool = True) -> ToolManifest:
        """Build a manifest from its JSON form.

        Raises:
            ManifestValidationError: If ``validate`` is set and the document
                does not satisfy :data:`MANIFEST_SCHEMA`.
        """
        if validate:
            validate_manifest(data)
        meta = data.get("meta") or {}
        return cls(
            identifier=data["identifier"],
            api=tuple(ToolApi.from_mapping(api) for api in data.get("api", ())),
            type=data.get("type") or DEFAULT_TOOL_TYPE,
            system_role=data.get("systemRole") or "",
            meta=ToolMeta(
                title=meta.get("title", ""),
                description=meta.get("description", ""),
                avatar=meta.get("avatar", ""),
                tags=tuple(meta.get("tags") or ()),
            ),
            human_intervention=_parse_intervention(data.get("humanIntervention")) or DEFAULT_POLICY,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "identifier": self.identifier,
            "api": [api.to_dict() for api in self.api],
            "type": self.type,
            "humanIntervention": _dump_intervention(self.human_intervention),
        }
        if self.system_role:
            payload["systemRole"] = self.system_role
        meta = {
            key: value
            for key, value in (
                ("title", self.meta.title),
                ("description", self.meta.description),
                ("avatar", self.meta.avatar),
                ("tags", list(self.meta.tags)),
            )
            if value
        }
        if meta:
            payload["meta"] = meta
        return payload


# -----------------------------------------------------------------------------
# Validation & Loading
# -----------------------------------------------------------------------------


def _format_validation_error(error: ValidationError) -> str:
    location = "/".join(str(part) for part in error.absolute_path)
    return f"{location or '<root>'}: {error.message}"


def validate_manifest(data: Mapping[str, Any]) -> None:
    """Validate a manifest document, reporting every problem at once."""
    problems = [
        _format_validation_error(error)
        for error in sorted(_VALIDATOR.iter_errors(data), key=lambda e: list(e.absolute_path))
    ]
    if not problems:
        names = [api.get("name") for api in data.get("api", ())]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            problems.append("api: duplicate api names " + ", ".join(duplicates))

    if problems:
        identifier = data.get("identifier") if isinstance(data, Mapping) else None
        raise ManifestValidationError.from_problems(
            identifier if isinstance(identifier, str) else None, problems
        )


def load_manifests(
    source: Iterable[Mapping[str, Any] | ToolManifest] | str | Path,
) -> list[ToolManifest]:
    """Load manifests from documents, manifest objects, or a JSON file.

    A JSON file may hold a single manifest or a list of manifests.
    """
    if isinstance(source, (str, Path)):
        path = Path(source)
        raw = json.loads(path.read_text(encoding="utf-8"))
        entries: Sequence[Any] = raw if isinstance(raw, list) else [raw]
        LOGGER.debug("Loaded %d manifest document(s) from %s", len(entries), path)
    else:
        entries = list(source)

    return [
        entry if isinstance(entry, ToolManifest) else ToolManifest.from_mapping(entry)
        for entry in entries
    ]
