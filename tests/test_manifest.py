"""Tests for tool manifests and their validation."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from contextkit.errors import ManifestValidationError
from contextkit.tools.manifest import InterventionRule, ToolManifest, load_manifests, validate_manifest

from conftest import SEARCH_MANIFEST, WEATHER_MANIFEST


def _with_api_config(config: Any) -> dict[str, Any]:
    return {
        "identifier": "shell",
        "humanIntervention": "never",
        "api": [
            {
                "name": "run",
                "description": "Run a command.",
                "parameters": {"type": "object"},
                "humanIntervention": config,
            },
            {"name": "status", "description": "Show status.", "parameters": {"type": "object"}},
        ],
    }


class TestValidation:
    def test_valid_manifest_passes(self) -> None:
        validate_manifest(WEATHER_MANIFEST)

    def test_reports_every_problem(self) -> None:
        with pytest.raises(ManifestValidationError) as excinfo:
            validate_manifest({"identifier": "", "api": [{"name": "x"}]})

        problems = excinfo.value.problems
        assert len(problems) >= 3
        assert any(p.startswith("identifier") for p in problems)
        assert any("description" in p for p in problems)
        assert any("parameters" in p for p in problems)

    def test_missing_api(self) -> None:
        with pytest.raises(ManifestValidationError) as excinfo:
            validate_manifest({"identifier": "empty"})

        assert excinfo.value.identifier == "empty"

    def test_duplicate_api_names(self) -> None:
        api = WEATHER_MANIFEST["api"][0]
        with pytest.raises(ManifestValidationError) as excinfo:
            validate_manifest({"identifier": "dup", "api": [api, api]})

        assert "duplicate api names getCurrent" in excinfo.value.message

    def test_bad_policy(self) -> None:
        with pytest.raises(ManifestValidationError):
            validate_manifest(_with_api_config("sometimes"))

    def test_manifest_level_rule_list_is_valid(self) -> None:
        document = dict(SEARCH_MANIFEST, humanIntervention=[{"policy": "first"}])

        validate_manifest(document)

    def test_bad_manifest_level_rule(self) -> None:
        with pytest.raises(ManifestValidationError):
            validate_manifest(dict(SEARCH_MANIFEST, humanIntervention=[{"match": {}}]))

    def test_from_mapping_can_skip_validation(self) -> None:
        manifest = ToolManifest.from_mapping({"identifier": "loose", "api": []}, validate=False)

        assert manifest.api == ()


class TestManifest:
    def test_from_mapping(self, weather_manifest: ToolManifest) -> None:
        assert weather_manifest.identifier == "weather"
        assert [api.name for api in weather_manifest.api] == ["getCurrent", "getForecast"]
        assert weather_manifest.title == "Weather"
        assert weather_manifest.system_role.startswith("Use the weather")
        assert weather_manifest.human_intervention == "never"

    def test_title_falls_back_to_identifier(self, search_manifest: ToolManifest) -> None:
        assert search_manifest.title == "web-search"

    def test_to_dict_roundtrip(self, weather_manifest: ToolManifest) -> None:
        assert ToolManifest.from_mapping(weather_manifest.to_dict()) == weather_manifest

    def test_get_api(self, weather_manifest: ToolManifest) -> None:
        assert weather_manifest.get_api("getForecast") is weather_manifest.api[1]
        assert weather_manifest.get_api("missing") is None


class TestIntervention:
    def test_manifest_default(self) -> None:
        manifest = ToolManifest.from_mapping(_with_api_config("always"))

        assert manifest.intervention_for("status") == "never"
        assert manifest.intervention_for("run") == "always"

    def test_rules_first_match_wins(self) -> None:
        manifest = ToolManifest.from_mapping(
            _with_api_config(
                [
                    {"match": {"command": "git add:*"}, "policy": "never"},
                    {"match": {"command": "rm *"}, "policy": "always"},
                    {"policy": "first"},
                ]
            )
        )

        assert manifest.intervention_for("run", {"command": "git add ."}) == "never"
        assert manifest.intervention_for("run", {"command": "rm -rf build"}) == "always"
        assert manifest.intervention_for("run", {"command": "ls"}) == "first"

    def test_no_rule_matches(self) -> None:
        manifest = ToolManifest.from_mapping(
            _with_api_config([{"match": {"command": "rm *"}, "policy": "always"}])
        )

        assert manifest.intervention_for("run", {"command": "ls"}) == "never"
        assert manifest.intervention_for("run") == "never"

    def test_manifest_level_rules(self) -> None:
        document = _with_api_config([{"match": {"command": "rm *"}, "policy": "always"}])
        document["humanIntervention"] = [
            {"match": {"command": "git push:*"}, "policy": "first"},
            {"match": {"target": "prod"}, "policy": "always"},
        ]

        manifest = ToolManifest.from_mapping(document)

        assert manifest.human_intervention == (
            InterventionRule(policy="first", match={"command": "git push:*"}),
            InterventionRule(policy="always", match={"target": "prod"}),
        )
        assert manifest.intervention_for("run", {"command": "rm -rf build"}) == "always"
        assert manifest.intervention_for("run", {"command": "git push origin"}) == "first"
        assert manifest.intervention_for("status", {"target": "prod"}) == "always"
        assert manifest.intervention_for("status", {"target": "dev"}) == "never"
        assert ToolManifest.from_mapping(manifest.to_dict()) == manifest

    def test_rule_requires_argument(self) -> None:
        rule = InterventionRule(policy="always", match={"path": "/etc/*"})

        assert not rule.matches({})
        assert rule.matches({"path": "/etc/hosts"})


class TestLoadManifests:
    def test_from_documents(self) -> None:
        manifests = load_manifests([WEATHER_MANIFEST, SEARCH_MANIFEST])

        assert [m.identifier for m in manifests] == ["weather", "web-search"]

    def test_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "manifests.json"
        path.write_text(json.dumps([WEATHER_MANIFEST]), encoding="utf-8")

        manifests = load_manifests(path)

        assert manifests[0].identifier == "weather"

    def test_single_document_file(self, tmp_path: Path) -> None:
        path = tmp_path / "search.json"
        path.write_text(json.dumps(SEARCH_MANIFEST), encoding="utf-8")

        assert len(load_manifests(str(path))) == 1

    def test_invalid_document_raises(self) -> None:
        with pytest.raises(ManifestValidationError):
            load_manifests([{"identifier": "broken"}])
