"""Tests for rules configuration: discovery, YAML loading limits, extends, and schema checks."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import yaml

from archgate.rules import (
    DEFAULT_CONFIG_YAML,
    ConfigError,
    create_rules,
    default_config,
    find_config,
    load_config,
    load_rules_config,
    validate_config,
)
from archgate.rules.config import MAX_ALIAS_COUNT, MAX_CONFIG_SIZE

if TYPE_CHECKING:
    from pathlib import Path


VALID_YAML = """\
version: "1.0"
rules:
  - name: Domain isolation
    layer: src/domain
    must_not_import_from: [src/ui]
"""


def _messages(data: object) -> list[str]:
    return [str(issue) for issue in validate_config(data)]


# ---------------------------------------------------------------------------
# TestFindConfig
# ---------------------------------------------------------------------------


class TestFindConfig:
    def test_finds_default_name(self, tmp_path: Path) -> None:
        (tmp_path / ".architecture.yml").write_text(VALID_YAML)
        assert find_config(tmp_path) == tmp_path / ".architecture.yml"

    def test_name_priority(self, tmp_path: Path) -> None:
        (tmp_path / "architecture.config.yml").write_text(VALID_YAML)
        (tmp_path / ".architecture.yaml").write_text(VALID_YAML)
        assert find_config(tmp_path) == tmp_path / ".architecture.yaml"

    def test_case_insensitive_fallback(self, tmp_path: Path) -> None:
        (tmp_path / "Architecture.Config.YML").write_text(VALID_YAML)
        found = find_config(tmp_path)
        assert found is not None
        assert found.name.lower() == "architecture.config.yml"

    def test_none_when_absent(self, tmp_path: Path) -> None:
        assert find_config(tmp_path) is None

    def test_none_for_missing_directory(self, tmp_path: Path) -> None:
        assert find_config(tmp_path / "nope") is None


# ---------------------------------------------------------------------------
# TestLoadConfig
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_parses_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.yml"
        path.write_text(VALID_YAML)
        data = load_config(path)
        assert isinstance(data, dict)
        assert data["rules"][0]["name"] == "Domain isolation"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "absent.yml")

    def test_too_large(self, tmp_path: Path) -> None:
        path = tmp_path / "big.yml"
        path.write_text("# " + "x" * MAX_CONFIG_SIZE + "\n")
        with pytest.raises(ConfigError, match="too large"):
            load_config(path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yml"
        path.write_text("rules: [unclosed\n")
        with pytest.raises(ConfigError, match="Failed to parse"):
            load_config(path)

    def test_alias_bomb_rejected(self, tmp_path: Path) -> None:
        lines = ["base: &a [1, 2]", "items:"]
        lines.extend("  - *a" for _ in range(MAX_ALIAS_COUNT + 1))
        path = tmp_path / "bomb.yml"
        path.write_text("\n".join(lines) + "\n")
        with pytest.raises(ConfigError, match="too many aliases"):
            load_config(path)

    def test_aliases_under_limit_allowed(self, tmp_path: Path) -> None:
        path = tmp_path / "ok.yml"
        path.write_text("base: &a [src/ui]\nother: *a\n")
        assert load_config(path) == {"base": ["src/ui"], "other": ["src/ui"]}

    def test_python_tags_refused(self, tmp_path: Path) -> None:
        path = tmp_path / "evil.yml"
        path.write_text("x: !!python/object/apply:os.system ['true']\n")
        with pytest.raises(ConfigError):
            load_config(path)


# ---------------------------------------------------------------------------
# TestValidateConfig
# ---------------------------------------------------------------------------


class TestValidateConfig:
    def test_valid(self) -> None:
        assert validate_config(yaml.safe_load(VALID_YAML)) == []

    def test_numeric_version_accepted(self) -> None:
        data = yaml.safe_load(VALID_YAML)
        data["version"] = 1.0
        assert validate_config(data) == []

    def test_bad_version(self) -> None:
        data = yaml.safe_load(VALID_YAML)
        data["version"] = "v1"
        assert _messages(data) == ['version: Version must be in format "X.Y"']

    def test_not_a_mapping(self) -> None:
        assert _messages(["rules"]) == ["Configuration must be a mapping"]

    def test_unknown_top_level_key(self) -> None:
        data = yaml.safe_load(VALID_YAML)
        data["ruels"] = []
        assert _messages(data) == ["ruels: Unrecognized key"]

    def test_empty_rules(self) -> None:
        assert _messages({"rules": []}) == ["rules: At least one rule is required"]

    def test_rule_without_constraint(self) -> None:
        messages = _messages({"rules": [{"name": "r", "layer": "src"}]})
        assert len(messages) == 1
        assert messages[0].startswith("rules.0.constraints: Rule must specify at least one")

    def test_rule_field_errors(self) -> None:
        messages = _messages(
            {
                "rules": [
                    {
                        "name": "n" * 101,
                        "description": "d" * 501,
                        "layer": "../src",
                        "must_not_import_from": "src/ui",
                    }
                ]
            }
        )
        assert messages == [
            "rules.0.name: Rule name must be less than 100 characters",
            "rules.0.description: Description must be less than 500 characters",
            'rules.0.layer: Layer patterns cannot contain ".." or absolute paths',
            "rules.0.must_not_import_from: Expected a list of strings",
        ]

    def test_layer_forms(self) -> None:
        base = {"name": "r", "must_import_from": ["x"]}
        assert _messages({"rules": [{**base, "layer": ["src/a", "src/b"]}]}) == []
        assert _messages({"rules": [{**base, "layer": []}]}) == [
            "rules.0.layer: At least one layer pattern is required"
        ]
        assert _messages({"rules": [{**base}]}) == ["rules.0.layer: Layer pattern is required"]
        assert _messages({"rules": [{**base, "layer": "/abs"}]}) == [
            'rules.0.layer: Layer patterns cannot contain ".." or absolute paths'
        ]


# ---------------------------------------------------------------------------
# TestLoadRulesConfig
# ---------------------------------------------------------------------------


class TestLoadRulesConfig:
    def test_loads_and_defaults_version(self, tmp_path: Path) -> None:
        path = tmp_path / ".architecture.yml"
        path.write_text("rules:\n  - name: r\n    layer: src\n    must_import_from: [x]\n")
        config = load_rules_config(path)
        assert config["version"] == "1.0"

    def test_lists_every_issue(self, tmp_path: Path) -> None:
        path = tmp_path / ".architecture.yml"
        path.write_text("version: bad\nrules:\n  - name: r\n")
        with pytest.raises(ConfigError) as excinfo:
            load_rules_config(path)
        text = str(excinfo.value)
        assert "version" in text
        assert "rules.0.layer" in text
        assert "rules.0.constraints" in text

    def test_scalar_document(self, tmp_path: Path) -> None:
        path = tmp_path / ".architecture.yml"
        path.write_text("just a string\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_rules_config(path)

    def test_extends_merges_rules_by_name(self, tmp_path: Path) -> None:
        (tmp_path / "base.yml").write_text(
            'version: "2.0"\n'
            "rules:\n"
            "  - name: shared\n    layer: src/a\n    must_not_import_from: [src/b]\n"
            "  - name: base-only\n    layer: src/c\n    must_import_from: [src/types]\n"
        )
        child = tmp_path / ".architecture.yml"
        child.write_text(
            "extends: base.yml\n"
            "rules:\n"
            "  - name: shared\n    layer: src/a\n    must_not_import_from: [src/ui]\n"
            "  - name: child-only\n    layer: src/d\n    may_import_from: [src/a]\n"
        )

        config = load_rules_config(child)

        assert "extends" not in config
        assert config["version"] == "2.0"
        rules = config["rules"]
        assert [r["name"] for r in rules] == ["shared", "base-only", "child-only"]
        assert rules[0]["must_not_import_from"] == ["src/ui"]

    def test_extends_cycle(self, tmp_path: Path) -> None:
        (tmp_path / "a.yml").write_text("extends: b.yml\nrules: []\n")
        (tmp_path / "b.yml").write_text("extends: a.yml\nrules: []\n")
        with pytest.raises(ConfigError, match="circular"):
            load_rules_config(tmp_path / "a.yml")

    def test_extends_missing_base(self, tmp_path: Path) -> None:
        path = tmp_path / ".architecture.yml"
        path.write_text("extends: nowhere.yml\nrules: []\n")
        with pytest.raises(ConfigError, match="not found"):
            load_rules_config(path)


# ---------------------------------------------------------------------------
# TestDefaultConfig
# ---------------------------------------------------------------------------


class TestDefaultConfig:
    def test_default_config_is_valid(self) -> None:
        assert validate_config(default_config()) == []

    def test_default_yaml_round_trips_into_rules(self) -> None:
        data = yaml.safe_load(DEFAULT_CONFIG_YAML)
        assert data == default_config()
        assert len(create_rules(data)) == 2
