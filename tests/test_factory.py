"""Tests for the rule factory."""

from __future__ import annotations

import pytest

from archgate.rules import ImportRule, create_rules, detect_rule_type
from archgate.rules.factory import MAX_RULES


class TestDetectRuleType:
    @pytest.mark.parametrize("key", ["must_not_import_from", "may_import_from", "must_import_from"])
    def test_any_constraint_means_import(self, key: str) -> None:
        assert detect_rule_type({"name": "r", "layer": "src", key: ["x"]}) == "import"

    def test_null_constraint_is_ignored(self) -> None:
        with pytest.raises(ValueError, match="Cannot determine rule type for: r"):
            detect_rule_type({"name": "r", "layer": "src", "may_import_from": None})

    def test_unnamed_rule_in_message(self) -> None:
        with pytest.raises(ValueError, match="unnamed rule"):
            detect_rule_type({"layer": "src"})

    def test_non_mapping(self) -> None:
        with pytest.raises(TypeError):
            detect_rule_type(["not", "a", "mapping"])


class TestCreateRules:
    def test_builds_rules_in_order(self) -> None:
        rules = create_rules(
            {
                "rules": [
                    {"name": "a", "layer": "src/a", "must_not_import_from": ["src/b"]},
                    {"name": "b", "layer": ["src/b"], "must_import_from": ["src/types"]},
                ]
            }
        )
        assert [r.name for r in rules] == ["a", "b"]
        assert all(isinstance(r, ImportRule) for r in rules)
        assert rules[1].layers == ("src/b",)

    def test_config_is_deep_frozen(self) -> None:
        source = {"name": "a", "layer": "src", "must_not_import_from": ["src/ui"]}
        rule = create_rules({"rules": [source]})[0]
        source["must_not_import_from"].append("src/extra")  # type: ignore[attr-defined]
        assert rule.config.must_not_import_from == ("src/ui",)  # type: ignore[attr-defined]

    def test_empty_rules(self) -> None:
        assert create_rules({"rules": []}) == []

    @pytest.mark.parametrize("config", [None, "rules", ["a"]])
    def test_rejects_non_mapping_config(self, config: object) -> None:
        with pytest.raises(TypeError):
            create_rules(config)

    def test_rejects_missing_rules_list(self) -> None:
        with pytest.raises(TypeError, match='"rules" list'):
            create_rules({"version": "1.0"})

    def test_rejects_too_many_rules(self) -> None:
        rule = {"name": "r", "layer": "src", "must_import_from": ["x"]}
        with pytest.raises(ValueError, match="Too many rules"):
            create_rules({"rules": [rule] * (MAX_RULES + 1)})
