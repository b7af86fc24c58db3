"""Rule factory: build rule objects from parsed configuration."""

from __future__ import annotations

from collections.abc import Mapping

from archgate.rules.base import Rule
from archgate.rules.import_rule import CONSTRAINT_KEYS, ImportRule, ImportRuleConfig

MAX_RULES: int = 10_000


def detect_rule_type(rule_config: object) -> str:
    """Return the rule kind for *rule_config*, judged by the constraint keys present."""
    if not isinstance(rule_config, Mapping):
        msg = "Rule config must be a mapping"
        raise TypeError(msg)

    if any(rule_config.get(key) is not None for key in CONSTRAINT_KEYS):
        return "import"

    name = rule_config.get("name") or "unnamed rule"
    msg = f"Cannot determine rule type for: {name}"
    raise ValueError(msg)


def create_rules(config: object) -> list[Rule]:
    """Create rule instances from a parsed config mapping with a ``rules`` list.

    Raises ``TypeError`` for structurally invalid input and ``ValueError``
    for too many rules or an unrecognized rule kind.
    """
    if not isinstance(config, Mapping):
        msg = "Config must be a mapping"
        raise TypeError(msg)

    rules_data = config.get("rules")
    if not isinstance(rules_data, list):
        msg = 'Config must have a "rules" list'
        raise TypeError(msg)

    if len(rules_data) > MAX_RULES:
        msg = f"Too many rules (maximum {MAX_RULES})"
        raise ValueError(msg)

    rules: list[Rule] = []
    for rule_config in rules_data:
        rule_type = detect_rule_type(rule_config)
        if rule_type == "import":
            rules.append(ImportRule(ImportRuleConfig.from_mapping(rule_config)))
    return rules
