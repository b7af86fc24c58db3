"""Rules domain: patterns, import rules, factory, config loader, and the rule engine."""

from archgate.rules.base import Rule, Violation
from archgate.rules.config import (
    CONFIG_FILE_NAMES,
    DEFAULT_CONFIG_YAML,
    ConfigError,
    ConfigIssue,
    default_config,
    find_config,
    load_config,
    load_rules_config,
    validate_config,
)
from archgate.rules.engine import (
    RuleEngine,
    RulePreview,
    RuleResult,
    ValidationResults,
    ValidationSummary,
)
from archgate.rules.factory import create_rules, detect_rule_type
from archgate.rules.import_rule import ImportRule, ImportRuleConfig
from archgate.rules.patterns import (
    InvalidPatternError,
    PatternCache,
    compile_glob,
    validate_pattern,
)

__all__ = [
    "CONFIG_FILE_NAMES",
    "DEFAULT_CONFIG_YAML",
    "ConfigError",
    "ConfigIssue",
    "ImportRule",
    "ImportRuleConfig",
    "InvalidPatternError",
    "PatternCache",
    "Rule",
    "RuleEngine",
    "RulePreview",
    "RuleResult",
    "ValidationResults",
    "ValidationSummary",
    "Violation",
    "compile_glob",
    "create_rules",
    "default_config",
    "detect_rule_type",
    "find_config",
    "load_config",
    "load_rules_config",
    "validate_config",
    "validate_pattern",
]
