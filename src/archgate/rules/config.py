"""Rules configuration: locate, load, and validate ``.architecture.yml``."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import yaml

from archgate.rules.base import MAX_DESCRIPTION_LENGTH, MAX_NAME_LENGTH
from archgate.rules.import_rule import CONSTRAINT_KEYS

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

CONFIG_FILE_NAMES: tuple[str, ...] = (
    ".architecture.yml",
    ".architecture.yaml",
    "architecture.config.yml",
    "architecture.config.yaml",
)
MAX_CONFIG_SIZE: int = 1024 * 1024  # 1 MiB
MAX_ALIAS_COUNT: int = 100
MAX_EXTENDS_DEPTH: int = 5
DEFAULT_VERSION: str = "1.0"

_TOP_LEVEL_KEYS: frozenset[str] = frozenset({"version", "extends", "rules"})
_VERSION_RE = re.compile(r"^[0-9]+\.[0-9]+$")


class ConfigError(Exception):
    """Raised when the rules configuration cannot be loaded or is invalid."""


@dataclass(frozen=True)
class ConfigIssue:
    """One schema problem: a dotted path into the config and a message."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


class _GuardedLoader(yaml.SafeLoader):
    """SafeLoader that refuses documents with too many alias references."""

    def __init__(self, stream: str) -> None:
        super().__init__(stream)
        self.alias_count = 0

    def compose_node(self, parent: yaml.Node | None, index: object) -> yaml.Node | None:  # type: ignore[override]
        if self.check_event(yaml.AliasEvent):
            self.alias_count += 1
            if self.alias_count > MAX_ALIAS_COUNT:
                event = self.peek_event()
                raise yaml.composer.ComposerError(
                    None,
                    None,
                    f"too many aliases (maximum {MAX_ALIAS_COUNT})",
                    event.start_mark,
                )
        return super().compose_node(parent, index)  # type: ignore[arg-type]


def find_config(search_path: Path) -> Path | None:
    """Return the first known config file in *search_path*, or ``None``.

    Falls back to a case-insensitive match on the directory listing.
    """
    for name in CONFIG_FILE_NAMES:
        candidate = search_path / name
        if candidate.is_file():
            return candidate

    try:
        entries = {entry.name.lower(): entry for entry in search_path.iterdir()}
    except OSError:
        logger.debug("Cannot list %s", search_path)
        return None

    for name in CONFIG_FILE_NAMES:
        entry = entries.get(name.lower())
        if entry is not None and entry.is_file():
            return entry
    return None


def load_config(config_path: Path) -> object:
    """Read and parse a YAML config file.

    The file is read first and its size checked afterwards.  Raises
    :class:`ConfigError` for unreadable or oversized files and YAML errors.
    """
    try:
        content = config_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"Config file not found or not accessible: {config_path}"
        raise ConfigError(msg) from exc

    size = len(content.encode("utf-8"))
    if size > MAX_CONFIG_SIZE:
        msg = f"Config file too large ({size} bytes, maximum {MAX_CONFIG_SIZE})"
        raise ConfigError(msg)

    try:
        return yaml.load(content, Loader=_GuardedLoader)  # noqa: S506
    except yaml.YAMLError as exc:
        msg = f"Failed to parse {config_path}: {exc}"
        raise ConfigError(msg) from exc


def _merge_rules(base_rules: object, child_rules: object) -> object:
    """Base rules first; a child rule with the same name replaces the base rule in place."""
    if not isinstance(base_rules, list):
        return child_rules
    if not isinstance(child_rules, list):
        return child_rules if child_rules is not None else list(base_rules)

    merged: list[object] = list(base_rules)
    index_by_name: dict[str, int] = {}
    for idx, rule in enumerate(merged):
        if isinstance(rule, Mapping) and isinstance(rule.get("name"), str):
            index_by_name.setdefault(str(rule["name"]), idx)

    for rule in child_rules:
        name = rule.get("name") if isinstance(rule, Mapping) else None
        if isinstance(name, str) and name in index_by_name:
            merged[index_by_name[name]] = rule
        else:
            merged.append(rule)
    return merged


def _resolve_extends(
    data: Mapping[str, object], config_path: Path, chain: tuple[Path, ...]
) -> dict[str, object]:
    base_ref = data.get("extends")
    resolved: dict[str, object] = {k: v for k, v in data.items() if k != "extends"}
    if base_ref is None:
        return resolved

    if not isinstance(base_ref, str) or not base_ref.strip():
        msg = f"{config_path}: 'extends' must be a non-empty string"
        raise ConfigError(msg)
    if len(chain) > MAX_EXTENDS_DEPTH:
        msg = f"{config_path}: 'extends' chain deeper than {MAX_EXTENDS_DEPTH}"
        raise ConfigError(msg)

    base_path = (config_path.parent / base_ref).resolve()
    if base_path in chain:
        msg = f"{config_path}: circular 'extends' via {base_path}"
        raise ConfigError(msg)

    logger.debug("Config %s extends %s", config_path, base_path)
    base_data = load_config(base_path)
    if not isinstance(base_data, Mapping):
        msg = f"{base_path}: configuration must be a mapping"
        raise ConfigError(msg)
    base = _resolve_extends(base_data, base_path, (*chain, base_path))

    resolved["rules"] = _merge_rules(base.get("rules"), data.get("rules"))
    if "version" not in resolved and "version" in base:
        resolved["version"] = base["version"]
    return resolved


# ---------------------------------------------------------------------------
# Schema validation
# ---------------------------------------------------------------------------


def _is_pattern_list(value: object) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def _validate_rule(rule: object, prefix: str) -> list[ConfigIssue]:
    if not isinstance(rule, Mapping):
        return [ConfigIssue(prefix, "Rule must be a mapping")]

    issues: list[ConfigIssue] = []

    name = rule.get("name")
    if not isinstance(name, str) or not name:
        issues.append(ConfigIssue(f"{prefix}.name", "Rule name is required"))
    elif len(name) > MAX_NAME_LENGTH:
        issues.append(
            ConfigIssue(f"{prefix}.name", f"Rule name must be less than {MAX_NAME_LENGTH} characters")
        )

    description = rule.get("description")
    if description is not None:
        if not isinstance(description, str):
            issues.append(ConfigIssue(f"{prefix}.description", "Description must be a string"))
        elif len(description) > MAX_DESCRIPTION_LENGTH:
            issues.append(
                ConfigIssue(
                    f"{prefix}.description",
                    f"Description must be less than {MAX_DESCRIPTION_LENGTH} characters",
                )
            )

    layer = rule.get("layer")
    patterns: list[str] = []
    if isinstance(layer, str) and layer:
        patterns = [layer]
    elif isinstance(layer, list) and layer and all(isinstance(p, str) and p for p in layer):
        patterns = list(layer)
    elif isinstance(layer, list) and not layer:
        issues.append(ConfigIssue(f"{prefix}.layer", "At least one layer pattern is required"))
    else:
        issues.append(ConfigIssue(f"{prefix}.layer", "Layer pattern is required"))

    if any(".." in p or p.startswith("/") for p in patterns):
        issues.append(
            ConfigIssue(f"{prefix}.layer", 'Layer patterns cannot contain ".." or absolute paths')
        )

    present = 0
    for key in CONSTRAINT_KEYS:
        value = rule.get(key)
        if value is None:
            continue
        present += 1
        if not _is_pattern_list(value):
            issues.append(ConfigIssue(f"{prefix}.{key}", "Expected a list of strings"))

    if present == 0:
        issues.append(
            ConfigIssue(
                f"{prefix}.constraints",
                "Rule must specify at least one constraint "
                "(must_not_import_from, may_import_from, or must_import_from)",
            )
        )
    return issues


def validate_config(data: object) -> list[ConfigIssue]:
    """Check a parsed config against the rules schema; return every issue found."""
    if not isinstance(data, Mapping):
        return [ConfigIssue("", "Configuration must be a mapping")]

    issues: list[ConfigIssue] = [
        ConfigIssue(str(key), "Unrecognized key") for key in data if key not in _TOP_LEVEL_KEYS
    ]

    version = data.get("version", DEFAULT_VERSION)
    if isinstance(version, (int, float)) and not isinstance(version, bool):
        version = str(version)
    if not isinstance(version, str) or not _VERSION_RE.match(version):
        issues.append(ConfigIssue("version", 'Version must be in format "X.Y"'))

    extends = data.get("extends")
    if extends is not None and not isinstance(extends, str):
        issues.append(ConfigIssue("extends", "Expected a string"))

    rules = data.get("rules")
    if not isinstance(rules, list):
        issues.append(ConfigIssue("rules", "Expected a list of rules"))
    elif not rules:
        issues.append(ConfigIssue("rules", "At least one rule is required"))
    else:
        for idx, rule in enumerate(rules):
            issues.extend(_validate_rule(rule, f"rules.{idx}"))

    return issues


def load_rules_config(config_path: Path) -> dict[str, object]:
    """Load *config_path*, resolve ``extends``, and validate the result.

    Raises :class:`ConfigError` listing every schema issue.
    """
    data = load_config(config_path)
    if not isinstance(data, Mapping):
        msg = f"{config_path}: configuration must be a YAML mapping"
        raise ConfigError(msg)

    resolved = _resolve_extends(data, config_path, (config_path.resolve(),))
    issues = validate_config(resolved)
    if issues:
        details = "\n".join(f"  - {issue}" for issue in issues)
        msg = f"Invalid configuration in {config_path}:\n{details}"
        raise ConfigError(msg)

    resolved.setdefault("version", DEFAULT_VERSION)
    return resolved


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def default_config() -> dict[str, object]:
    """Return the starter configuration written by ``archgate init``."""
    return {
        "version": DEFAULT_VERSION,
        "rules": [
            {
                "name": "Domain isolation",
                "description": "Domain logic should not depend on UI",
                "layer": "src/domain",
                "must_not_import_from": ["src/ui", "src/components"],
            },
            {
                "name": "API contract",
                "description": "API routes only use domain and shared",
                "layer": "src/api",
                "may_import_from": ["src/domain", "src/shared", "src/types"],
                "must_not_import_from": ["src/ui"],
            },
        ],
    }


DEFAULT_CONFIG_YAML: str = yaml.safe_dump(default_config(), sort_keys=False)
