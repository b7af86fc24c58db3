"""Import constraint rule: forbidden, allowed, and required imports for a layer."""

from __future__ import annotations

import posixpath
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from archgate.rules.base import Rule, Violation
from archgate.rules.patterns import compile_glob

if TYPE_CHECKING:
    from archgate.graph.component_graph import Component, ComponentGraph
    from archgate.rules.patterns import Matcher

CONSTRAINT_KEYS: tuple[str, ...] = ("must_not_import_from", "may_import_from", "must_import_from")


def _freeze_patterns(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value if item is not None)
    return (str(value),)


def _freeze_layer(value: object) -> str | tuple[str, ...] | None:
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return value  # type: ignore[return-value]


@dataclass(frozen=True)
class ImportRuleConfig:
    """Immutable configuration of an import rule."""

    name: str
    layer: str | tuple[str, ...] | None
    description: str = ""
    must_not_import_from: tuple[str, ...] = ()
    may_import_from: tuple[str, ...] = ()
    must_import_from: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "layer", _freeze_layer(self.layer))
        for key in CONSTRAINT_KEYS:
            object.__setattr__(self, key, _freeze_patterns(getattr(self, key)))

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> ImportRuleConfig:
        """Deep-freeze a parsed rule mapping: lists become tuples."""
        name = data.get("name")
        description = data.get("description")
        return cls(
            name=name if isinstance(name, str) else "unnamed",
            description=description if isinstance(description, str) else "",
            layer=_freeze_layer(data.get("layer")),
            must_not_import_from=_freeze_patterns(data.get("must_not_import_from")),
            may_import_from=_freeze_patterns(data.get("may_import_from")),
            must_import_from=_freeze_patterns(data.get("must_import_from")),
        )


class ImportRule(Rule):
    """Validate a file's imports against the rule's constraint lists.

    Three independent checks run over ``file.imports``:

    * ``must_not_import_from``: each import matching a forbidden pattern is
      reported once (first matching pattern wins).
    * ``may_import_from``: when non-empty, every import matching none of the
      allowed patterns is reported.
    * ``must_import_from``: when non-empty, every required pattern that no
      import matches is reported once.
    """

    def __init__(self, config: ImportRuleConfig | Mapping[str, object]) -> None:
        if isinstance(config, Mapping):
            config = ImportRuleConfig.from_mapping(config)
        super().__init__(config)
        # Constraint globs are matched against import strings, not files on
        # disk, so they bypass the engine's path-security validation.
        object.__setattr__(self, "_globs", {})

    @property
    def config(self) -> ImportRuleConfig:
        return self._config  # type: ignore[return-value]

    def validate(self, file: Component, graph: ComponentGraph) -> list[Violation]:
        violations: list[Violation] = []
        config = self.config
        source = file.file_path
        imports = file.imports

        for imp in imports:
            for forbidden in config.must_not_import_from:
                if self._matches_pattern(imp.path, forbidden, source):
                    violations.append(
                        Violation(
                            rule_name=self.name,
                            file=source,
                            line=imp.line,
                            message=f'Forbidden import: "{imp.path}" matches "{forbidden}"',
                            suggestion="Remove this import or add to allowed list",
                            related_file=_resolve_import(imp.path, source),
                        )
                    )
                    break

        if config.may_import_from:
            for imp in imports:
                allowed = any(
                    self._matches_pattern(imp.path, pattern, source)
                    for pattern in config.may_import_from
                )
                if not allowed:
                    violations.append(
                        Violation(
                            rule_name=self.name,
                            file=source,
                            line=imp.line,
                            message=f'Import not in whitelist: "{imp.path}"',
                            suggestion="Add to may_import_from or use allowed import",
                            related_file=_resolve_import(imp.path, source),
                        )
                    )

        for required in config.must_import_from:
            if not any(self._matches_pattern(imp.path, required, source) for imp in imports):
                violations.append(
                    Violation(
                        rule_name=self.name,
                        file=source,
                        message=f'Missing required import matching "{required}"',
                        suggestion=f'Add an import that matches "{required}"',
                    )
                )

        return violations

    def _glob(self, pattern: str) -> Matcher:
        globs: dict[str, Matcher] = self._globs  # type: ignore[attr-defined]
        matcher = globs.get(pattern)
        if matcher is None:
            matcher = compile_glob(pattern, dot=True)
            globs[pattern] = matcher
        return matcher

    def _matches_pattern(self, import_path: str, pattern: str, source_file: str) -> bool:
        """Return True if *import_path* falls under *pattern*.

        Matching order: exact path, directory boundary (``src/ui`` matches
        ``src/ui/Button`` but not ``src/ui-core``), glob when the pattern has
        ``*`` or ``?``, and finally exact/boundary again for relative imports
        resolved against the importing file's directory.  An empty pattern
        never matches.
        """
        if not pattern or not pattern.strip():
            return False

        normalized_import = import_path.replace("\\", "/")
        normalized_pattern = pattern.replace("\\", "/")
        if normalized_pattern.endswith("/"):
            normalized_pattern = normalized_pattern[:-1]

        if normalized_import == normalized_pattern:
            return True
        if normalized_import.startswith(normalized_pattern + "/"):
            return True

        if "*" in normalized_pattern or "?" in normalized_pattern:
            return self._glob(normalized_pattern)(normalized_import)

        if import_path.startswith("."):
            resolved = _resolve_relative(normalized_import, source_file)
            return resolved == normalized_pattern or resolved.startswith(normalized_pattern + "/")

        return False


def _resolve_relative(import_path: str, source_file: str) -> str:
    source_dir = posixpath.dirname(source_file.replace("\\", "/"))
    return posixpath.normpath(posixpath.join(source_dir, import_path))


def _resolve_import(import_path: str, source_file: str) -> str:
    """Return the project-relative target of an import when it is relative."""
    normalized = import_path.replace("\\", "/")
    if normalized.startswith("."):
        return _resolve_relative(normalized, source_file)
    return normalized
