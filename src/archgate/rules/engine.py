"""Rule engine: run rules against the component graph and aggregate results."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from archgate.graph.component_graph import ComponentGraph
from archgate.rules.base import Violation
from archgate.rules.patterns import PatternCache

if TYPE_CHECKING:
    from collections.abc import Sequence

    from archgate.rules.base import Rule
    from archgate.rules.patterns import Matcher

logger = logging.getLogger(__name__)

MAX_PREVIEW_FILES: int = 100
SKIPPED_MESSAGE: str = "No files matched layer pattern"

STATUS_PASSED = "passed"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"

# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass
class RuleResult:
    """Outcome of one rule: status, files checked, and its violations."""

    name: str
    description: str
    status: str = STATUS_PASSED  # "passed" | "failed" | "skipped"
    files_checked: int = 0
    violations: list[Violation] = field(default_factory=list)
    message: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "filesChecked": self.files_checked,
            "violations": [v.to_dict() for v in self.violations],
        }
        if self.message is not None:
            data["message"] = self.message
        return data


@dataclass
class ValidationSummary:
    total: int = 0
    passed: int = 0
    failed: int = 0
    violations: int = 0

    @property
    def skipped(self) -> int:
        return max(0, self.total - self.passed - self.failed)

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "violations": self.violations,
        }


@dataclass
class ValidationResults:
    """Aggregate result of one :meth:`RuleEngine.validate` call."""

    summary: ValidationSummary = field(default_factory=ValidationSummary)
    rules: list[RuleResult] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return self.summary.failed > 0

    def to_dict(self) -> dict[str, object]:
        return {
            "summary": self.summary.to_dict(),
            "rules": [r.to_dict() for r in self.rules],
        }


@dataclass(frozen=True)
class RulePreview:
    """Dry-run view of the files a rule's layer selects."""

    name: str
    layer: object
    matched_files: tuple[str, ...] = ()
    truncated: bool = False
    total_files: int = 0
    error: str | None = None


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class RuleEngine:
    """Validates rules against a :class:`ComponentGraph`.

    One engine serves one validation run; its pattern cache is not shared
    across threads.
    """

    def __init__(self, pattern_cache: PatternCache | None = None) -> None:
        self.pattern_cache = pattern_cache if pattern_cache is not None else PatternCache()

    def get_matcher(self, pattern: str, options: dict[str, object] | None = None) -> Matcher:
        return self.pattern_cache.get_matcher(
            pattern, options if options is not None else {"dot": True}, context="layer pattern"
        )

    def compile_layer_patterns(self, rule: Rule) -> list[Matcher]:
        """Compile every layer pattern of *rule*; raises on invalid or insecure patterns."""
        return [self.get_matcher(layer, {"dot": True}) for layer in rule.layers]  # type: ignore[arg-type]

    def validate(self, rules: Sequence[Rule], graph: ComponentGraph) -> ValidationResults:
        """Run every rule over the files in its layer.

        Failures are isolated: a bad layer pattern fails only its rule, and an
        exception while checking one file becomes a violation for that file.
        Only a malformed *rules* or *graph* argument raises.
        """
        if not isinstance(rules, (list, tuple)):
            msg = "rules must be a list"
            raise TypeError(msg)
        if not isinstance(graph, ComponentGraph):
            msg = "graph must be a ComponentGraph"
            raise TypeError(msg)

        results = ValidationResults(summary=ValidationSummary(total=len(rules)))
        seen_names: set[str] = set()

        for rule in rules:
            result = self._run_rule(rule, graph, seen_names)
            if result.status == STATUS_FAILED:
                results.summary.failed += 1
            elif result.status == STATUS_PASSED:
                results.summary.passed += 1
            results.summary.violations += len(result.violations)
            results.rules.append(result)

        return results

    def _run_rule(self, rule: Rule, graph: ComponentGraph, seen_names: set[str]) -> RuleResult:
        name = rule.name
        result = RuleResult(name=name, description=rule.description)

        # Compare full names; the display name is truncated.
        full_name = getattr(rule.config, "name", None)
        key = full_name if isinstance(full_name, str) else name
        if key in seen_names:
            result.violations.append(
                Violation(
                    rule_name=name,
                    message=f'Duplicate rule name "{name}"',
                    suggestion="Give each rule a unique name",
                )
            )
        seen_names.add(key)

        try:
            matchers = self.compile_layer_patterns(rule)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Rule %r setup failed", name, exc_info=True)
            result.violations.append(
                Violation(
                    rule_name=name,
                    message=f"Rule setup failed: {exc}",
                    suggestion="Fix the layer pattern in the rule configuration",
                )
            )
            result.status = STATUS_FAILED
            return result

        files = graph.get_files_in_layer(matchers)
        result.files_checked = len(files)

        if not files and not result.violations:
            result.status = STATUS_SKIPPED
            result.message = SKIPPED_MESSAGE
            return result

        for file in files:
            try:
                violations = rule.validate(file, graph)
            except Exception as exc:  # noqa: BLE001
                logger.debug("Rule %r failed on %s", name, file.file_path, exc_info=True)
                result.violations.append(
                    Violation(
                        rule_name=name,
                        file=file.file_path,
                        message=f"Rule validation failed: {exc}",
                    )
                )
                continue
            if violations:
                result.violations.extend(violations)

        result.status = STATUS_FAILED if result.violations else STATUS_PASSED
        return result

    def preview_matches(self, rules: Sequence[Rule], graph: ComponentGraph) -> list[RulePreview]:
        """Return which files each rule's layer selects, without validating them."""
        previews: list[RulePreview] = []
        for rule in rules:
            try:
                matchers = self.compile_layer_patterns(rule)
            except Exception as exc:  # noqa: BLE001
                previews.append(RulePreview(name=rule.name, layer=rule.layer, error=str(exc)))
                continue

            matched = [c.file_path for c in graph.get_files_in_layer(matchers)]
            previews.append(
                RulePreview(
                    name=rule.name,
                    layer=rule.layer,
                    matched_files=tuple(matched[:MAX_PREVIEW_FILES]),
                    truncated=len(matched) > MAX_PREVIEW_FILES,
                    total_files=len(matched),
                )
            )
        return previews
