"""Report formatters for validation results: console text, JSON, and JUnit XML."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from xml.sax.saxutils import escape, quoteattr

from archgate.rules.engine import SKIPPED_MESSAGE, STATUS_FAILED, STATUS_PASSED, STATUS_SKIPPED

if TYPE_CHECKING:
    from archgate.rules.base import Violation
    from archgate.rules.engine import ValidationResults

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS = 0
EXIT_VALIDATION_FAILED = 1
EXIT_CONFIG_ERROR = 2

OUTPUT_VERSION = "1.0.0"

_UNICODE_ICONS: dict[str, str] = {
    "success": "✓",
    "error": "✗",
    "warning": "!",
    "skipped": "↷",
    "arrow": "→",
}
_ASCII_ICONS: dict[str, str] = {
    "success": "[OK]",
    "error": "[FAIL]",
    "warning": "[WARN]",
    "skipped": "[SKIP]",
    "arrow": "->",
}


def exit_code_for(results: ValidationResults) -> int:
    return EXIT_VALIDATION_FAILED if results.has_failures else EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Console
# ---------------------------------------------------------------------------


def _group_by_file(violations: list[Violation]) -> dict[str, list[Violation]]:
    grouped: dict[str, list[Violation]] = {}
    for v in violations:
        grouped.setdefault(v.file or "(rule)", []).append(v)
    return grouped


def format_console(
    results: ValidationResults,
    *,
    verbose: bool = False,
    plain: bool = False,
    elapsed_s: float = 0.0,
) -> str:
    """Format results as human-readable text.

    Example output::

        ✓ API contract (3 files)

        ✗ Domain isolation (2 files)
           src/domain/User.ts
              → Forbidden import: "../ui/Button" matches "src/ui":4
                Remove this import or add to allowed list

        ✗ 1 of 2 rules failed (1 violations)

    With *plain* set, ASCII icons replace the Unicode ones.
    """
    icons = _ASCII_ICONS if plain else _UNICODE_ICONS
    lines: list[str] = []

    for rule in results.rules:
        if rule.status == STATUS_PASSED:
            icon = icons["success"]
        elif rule.status == STATUS_SKIPPED:
            icon = icons["skipped"]
        else:
            icon = icons["error"]
        lines.append(f"{icon} {rule.name} ({rule.files_checked} files)")

        if verbose and rule.description:
            lines.append(f"   {rule.description}")

        for file, violations in _group_by_file(rule.violations).items():
            lines.append(f"   {file}")
            for v in violations:
                loc = f":{v.line}" if v.line is not None else ""
                lines.append(f"      {icons['arrow']} {v.message}{loc}")
                if v.suggestion:
                    lines.append(f"        {v.suggestion}")

        if rule.status == STATUS_SKIPPED and rule.message:
            lines.append(f"   {icons['warning']} {rule.message}")
        lines.append("")

    summary = results.summary
    if results.has_failures:
        lines.append(
            f"{icons['error']} {summary.failed} of {summary.total} rules failed "
            f"({summary.violations} violations)"
        )
    elif summary.passed == summary.total:
        lines.append(f"{icons['success']} All {summary.total} rules passed")
    else:
        lines.append(f"{icons['warning']} {summary.passed} passed, {summary.skipped} skipped")

    if verbose:
        lines.append("")
        lines.append(f"Duration: {elapsed_s:.3f}s")

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def format_json(results: ValidationResults, *, elapsed_s: float = 0.0) -> str:
    """Format results as a versioned JSON document with summary and per-rule detail."""
    summary = results.summary
    output: dict[str, object] = {
        "version": OUTPUT_VERSION,
        "summary": {
            "total": summary.total,
            "passed": summary.passed,
            "failed": summary.failed,
            "skipped": summary.skipped,
            "violations": summary.violations,
            "duration": round(max(0.0, elapsed_s), 3),
            "exitCode": exit_code_for(results),
        },
        "rules": [rule.to_dict() for rule in results.rules],
    }
    return json.dumps(output, indent=2)


# ---------------------------------------------------------------------------
# JUnit
# ---------------------------------------------------------------------------


def _xml_text(value: str) -> str:
    return escape(value, {'"': "&quot;", "'": "&apos;"})


def _failure_text(violations: list[Violation]) -> str:
    blocks: list[str] = []
    for v in violations:
        loc = f"File: {v.file or '(rule)'}"
        if v.line is not None:
            loc += f":{v.line}"
        block = f"{loc}\nMessage: {v.message}"
        if v.suggestion:
            block += f"\nSuggestion: {v.suggestion}"
        blocks.append(block)
    return "\n\n".join(blocks)


def format_junit(
    results: ValidationResults,
    *,
    elapsed_s: float = 0.0,
    timestamp: datetime | None = None,
) -> str:
    """Format results as JUnit XML: one ``<testcase>`` per rule."""
    summary = results.summary
    stamp = (timestamp or datetime.now(tz=timezone.utc)).isoformat()
    duration = f"{max(0.0, elapsed_s):.3f}"

    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<testsuites name="Architecture" tests="{summary.total}" failures="{summary.failed}" '
        f'skipped="{summary.skipped}" time="{duration}">',
        f'  <testsuite name="Architecture Validation" tests="{summary.total}" '
        f'failures="{summary.failed}" errors="0" skipped="{summary.skipped}" '
        f"time=\"{duration}\" timestamp={quoteattr(stamp)}>",
    ]

    for rule in results.rules:
        name = quoteattr(rule.name)
        if rule.status == STATUS_FAILED:
            lines.append(f'    <testcase name={name} time="0">')
            lines.append(
                f'      <failure message="{len(rule.violations)} violation(s)" '
                'type="ArchitectureViolation">'
            )
            lines.append(_xml_text(_failure_text(rule.violations)))
            lines.append("      </failure>")
            lines.append("    </testcase>")
        elif rule.status == STATUS_SKIPPED:
            lines.append(f'    <testcase name={name} time="0">')
            lines.append(f"      <skipped message={quoteattr(rule.message or SKIPPED_MESSAGE)}/>")
            lines.append("    </testcase>")
        else:
            lines.append(f'    <testcase name={name} time="0"/>')

    lines.append("  </testsuite>")
    lines.append("</testsuites>")
    return "\n".join(lines) + "\n"
