"""Layer and constraint patterns: security validation, glob compilation, and caching."""

from __future__ import annotations

import json
import logging
import posixpath
import re
from fnmatch import fnmatchcase
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    Matcher = Callable[[str], bool]

logger = logging.getLogger(__name__)

MAX_PATTERN_CACHE: int = 5000

_GLOB_CHARS = frozenset("*?[")
_DRIVE_RE = re.compile(r"^[A-Za-z]:(/|$)")


class InvalidPatternError(ValueError):
    """Raised when a pattern is empty, malformed, or escapes the project root."""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_pattern(pattern: object, context: str = "pattern") -> str:
    """Reject patterns that are empty, contain NUL, traverse upward, or are absolute.

    Returns the pattern unchanged when it is acceptable.
    """
    if not isinstance(pattern, str) or not pattern.strip():
        msg = f"Invalid {context}: must be a non-empty string"
        raise InvalidPatternError(msg)
    if "\x00" in pattern:
        msg = f"Invalid {context}: null bytes not allowed"
        raise InvalidPatternError(msg)

    slashed = pattern.replace("\\", "/")
    normalized = posixpath.normpath(slashed)
    if normalized == ".." or normalized.startswith("../"):
        msg = f"Invalid {context}: directory traversal not allowed ({pattern!r})"
        raise InvalidPatternError(msg)
    if normalized.startswith("/") or _DRIVE_RE.match(slashed):
        msg = f"Invalid {context}: absolute paths not allowed ({pattern!r})"
        raise InvalidPatternError(msg)
    return pattern


# ---------------------------------------------------------------------------
# Glob compilation
# ---------------------------------------------------------------------------


def has_glob(pattern: str) -> bool:
    return any(ch in _GLOB_CHARS for ch in pattern)


def _normalize_path(path: str) -> str:
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def _segment_matches(segment: str, name: str, *, dot: bool) -> bool:
    if not dot and name.startswith(".") and not segment.startswith("."):
        return False
    return fnmatchcase(name, segment)


def _match_segments(pattern_parts: list[str], path_parts: list[str], *, dot: bool) -> bool:
    """Match path segments against pattern segments where ``**`` spans any depth."""
    n = len(pattern_parts)
    m = len(path_parts)
    reach = [[False] * (m + 1) for _ in range(n + 1)]
    reach[0][0] = True

    for i, segment in enumerate(pattern_parts):
        for j in range(m + 1):
            if not reach[i][j]:
                continue
            if segment == "**":
                reach[i + 1][j] = True
                k = j
                while k < m and (dot or not path_parts[k].startswith(".")):
                    k += 1
                    reach[i + 1][k] = True
            elif j < m and _segment_matches(segment, path_parts[j], dot=dot):
                reach[i + 1][j + 1] = True

    return reach[n][m]


def compile_glob(pattern: str, *, dot: bool = True) -> Matcher:
    """Compile *pattern* into a path matcher.

    ``*``, ``?`` and ``[...]`` match within a single path segment, ``**``
    matches any number of segments.  With *dot* set, wildcards also match
    dot-prefixed names.  A pattern without wildcards matches that path and
    everything beneath it (``src/ui`` matches ``src/ui/Button.ts`` but not
    ``src/ui-core/x.ts``).
    """
    normalized = _normalize_path(pattern).rstrip("/")

    if not has_glob(normalized):

        def _directory_matcher(path: str) -> bool:
            candidate = _normalize_path(path)
            return candidate == normalized or candidate.startswith(normalized + "/")

        return _directory_matcher

    pattern_parts = normalized.split("/")

    def _glob_matcher(path: str) -> bool:
        candidate = _normalize_path(path).rstrip("/")
        return _match_segments(pattern_parts, candidate.split("/"), dot=dot)

    return _glob_matcher


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


def _options_key(options: Mapping[str, object] | None) -> str:
    try:
        return json.dumps(dict(options or {}), sort_keys=True)
    except (TypeError, ValueError):
        return str(options)


class PatternCache:
    """Bounded cache of compiled matchers keyed by pattern and options.

    When an insert would exceed *max_entries* the whole cache is dropped;
    no individual entry is guaranteed to survive past that point.
    """

    def __init__(self, max_entries: int = MAX_PATTERN_CACHE) -> None:
        self.max_entries = max_entries
        self._matchers: dict[str, Matcher] = {}

    def get_matcher(
        self,
        pattern: str,
        options: Mapping[str, object] | None = None,
        *,
        context: str = "pattern",
    ) -> Matcher:
        """Validate, compile, and cache *pattern*.

        Raises :class:`InvalidPatternError` for rejected patterns, which are
        never cached.
        """
        validate_pattern(pattern, context)
        key = f"{pattern}::{_options_key(options)}"
        cached = self._matchers.get(key)
        if cached is not None:
            return cached

        dot = bool((options or {}).get("dot", True))
        matcher = compile_glob(pattern, dot=dot)

        if len(self._matchers) >= self.max_entries:
            logger.warning("Pattern cache exceeded %d entries, clearing", self.max_entries)
            self._matchers.clear()
        self._matchers[key] = matcher
        return matcher

    def clear(self) -> None:
        self._matchers.clear()

    def __len__(self) -> int:
        return len(self._matchers)

    def __contains__(self, key: object) -> bool:
        return key in self._matchers
