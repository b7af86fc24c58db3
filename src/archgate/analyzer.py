"""Source analyzer: discover files, extract imports, and resolve local dependencies."""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import Path

from archgate.graph.component_graph import MAX_COMPONENTS, Component, ImportRef
from archgate.rules.patterns import compile_glob

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_PATTERNS: tuple[str, ...] = (
    "**/*.ts",
    "**/*.tsx",
    "**/*.js",
    "**/*.jsx",
    "**/*.py",
    "**/*.go",
    "**/*.rs",
)
DEFAULT_EXCLUDE: tuple[str, ...] = (
    "node_modules/**",
    ".git/**",
    "dist/**",
    "build/**",
    "**/*.test.*",
    "**/*.spec.*",
)
DEFAULT_MAX_FILES: int = 100

_LANGUAGE_BY_EXT: dict[str, str] = {
    ".ts": "typescript",
    ".tsx": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".py": "python",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".rb": "ruby",
    ".php": "php",
}

# Candidate suffixes tried when resolving a relative JS/TS import.
_JS_RESOLVE_SUFFIXES: tuple[str, ...] = (
    "",
    ".ts",
    ".tsx",
    ".js",
    ".jsx",
    ".mjs",
    ".mts",
    "/index.ts",
    "/index.tsx",
    "/index.js",
    "/index.jsx",
    "/index.mjs",
    "/index.mts",
)
_PY_RESOLVE_SUFFIXES: tuple[str, ...] = (".py", "/__init__.py")

_ENTRY_POINT_RE = re.compile(r"/(index|main|app|server)\.(ts|js|tsx|jsx|mts|mjs|py|go|rs)$", re.I)

_JS_IMPORT_RES: tuple[re.Pattern[str], ...] = (
    re.compile(r"""import\s+(?:(?:\{[^}]*\}|\*\s+as\s+\w+|\w+)\s+from\s+)?["']([^"']+)["']"""),
    re.compile(r"""require\s*\(\s*["']([^"']+)["']\s*\)"""),
    re.compile(r"""import\s*\(\s*["']([^"']+)["']\s*\)"""),
)
_PY_IMPORT_RE = re.compile(r"^[ \t]*(?:from[ \t]+([\w.]+)[ \t]+import|import[ \t]+([\w.]+))", re.M)
_GO_IMPORT_RE = re.compile(r"""import\s+(?:\(\s*)?["']([^"']+)["']""")


@dataclass
class AnalysisResult:
    """Components discovered under a root directory."""

    root_path: str
    components: list[Component] = field(default_factory=list)
    entry_points: list[str] = field(default_factory=list)
    languages: dict[str, int] = field(default_factory=dict)
    directories: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "rootPath": self.root_path,
            "components": [c.to_dict() for c in self.components],
            "entryPoints": list(self.entry_points),
            "languages": dict(self.languages),
            "directories": list(self.directories),
        }


# ---------------------------------------------------------------------------
# Heuristics
# ---------------------------------------------------------------------------


def detect_language(file_path: str) -> str:
    return _LANGUAGE_BY_EXT.get(Path(file_path).suffix.lower(), "unknown")


def infer_type(file_path: str, content: str) -> str:
    """Guess a coarse component type from the file name and content."""
    base = Path(file_path).name.lower()
    if "service" in base:
        return "service"
    if "component" in base or base.endswith((".tsx", ".jsx")):
        return "component"
    if "class " in content and "extends" in content:
        return "class"
    if "export default function" in content or "export function" in content:
        return "function"
    if "module.exports" in content or "export " in content:
        return "module"
    return "file"


def _line_of(content: str, offset: int) -> int:
    return content.count("\n", 0, offset) + 1


def extract_imports(content: str, language: str) -> list[ImportRef]:
    """Extract import paths with 1-based line numbers, in source order."""
    found: list[tuple[int, str]] = []
    if language in ("typescript", "javascript"):
        for regex in _JS_IMPORT_RES:
            found.extend((m.start(1), m.group(1)) for m in regex.finditer(content))
    elif language == "python":
        for m in _PY_IMPORT_RE.finditer(content):
            group = 1 if m.group(1) is not None else 2
            found.append((m.start(group), m.group(group)))
    elif language == "go":
        found.extend((m.start(1), m.group(1)) for m in _GO_IMPORT_RE.finditer(content))

    found.sort()
    return [ImportRef(path=path, line=_line_of(content, pos)) for pos, path in found]


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _clamp_max_files(max_files: object) -> int:
    try:
        value = int(max_files)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return DEFAULT_MAX_FILES
    if value < 1 or value > MAX_COMPONENTS:
        return DEFAULT_MAX_FILES
    return value


def discover_files(
    root: Path,
    patterns: tuple[str, ...] | list[str] = DEFAULT_PATTERNS,
    exclude: tuple[str, ...] | list[str] = DEFAULT_EXCLUDE,
) -> list[Path]:
    """Return sorted, de-duplicated files under *root* matching *patterns* minus *exclude*."""
    excluded = [compile_glob(p.strip()) for p in exclude if p and p.strip()]
    files: set[Path] = set()

    for pattern in patterns:
        if not pattern or not pattern.strip():
            continue
        try:
            matches = list(root.glob(pattern.strip()))
        except (ValueError, NotImplementedError):
            logger.warning("Invalid pattern: %s", pattern)
            continue
        for path in matches:
            if not path.is_file():
                continue
            rel = path.relative_to(root).as_posix()
            if any(matcher(rel) for matcher in excluded):
                continue
            files.add(path)

    return sorted(files)


def _resolve_js(source_path: str, import_path: str, known: dict[str, str]) -> str | None:
    base = posixpath.normpath(posixpath.join(posixpath.dirname(source_path), import_path))
    for suffix in _JS_RESOLVE_SUFFIXES:
        name = known.get(base + suffix)
        if name is not None:
            return name
    return None


def _resolve_python(source_path: str, import_path: str, known: dict[str, str]) -> str | None:
    stripped = import_path.lstrip(".")
    levels = len(import_path) - len(stripped)
    base_dir = posixpath.dirname(source_path)
    for _ in range(levels - 1):
        base_dir = posixpath.dirname(base_dir)
    if not stripped:
        return known.get(posixpath.normpath(posixpath.join(base_dir, "__init__.py")))
    base = posixpath.normpath(posixpath.join(base_dir, stripped.replace(".", "/")))
    for suffix in _PY_RESOLVE_SUFFIXES:
        name = known.get(base + suffix)
        if name is not None:
            return name
    return None


def analyze(
    root: Path,
    patterns: tuple[str, ...] | list[str] | None = None,
    exclude: tuple[str, ...] | list[str] | None = None,
    max_files: object = DEFAULT_MAX_FILES,
) -> AnalysisResult:
    """Analyze source files under *root* into components with resolved local dependencies.

    Only relative imports are resolved to other components; package imports
    stay in ``imports`` but never appear in ``dependencies``.
    """
    limit = _clamp_max_files(max_files)
    files = discover_files(
        root,
        patterns if patterns else DEFAULT_PATTERNS,
        exclude if exclude is not None else DEFAULT_EXCLUDE,
    )[:limit]

    result = AnalysisResult(root_path=str(root))
    directories: set[str] = set()
    seen_names: set[str] = set()
    drafts: list[tuple[Component, str]] = []

    for file in files:
        try:
            content = file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            logger.debug("Skipped %s: unreadable", file)
            continue

        language = detect_language(file.name)
        rel = file.relative_to(root).as_posix()
        directory = posixpath.dirname(rel) or "."
        if directory == ".":
            rel = "./" + rel
        else:
            directories.add(directory)

        result.languages[language] = result.languages.get(language, 0) + 1
        if _ENTRY_POINT_RE.search(rel):
            result.entry_points.append(rel)

        base_name = file.stem
        unique_name = base_name
        counter = 1
        while unique_name in seen_names:
            unique_name = f"{base_name}_{counter}"
            counter += 1
        seen_names.add(unique_name)

        component = Component(
            name=unique_name,
            original_name=base_name,
            file_path=rel,
            directory=directory,
            type=infer_type(rel, content),
            imports=tuple(extract_imports(content, language)),
        )
        drafts.append((component, language))

    known = {posixpath.normpath(c.file_path): c.name for c, _ in drafts}
    for component, language in drafts:
        source = posixpath.normpath(component.file_path)
        deps: list[str] = []
        for imp in component.imports:
            if not imp.path.startswith("."):
                continue
            if language == "python":
                dep = _resolve_python(source, imp.path, known)
            else:
                dep = _resolve_js(source, imp.path, known)
            if dep is not None:
                deps.append(dep)
        result.components.append(
            Component(
                name=component.name,
                original_name=component.original_name,
                file_path=component.file_path,
                directory=component.directory,
                type=component.type,
                imports=component.imports,
                dependencies=tuple(deps),
            )
        )

    result.directories = sorted(directories)
    logger.debug("Analyzed %d files under %s", len(result.components), root)
    return result
