"""Mermaid diagram renderers for a component graph."""

from __future__ import annotations

import base64
import hashlib
import json
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from archgate.graph.component_graph import Component, ComponentGraph

DIAGRAM_TYPES: tuple[str, ...] = ("architecture", "sequence", "dependency", "class", "flow")
THEMES: tuple[str, ...] = ("default", "dark", "forest", "neutral")

MAX_SEQUENCE_PARTICIPANTS = 6
MAX_CLASS_NODES = 20
MAX_CLASS_EDGES_PER_NODE = 3
MAX_FLOW_STEPS = 8

# Above these sizes a diagram is saved to a file instead of linked.
MAX_PREVIEW_CODE_LENGTH = 5000
MAX_PREVIEW_URL_LENGTH = 8000
PREVIEW_URL_PREFIX = "https://mermaid.live/edit#base64:"

# Characters that are invalid in Mermaid identifiers
_SANITIZE_RE = re.compile(r"[^a-zA-Z0-9_]")
_LABEL_ESCAPES = str.maketrans(
    {
        '"': '\\"',
        "[": "\\[",
        "]": "\\]",
        "(": "\\(",
        ")": "\\)",
        "#": "\\#",
        "<": "\\<",
        ">": "\\>",
    }
)

_ENTRY_STYLE = "fill:#4f46e5,color:#fff"
_EXTERNAL_STYLE = "fill:#f59e0b,color:#fff"


# ---------------------------------------------------------------------------
# Identifiers and labels
# ---------------------------------------------------------------------------


def sanitize_id(name: str) -> str:
    """Turn *name* into a Mermaid node id.

    Invalid characters become underscores and a short hash of the original
    name is appended, so ``a-b`` and ``a_b`` never share an id.
    """
    base = _SANITIZE_RE.sub("_", name)
    if base[:1].isdigit():
        base = f"_{base}"
    digest = hashlib.md5(name.encode("utf-8"), usedforsecurity=False).hexdigest()[:6]
    return f"{base}_{digest}"


def escape_label(text: str | None) -> str:
    """Backslash-escape characters that would break a quoted Mermaid label."""
    if not text:
        return ""
    return text.translate(_LABEL_ESCAPES)


def _label(component: Component) -> str:
    return escape_label(component.original_name or component.name)


def _focus(graph: ComponentGraph, focus: str | None) -> list[Component]:
    if not focus:
        return list(graph.components)
    needle = focus.replace("\\", "/")
    return [c for c in graph.components if needle in c.file_path or needle in c.name]


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------


def render_architecture(
    graph: ComponentGraph,
    *,
    focus: str | None = None,
    entry_points: Sequence[str] = (),
) -> str:
    """Render components grouped into one subgraph per directory.

    Services use the subroutine shape and entry points are highlighted.
    Edges are drawn only between components inside the focus.
    """
    lines = ["graph TD"]
    comps = _focus(graph, focus)
    if not comps:
        suffix = f" for focus: {escape_label(focus)}" if focus else ""
        lines.append(f'  Note["No components found{suffix}"]')
        return "\n".join(lines)

    by_dir: dict[str, list[Component]] = {}
    for c in comps:
        by_dir.setdefault(c.directory or "root", []).append(c)

    for directory, items in by_dir.items():
        lines.append(f'  subgraph {sanitize_id(directory)}["{escape_label(directory)}"]')
        for c in items:
            if c.type == "service":
                lines.append(f'    {sanitize_id(c.name)}[["{_label(c)}"]]')
            else:
                lines.append(f'    {sanitize_id(c.name)}["{_label(c)}"]')
        lines.append("  end")

    names = {c.name for c in comps}
    for c in comps:
        for dep in c.dependencies:
            if dep in names:
                lines.append(f"  {sanitize_id(c.name)} --> {sanitize_id(dep)}")

    styled: set[str] = set()
    for entry in entry_points:
        match = graph.get_component_by_path(entry)
        if match is not None and match.name in names and match.name not in styled:
            lines.append(f"  style {sanitize_id(match.name)} {_ENTRY_STYLE}")
            styled.add(match.name)

    return "\n".join(lines)


def _package_of(import_path: str) -> str:
    parts = import_path.split("/")
    if import_path.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2])
    return parts[0]


def render_dependency(graph: ComponentGraph, *, focus: str | None = None) -> str:
    """Render local dependencies plus the external packages each component imports."""
    lines = ["graph LR"]
    comps = _focus(graph, focus)
    if not comps:
        lines.append('  Note["No components found"]')
        return "\n".join(lines)

    names = {c.name for c in comps}
    external: list[str] = []
    seen: set[str] = set()

    def _edge(line: str) -> None:
        if line not in seen:
            seen.add(line)
            lines.append(line)

    for c in comps:
        for imp in c.imports:
            if imp.path.startswith("."):
                continue
            pkg = _package_of(imp.path)
            if not pkg:
                continue
            if pkg not in external:
                external.append(pkg)
            _edge(f'  {sanitize_id(pkg)}["{escape_label(pkg)}"] --> {sanitize_id(c.name)}')
        for dep in c.dependencies:
            if dep in names:
                _edge(f"  {sanitize_id(c.name)} --> {sanitize_id(dep)}")

    for pkg in external:
        lines.append(f"  style {sanitize_id(pkg)} {_EXTERNAL_STYLE}")
    return "\n".join(lines)


def render_sequence(graph: ComponentGraph) -> str:
    lines = ["sequenceDiagram"]
    services = [
        c for c in graph.components if c.type == "service" or (c.original_name or c.name) == "index"
    ][:MAX_SEQUENCE_PARTICIPANTS]
    if not services:
        lines.append("  Note over User,App: No services detected")
        return "\n".join(lines)

    ids = [sanitize_id(c.name) for c in services]
    for participant, c in zip(ids, services):
        lines.append(f"  participant {participant} as {_label(c)}")
    for caller, callee in zip(ids, ids[1:]):
        lines.append(f"  {caller}->>{callee}: calls")
    return "\n".join(lines)


def render_class(graph: ComponentGraph) -> str:
    lines = ["classDiagram"]
    classes = [c for c in graph.components if c.type in ("class", "component")][:MAX_CLASS_NODES]
    if not classes:
        lines.append('  note "No classes found"')
        return "\n".join(lines)

    for c in classes:
        lines.append(f"  class {sanitize_id(c.name)} {{")
        lines.append(f"    +{escape_label(c.file_path)}")
        lines.append("  }")

    names = {c.name for c in classes}
    for c in classes:
        for dep in c.dependencies[:MAX_CLASS_EDGES_PER_NODE]:
            if dep in names:
                lines.append(f"  {sanitize_id(c.name)} --> {sanitize_id(dep)}")
    return "\n".join(lines)


def render_flow(graph: ComponentGraph) -> str:
    lines = ["flowchart TD", '  Start(["Start"])']
    prev = "Start"
    for c in graph.components[:MAX_FLOW_STEPS]:
        node = sanitize_id(c.name)
        lines.append(f'  {node}["{_label(c)}"]')
        lines.append(f"  {prev} --> {node}")
        prev = node
    lines.append('  End(["End"])')
    lines.append(f"  {prev} --> End")
    return "\n".join(lines)


def render(
    graph: ComponentGraph,
    kind: str = "architecture",
    *,
    focus: str | None = None,
    entry_points: Sequence[str] = (),
) -> str:
    """Render *graph* as the Mermaid diagram named by *kind*.

    *focus* narrows the architecture and dependency diagrams to components
    whose path or name contains it.  Raises ``ValueError`` for an unknown kind.
    """
    if kind == "architecture":
        return render_architecture(graph, focus=focus, entry_points=entry_points)
    if kind == "dependency":
        return render_dependency(graph, focus=focus)
    if kind == "sequence":
        return render_sequence(graph)
    if kind == "class":
        return render_class(graph)
    if kind == "flow":
        return render_flow(graph)
    msg = f"Unknown diagram type: {kind!r} (expected one of {', '.join(DIAGRAM_TYPES)})"
    raise ValueError(msg)


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def with_theme(code: str, theme: str = "default") -> str:
    """Prefix *code* with a Mermaid init directive for non-default themes."""
    theme = theme.lower()
    if theme not in THEMES:
        msg = f"Unknown theme: {theme!r} (expected one of {', '.join(THEMES)})"
        raise ValueError(msg)
    if theme == "default":
        return code
    return f"%%{{init: {{'theme': '{theme}'}}}}%%\n{code}"


def preview_url(code: str) -> str | None:
    """Return a mermaid.live link for *code*, or ``None`` when it is too large to link."""
    if len(code) > MAX_PREVIEW_CODE_LENGTH:
        return None
    payload = json.dumps({"code": code}).encode("utf-8")
    encoded = base64.urlsafe_b64encode(payload).decode("ascii").rstrip("=")
    url = PREVIEW_URL_PREFIX + encoded
    if len(url) > MAX_PREVIEW_URL_LENGTH:
        return None
    return url
