"""Component graph: indexed, read-only view over analyzed source files."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAX_COMPONENTS: int = 10_000
MAX_CYCLE_DEPTH: int = 1000

_UNVISITED = 0
_VISITING = 1
_DONE = 2

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImportRef:
    """A single import statement found in a source file."""

    path: str
    line: int | None = None  # 1-based


@dataclass(frozen=True)
class Component:
    """One analyzed source file."""

    name: str
    file_path: str
    directory: str = ""
    type: str = "file"
    original_name: str = ""
    imports: tuple[ImportRef, ...] = ()
    dependencies: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> Component:
        """Build a component from a loosely-shaped record.

        Accepts both ``filePath`` and ``file_path`` spellings.  Imports may be
        plain strings or ``{path, line}`` mappings; entries without a string
        path are dropped.  Non-string scalar fields degrade to empty strings
        instead of raising.
        """
        name = data.get("name")
        file_path = data.get("filePath", data.get("file_path"))
        directory = data.get("directory", "")
        kind = data.get("type", "file")
        original = data.get("originalName", data.get("original_name", ""))

        imports: list[ImportRef] = []
        raw_imports = data.get("imports")
        if isinstance(raw_imports, (list, tuple)):
            for item in raw_imports:
                if isinstance(item, str):
                    imports.append(ImportRef(path=item))
                elif isinstance(item, Mapping) and isinstance(item.get("path"), str):
                    line = item.get("line")
                    valid_line = line if isinstance(line, int) and line > 0 else None
                    imports.append(ImportRef(path=str(item["path"]), line=valid_line))

        deps_raw = data.get("dependencies")
        dependencies: tuple[str, ...] = ()
        if isinstance(deps_raw, (list, tuple)):
            dependencies = tuple(d for d in deps_raw if isinstance(d, str) and d)

        return cls(
            name=name if isinstance(name, str) else "",
            file_path=file_path if isinstance(file_path, str) else "",
            directory=directory if isinstance(directory, str) else "",
            type=kind if isinstance(kind, str) else "file",
            original_name=original if isinstance(original, str) else "",
            imports=tuple(imports),
            dependencies=dependencies,
        )

    def to_dict(self) -> dict[str, object]:
        """Return the camelCase record shape used in JSON output."""
        return {
            "name": self.name,
            "originalName": self.original_name or self.name,
            "filePath": self.file_path,
            "directory": self.directory,
            "type": self.type,
            "imports": [
                {"path": imp.path, "line": imp.line} if imp.line is not None else {"path": imp.path}
                for imp in self.imports
            ],
            "dependencies": list(self.dependencies),
        }


@dataclass
class _Frame:
    """DFS stack frame: a node, its dependency names, and the next index to visit."""

    name: str
    deps: list[str]
    cursor: int = 0


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


def _coerce_components(raw: object) -> list[Component]:
    if not isinstance(raw, (list, tuple)):
        return []
    components: list[Component] = []
    for item in raw:
        if isinstance(item, Component):
            components.append(item)
        elif isinstance(item, Mapping):
            components.append(Component.from_mapping(item))
        else:
            logger.debug("Dropping malformed component entry: %r", item)
    return components


class ComponentGraph:
    """Indexed snapshot of a component list.

    The indexes (by name, by file path, and reverse dependencies) are built
    once at construction.  To work with a different component set, build a
    new graph.
    """

    def __init__(self, analysis: object) -> None:
        """Index *analysis*: an analyzer result, a ``{"components": [...]}``
        mapping, or a bare sequence of components.

        Raises ``TypeError`` when *analysis* is not a record-like object.
        """
        if analysis is None or isinstance(analysis, (str, bytes, int, float, bool)):
            msg = "analysis must be an object with a 'components' list"
            raise TypeError(msg)

        root_path: object = ""
        languages: object = {}
        directories: object = []
        if isinstance(analysis, (list, tuple)):
            raw_components: object = analysis
        elif isinstance(analysis, Mapping):
            raw_components = analysis.get("components")
            root_path = analysis.get("rootPath", analysis.get("root_path", ""))
            languages = analysis.get("languages", {})
            directories = analysis.get("directories", [])
        elif hasattr(analysis, "components"):
            raw_components = getattr(analysis, "components", None)
            root_path = getattr(analysis, "root_path", "")
            languages = getattr(analysis, "languages", {})
            directories = getattr(analysis, "directories", [])
        else:
            msg = "analysis must be an object with a 'components' list"
            raise TypeError(msg)

        components = _coerce_components(raw_components)
        if len(components) > MAX_COMPONENTS:
            logger.warning(
                "Limiting to %d components (received %d)", MAX_COMPONENTS, len(components)
            )
            components = components[:MAX_COMPONENTS]

        self.components = components
        self.root_path = str(root_path) if root_path else ""
        self.languages = dict(languages) if isinstance(languages, Mapping) else {}
        self.directories = list(directories) if isinstance(directories, (list, tuple)) else []

        self._build_indexes()

    def _build_indexes(self) -> None:
        self._by_name: dict[str, Component] = {}
        self._by_path: dict[str, Component] = {}
        self._dependents: dict[str, list[str]] = {}

        for component in self.components:
            if component.name:
                if component.name in self._by_name:
                    logger.warning("Duplicate component name %r", component.name)
                else:
                    self._by_name[component.name] = component
                self._dependents.setdefault(component.name, [])
            if component.file_path:
                self._by_path[component.file_path] = component

        for component in self.components:
            for dep_name in component.dependencies:
                dependents = self._dependents.setdefault(dep_name, [])
                if component.name not in dependents:
                    dependents.append(component.name)

    # -- lookups -------------------------------------------------------------

    def get_component(self, name: str) -> Component | None:
        return self._by_name.get(name)

    def get_component_by_path(self, file_path: str) -> Component | None:
        return self._by_path.get(file_path)

    def get_dependencies(self, name: str) -> list[Component]:
        """Return resolved dependency components; unknown names are dropped."""
        component = self._by_name.get(name)
        if component is None:
            return []
        return [self._by_name[dep] for dep in component.dependencies if dep in self._by_name]

    def get_dependents(self, name: str) -> list[Component]:
        """Return components whose ``dependencies`` list names *name*."""
        return [
            self._by_name[dep_name]
            for dep_name in self._dependents.get(name, [])
            if dep_name in self._by_name
        ]

    def get_files_in_layer(self, matchers: Sequence[Callable[[str], bool]]) -> list[Component]:
        """Return components whose file path matches any of *matchers*."""
        if not isinstance(matchers, (list, tuple)):
            return []

        def _in_layer(component: Component) -> bool:
            if not isinstance(component.file_path, str) or not component.file_path:
                return False
            for matcher in matchers:
                try:
                    if matcher(component.file_path):
                        return True
                except Exception:  # noqa: BLE001
                    logger.debug("Matcher raised for %s", component.file_path, exc_info=True)
            return False

        return [c for c in self.components if _in_layer(c)]

    # -- cycles --------------------------------------------------------------

    def _dependency_names(self, name: str) -> list[str]:
        return [dep.name for dep in self.get_dependencies(name) if dep.name]

    def find_cycles(self) -> list[list[str]]:
        """Return every distinct dependency cycle.

        Each cycle lists its nodes in discovery order and ends with a repeat
        of its first node, e.g. ``["A", "B", "A"]``.  Uses an iterative DFS
        with tri-color marking so deep graphs never hit the recursion limit.
        """
        cycles: list[list[str]] = []
        state: dict[str, int] = {}
        seen_keys: set[str] = set()

        for start in self.components:
            if not start.name or state.get(start.name) == _DONE:
                continue

            stack = [_Frame(start.name, self._dependency_names(start.name))]
            path: list[str] = []

            while stack:
                if len(stack) > MAX_CYCLE_DEPTH:
                    logger.warning(
                        "Dependency depth exceeds %d, possible cycle or deep graph",
                        MAX_CYCLE_DEPTH,
                    )
                    # Abandon this branch; its nodes are never revisited.
                    for name in path:
                        state[name] = _DONE
                    break

                frame = stack[-1]
                node = frame.name

                if state.get(node, _UNVISITED) == _UNVISITED:
                    state[node] = _VISITING
                    path.append(node)

                if frame.cursor >= len(frame.deps):
                    state[node] = _DONE
                    stack.pop()
                    path.pop()
                    continue

                dep = frame.deps[frame.cursor]
                frame.cursor += 1
                if not dep or dep not in self._by_name:
                    continue

                dep_state = state.get(dep, _UNVISITED)
                if dep_state == _UNVISITED:
                    stack.append(_Frame(dep, self._dependency_names(dep)))
                    continue

                if dep_state == _VISITING and dep in path:
                    cycle = [*path[path.index(dep) :], dep]
                    key = canonical_cycle_key(cycle)
                    if key not in seen_keys:
                        seen_keys.add(key)
                        cycles.append(cycle)

        return cycles

    @property
    def size(self) -> int:
        return len(self.components)

    def __len__(self) -> int:
        return len(self.components)


def canonical_cycle_key(cycle: Sequence[str]) -> str:
    """Return the dedup key for a cycle ending with a repeat of its start.

    The repeated tail is dropped and the nodes are rotated to start at the
    lexicographically smallest member, so ``A->B->A`` and ``B->A->B`` share
    the key ``A->B``.
    """
    nodes = list(cycle[:-1])
    if not nodes:
        return ""
    min_index = nodes.index(min(nodes))
    rotated = nodes[min_index:] + nodes[:min_index]
    return "->".join(rotated)
