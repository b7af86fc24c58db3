"""Tests for Mermaid diagram rendering."""

from __future__ import annotations

import base64
import json

import pytest

from archgate.diagrams import (
    DIAGRAM_TYPES,
    MAX_FLOW_STEPS,
    MAX_PREVIEW_CODE_LENGTH,
    PREVIEW_URL_PREFIX,
    escape_label,
    preview_url,
    render,
    render_architecture,
    render_dependency,
    sanitize_id,
    with_theme,
)
from archgate.graph import Component, ComponentGraph, ImportRef

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def graph() -> ComponentGraph:
    return ComponentGraph(
        [
            Component(
                name="User",
                original_name="User",
                file_path="src/domain/User.ts",
                directory="src/domain",
                type="class",
                imports=(ImportRef("../ui/Button", 1), ImportRef("lodash/fp", 2)),
                dependencies=("Button",),
            ),
            Component(
                name="Button",
                original_name="Button",
                file_path="src/ui/Button.tsx",
                directory="src/ui",
                type="component",
                imports=(ImportRef("react", 1), ImportRef("@emotion/styled", 2)),
            ),
            Component(
                name="authService",
                original_name="authService",
                file_path="src/api/authService.ts",
                directory="src/api",
                type="service",
            ),
        ]
    )


# ---------------------------------------------------------------------------
# TestIdentifiers
# ---------------------------------------------------------------------------


class TestIdentifiers:
    def test_sanitize_id_is_mermaid_safe(self) -> None:
        node = sanitize_id("my-file.v2")
        assert node.startswith("my_file_v2_")
        assert all(ch.isalnum() or ch == "_" for ch in node)

    def test_sanitize_id_distinguishes_lookalikes(self) -> None:
        assert sanitize_id("a-b") != sanitize_id("a_b")
        assert sanitize_id("a-b") == sanitize_id("a-b")

    def test_sanitize_id_leading_digit(self) -> None:
        assert sanitize_id("3d").startswith("_3d_")

    def test_escape_label(self) -> None:
        assert escape_label('say "hi" [x] (y) #1 <b>') == (
            'say \\"hi\\" \\[x\\] \\(y\\) \\#1 \\<b\\>'
        )
        assert escape_label(None) == ""


# ---------------------------------------------------------------------------
# TestArchitecture
# ---------------------------------------------------------------------------


class TestArchitecture:
    def test_subgraph_per_directory(self, graph: ComponentGraph) -> None:
        code = render_architecture(graph)
        lines = code.splitlines()
        assert lines[0] == "graph TD"
        assert f'  subgraph {sanitize_id("src/domain")}["src/domain"]' in lines
        assert f'    {sanitize_id("User")}["User"]' in lines
        assert lines.count("  end") == 3

    def test_service_shape_and_edges(self, graph: ComponentGraph) -> None:
        code = render_architecture(graph)
        assert f'    {sanitize_id("authService")}[["authService"]]' in code
        assert f"  {sanitize_id('User')} --> {sanitize_id('Button')}" in code

    def test_entry_point_styled(self, graph: ComponentGraph) -> None:
        code = render_architecture(graph, entry_points=["src/ui/Button.tsx", "missing.ts"])
        assert f"  style {sanitize_id('Button')} fill:#4f46e5,color:#fff" in code
        assert code.count("style ") == 1

    def test_focus_drops_outside_edges(self, graph: ComponentGraph) -> None:
        code = render_architecture(graph, focus="domain")
        assert sanitize_id("User") in code
        assert sanitize_id("Button") not in code
        assert "-->" not in code

    def test_focus_without_matches(self, graph: ComponentGraph) -> None:
        code = render_architecture(graph, focus="nowhere")
        assert code.splitlines() == ["graph TD", '  Note["No components found for focus: nowhere"]']

    def test_labels_escaped(self) -> None:
        weird = ComponentGraph(
            [Component(name="a", original_name='x"[y]', file_path="a.ts", directory="(root)")]
        )
        code = render_architecture(weird)
        assert '\\"\\[y\\]' in code
        assert '["\\(root\\)"]' in code


# ---------------------------------------------------------------------------
# TestDependency
# ---------------------------------------------------------------------------


class TestDependency:
    def test_external_packages_and_local_edges(self, graph: ComponentGraph) -> None:
        code = render_dependency(graph)
        lines = code.splitlines()
        assert lines[0] == "graph LR"
        assert f'  {sanitize_id("lodash")}["lodash"] --> {sanitize_id("User")}' in lines
        scoped = sanitize_id("@emotion/styled")
        assert f'  {scoped}["@emotion/styled"] --> {sanitize_id("Button")}' in lines
        assert f"  {sanitize_id('User')} --> {sanitize_id('Button')}" in lines
        assert f"  style {sanitize_id('react')} fill:#f59e0b,color:#fff" in lines

    def test_relative_imports_are_not_packages(self, graph: ComponentGraph) -> None:
        assert '"../ui/Button"' not in render_dependency(graph)
        assert '".."' not in render_dependency(graph)

    def test_no_duplicate_edges(self) -> None:
        twice = ComponentGraph(
            [
                Component(
                    name="a",
                    file_path="a.ts",
                    imports=(ImportRef("react/dom"), ImportRef("react/jsx")),
                )
            ]
        )
        code = render_dependency(twice)
        assert code.count("-->") == 1

    def test_empty(self) -> None:
        lines = render_dependency(ComponentGraph([])).splitlines()
        assert lines[1] == '  Note["No components found"]'


# ---------------------------------------------------------------------------
# TestOtherDiagrams
# ---------------------------------------------------------------------------


class TestOtherDiagrams:
    def test_sequence_uses_services(self, graph: ComponentGraph) -> None:
        code = render(graph, "sequence")
        assert code.splitlines() == [
            "sequenceDiagram",
            f"  participant {sanitize_id('authService')} as authService",
        ]

    def test_sequence_without_services(self) -> None:
        code = render(ComponentGraph([Component(name="a", file_path="a.ts")]), "sequence")
        assert "No services detected" in code

    def test_class_diagram(self, graph: ComponentGraph) -> None:
        code = render(graph, "class")
        assert code.startswith("classDiagram\n")
        assert f"  class {sanitize_id('User')} {{" in code
        assert "    +src/domain/User.ts" in code
        assert sanitize_id("authService") not in code
        assert f"  {sanitize_id('User')} --> {sanitize_id('Button')}" in code

    def test_flow_is_capped(self) -> None:
        many = ComponentGraph(
            [Component(name=f"c{i}", file_path=f"c{i}.ts") for i in range(MAX_FLOW_STEPS + 4)]
        )
        code = render(many, "flow")
        assert code.count('["c') == MAX_FLOW_STEPS
        assert code.splitlines()[-1] == f"  {sanitize_id(f'c{MAX_FLOW_STEPS - 1}')} --> End"

    def test_flow_empty_graph(self) -> None:
        assert render(ComponentGraph([]), "flow").splitlines()[-1] == "  Start --> End"

    @pytest.mark.parametrize("kind", DIAGRAM_TYPES)
    def test_every_type_renders(self, graph: ComponentGraph, kind: str) -> None:
        assert render(graph, kind)

    def test_unknown_type(self, graph: ComponentGraph) -> None:
        with pytest.raises(ValueError, match="Unknown diagram type"):
            render(graph, "gantt")


# ---------------------------------------------------------------------------
# TestOutputHelpers
# ---------------------------------------------------------------------------


class TestOutputHelpers:
    def test_theme_directive(self) -> None:
        assert with_theme("graph TD", "Dark") == "%%{init: {'theme': 'dark'}}%%\ngraph TD"
        assert with_theme("graph TD") == "graph TD"
        with pytest.raises(ValueError, match="Unknown theme"):
            with_theme("graph TD", "neon")

    def test_preview_url_round_trips_code(self) -> None:
        url = preview_url("graph TD\n  A --> B")
        assert url is not None
        assert url.startswith(PREVIEW_URL_PREFIX)
        encoded = url[len(PREVIEW_URL_PREFIX) :]
        payload = base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4))
        assert json.loads(payload) == {"code": "graph TD\n  A --> B"}

    def test_preview_url_too_large(self) -> None:
        assert preview_url("x" * (MAX_PREVIEW_CODE_LENGTH + 1)) is None
