"""Shared test fixtures for archgate."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path


RULES_YAML = """\
version: "1.0"
rules:
  - name: Domain isolation
    description: Domain logic should not depend on UI
    layer: src/domain
    must_not_import_from:
      - src/ui
  - name: API contract
    layer: src/api
    may_import_from:
      - src/domain
      - src/shared
"""


@pytest.fixture()
def tmp_project(tmp_path: Path) -> Path:
    """Create a small TypeScript project with one domain-to-UI violation and a rules file."""
    project = tmp_path / "proj"
    (project / "src" / "domain").mkdir(parents=True)
    (project / "src" / "ui").mkdir(parents=True)
    (project / "src" / "api").mkdir(parents=True)

    (project / "src" / "domain" / "User.ts").write_text(
        'import { Button } from "../ui/Button";\n'
        "\n"
        "export class User {}\n"
    )
    (project / "src" / "ui" / "Button.tsx").write_text("export function Button() {}\n")
    (project / "src" / "api" / "routes.ts").write_text(
        'import { User } from "../domain/User";\n'
        "export const routes = [];\n"
    )
    (project / ".architecture.yml").write_text(RULES_YAML)
    return project
