"""archgate CLI entry point."""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING

import click

from archgate import __version__

if TYPE_CHECKING:
    from archgate.graph import ComponentGraph
    from archgate.rules import RulePreview

DEFAULT_CONFIG_NAME = ".architecture.yml"


@click.group()
@click.version_option(version=__version__, prog_name="archgate")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool) -> None:
    """archgate - architecture rules for your import graph."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _split_csv(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


def _plain_output() -> bool:
    return os.environ.get("CI") == "true" or not sys.stdout.isatty()


# ---------------------------------------------------------------------------
# analyze
# ---------------------------------------------------------------------------


@main.command()
@click.argument(
    "path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
@click.option("--patterns", default=None, help="Comma-separated file globs to include.")
@click.option("--exclude", default=None, help="Comma-separated globs to exclude.")
@click.option("--max-files", type=int, default=100, show_default=True, help="File limit.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def analyze(
    path: Path,
    *,
    patterns: str | None,
    exclude: str | None,
    max_files: int,
    as_json: bool,
) -> None:
    """Analyze source files under PATH and report components and cycles."""
    from archgate.analyzer import analyze as run_analyze
    from archgate.graph import ComponentGraph

    result = run_analyze(path, _split_csv(patterns), _split_csv(exclude), max_files)
    graph = ComponentGraph(result)
    cycles = graph.find_cycles()

    if as_json:
        data = {**result.to_dict(), "cycles": cycles}
        click.echo(json.dumps(data, ensure_ascii=False, indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    console = Console()
    console.print(f"Components: [bold]{len(result.components)}[/]")
    if result.languages:
        lang_table = Table(title="Languages", show_header=False, box=None, padding=(0, 1))
        lang_table.add_column("language", style="cyan")
        lang_table.add_column("files", justify="right")
        for language, count in sorted(result.languages.items()):
            lang_table.add_row(language, str(count))
        console.print(lang_table)
    if result.entry_points:
        console.print("Entry points: " + ", ".join(result.entry_points))
    if cycles:
        console.print(f"[red]{len(cycles)} dependency cycle(s):[/]")
        for cycle in cycles:
            console.print("  " + " -> ".join(cycle))
    else:
        console.print("[green]No dependency cycles[/]")


# ---------------------------------------------------------------------------
# test
# ---------------------------------------------------------------------------


@main.command("test")
@click.argument(
    "path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Rules file (default: .architecture.yml in PATH).",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["console", "json", "junit"], case_sensitive=False),
    default="console",
    show_default=True,
    help="Output format.",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the report to a file instead of stdout.",
)
@click.option("--dry-run", is_flag=True, help="Show which files each rule's layer matches.")
@click.option("--patterns", default=None, help="Comma-separated file globs to include.")
@click.option("--exclude", default=None, help="Comma-separated globs to exclude.")
@click.option("--max-files", type=int, default=100, show_default=True, help="File limit.")
@click.pass_context
def test_cmd(
    ctx: click.Context,
    path: Path,
    *,
    config_path: Path | None,
    fmt: str,
    output: Path | None,
    dry_run: bool,
    patterns: str | None,
    exclude: str | None,
    max_files: int,
) -> None:
    """Validate the code under PATH against architecture rules.

    Exit codes: 0 = all rules passed or skipped, 1 = violations found,
    2 = configuration error.
    """
    from archgate.analyzer import analyze as run_analyze
    from archgate.formatters import (
        EXIT_CONFIG_ERROR,
        EXIT_SUCCESS,
        exit_code_for,
        format_console,
        format_json,
        format_junit,
    )
    from archgate.graph import ComponentGraph
    from archgate.rules import ConfigError, RuleEngine, create_rules, find_config, load_rules_config

    started = time.monotonic()
    verbose = bool((ctx.obj or {}).get("verbose"))

    if config_path is None:
        config_path = find_config(path)
        if config_path is None:
            click.echo(
                f"Error: no architecture config found in {path} (run 'archgate init' first)",
                err=True,
            )
            sys.exit(EXIT_CONFIG_ERROR)

    try:
        config = load_rules_config(config_path)
        rules = create_rules(config)
    except (ConfigError, TypeError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    analysis = run_analyze(path, _split_csv(patterns), _split_csv(exclude), max_files)
    graph = ComponentGraph(analysis)
    engine = RuleEngine()

    if dry_run:
        _render_preview(engine.preview_matches(rules, graph))
        return

    results = engine.validate(rules, graph)
    elapsed = time.monotonic() - started

    fmt = fmt.lower()
    if fmt == "json":
        report = format_json(results, elapsed_s=elapsed)
    elif fmt == "junit":
        report = format_junit(results, elapsed_s=elapsed)
    else:
        report = format_console(
            results, verbose=verbose, plain=output is not None or _plain_output(), elapsed_s=elapsed
        )

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(report, encoding="utf-8")
        if verbose:
            click.echo(f"Results written to {output}")
    else:
        click.echo(report)

    code = exit_code_for(results)
    if code != EXIT_SUCCESS:
        sys.exit(code)


def _render_preview(previews: list[RulePreview]) -> None:
    from rich.console import Console
    from rich.table import Table

    console = Console()
    table = Table(title="Dry run: layer matches")
    table.add_column("Rule", style="cyan")
    table.add_column("Layer")
    table.add_column("Files", justify="right")
    table.add_column("Matched")

    for preview in previews:
        layer = preview.layer
        if not isinstance(layer, str):
            layer = ", ".join(map(str, layer or ()))  # type: ignore[call-overload]
        if preview.error is not None:
            table.add_row(preview.name, layer, "-", f"[red]{preview.error}[/]")
            continue
        matched = "\n".join(preview.matched_files)
        if preview.truncated:
            matched += f"\n... and {preview.total_files - len(preview.matched_files)} more"
        table.add_row(preview.name, layer, str(preview.total_files), matched or "[yellow](none)[/]")

    console.print(table)


# ---------------------------------------------------------------------------
# generate / all
# ---------------------------------------------------------------------------

_DIAGRAM_SUFFIXES = (".mmd", ".md")


def _analysis_graph(
    path: Path, patterns: str | None, exclude: str | None, max_files: int
) -> tuple[ComponentGraph, list[str]]:
    from archgate.analyzer import analyze as run_analyze
    from archgate.graph import ComponentGraph

    result = run_analyze(path, _split_csv(patterns), _split_csv(exclude), max_files)
    return ComponentGraph(result), result.entry_points


@main.command()
@click.argument(
    "path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
@click.option(
    "--type",
    "kind",
    type=click.Choice(
        ["architecture", "sequence", "dependency", "class", "flow"], case_sensitive=False
    ),
    default="architecture",
    show_default=True,
    help="Diagram type.",
)
@click.option("--focus", default=None, help="Only components whose path or name contains this.")
@click.option(
    "--theme",
    type=click.Choice(["default", "dark", "forest", "neutral"], case_sensitive=False),
    default="default",
    show_default=True,
    help="Mermaid theme.",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the diagram to a .mmd or .md file.",
)
@click.option("--patterns", default=None, help="Comma-separated file globs to include.")
@click.option("--exclude", default=None, help="Comma-separated globs to exclude.")
@click.option("--max-files", type=int, default=100, show_default=True, help="File limit.")
def generate(
    path: Path,
    *,
    kind: str,
    focus: str | None,
    theme: str,
    output: Path | None,
    patterns: str | None,
    exclude: str | None,
    max_files: int,
) -> None:
    """Generate a Mermaid diagram of the components under PATH."""
    from archgate.diagrams import preview_url, render, with_theme

    if output is not None and output.suffix.lower() not in _DIAGRAM_SUFFIXES:
        click.echo(f"Error: unsupported output type {output.suffix!r} (use .mmd or .md)", err=True)
        sys.exit(2)

    graph, entry_points = _analysis_graph(path, patterns, exclude, max_files)
    code = with_theme(
        render(graph, kind.lower(), focus=focus, entry_points=entry_points), theme.lower()
    )

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        text = f"```mermaid\n{code}\n```\n" if output.suffix.lower() == ".md" else code + "\n"
        output.write_text(text, encoding="utf-8")
        click.echo(f"Diagram written to {output}")
        return

    click.echo(f"```mermaid\n{code}\n```")
    url = preview_url(code)
    if url is None:
        click.echo("Diagram too large for a preview link; use --output to save it.")
    else:
        click.echo(f"Preview: {url}")


@main.command("all")
@click.argument(
    "path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default="diagrams",
    show_default=True,
    help="Directory for the generated .mmd files.",
)
@click.option("--patterns", default=None, help="Comma-separated file globs to include.")
@click.option("--exclude", default=None, help="Comma-separated globs to exclude.")
@click.option("--max-files", type=int, default=100, show_default=True, help="File limit.")
def all_cmd(
    path: Path,
    *,
    output_dir: Path,
    patterns: str | None,
    exclude: str | None,
    max_files: int,
) -> None:
    """Write every diagram type for PATH into OUTPUT_DIR."""
    from archgate.diagrams import DIAGRAM_TYPES, render

    graph, entry_points = _analysis_graph(path, patterns, exclude, max_files)
    output_dir.mkdir(parents=True, exist_ok=True)
    for kind in DIAGRAM_TYPES:
        target = output_dir / f"{kind}.mmd"
        target.write_text(render(graph, kind, entry_points=entry_points) + "\n", encoding="utf-8")
        click.echo(f"  {kind}: {target}")
    click.echo(f"Generated {len(DIAGRAM_TYPES)} diagrams in {output_dir}")


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


@main.command()
@click.argument(
    "path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
@click.option("--force", is_flag=True, help="Overwrite an existing config.")
def init(path: Path, *, force: bool) -> None:
    """Create a starter .architecture.yml in PATH."""
    from archgate.rules import DEFAULT_CONFIG_YAML

    target = path / DEFAULT_CONFIG_NAME
    if target.exists() and not force:
        click.echo(f"Error: {target} already exists (use --force to overwrite)", err=True)
        sys.exit(1)

    target.write_text(DEFAULT_CONFIG_YAML, encoding="utf-8")
    click.echo(f"Created {target}")
