"""Typer-based CLI for the codemap engine."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from . import __version__, config, config_manager
from .engine import CodeMappingEngine
from .errors import CodeMapError
from .models import Task, to_plain

app = typer.Typer(
    help="codemap: map tasks onto JavaScript/TypeScript code and predict change impact.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
config_app = typer.Typer(help="Show or change engine settings.", no_args_is_help=True)
app.add_typer(config_app, name="config")

console = Console()
err_console = Console(stderr=True)

_RISK_COLORS = {"high": "red", "medium": "yellow", "low": "green"}


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"codemap v{__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
):
    """codemap: task-to-code mapping and change impact prediction."""
    _configure_logging(verbose)


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(to_plain(data), indent=2))


def _load_engine(codebase: Path, **overrides: Any) -> CodeMappingEngine:
    engine = CodeMappingEngine(config_manager.load_engine_config(), **overrides)
    try:
        engine.initialize(codebase)
    except CodeMapError as exc:
        err_console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)
    return engine


def _build_task(
    title: str,
    description: str,
    keywords: List[str],
    dependencies: List[str],
    task_type: str,
    task_id: str,
) -> Task:
    return Task(
        id=task_id,
        title=title,
        description=description,
        type=task_type,
        keywords=list(keywords),
        dependencies=list(dependencies),
    )


@app.command("index")
def index_codebase(
    codebase: Path = typer.Argument(..., help="Root directory of the codebase."),
    depth: Optional[int] = typer.Option(None, "--depth", help="Maximum directory depth to scan."),
    as_json: bool = typer.Option(False, "--json", help="Print the full code index as JSON."),
):
    """Index a codebase and report what was found."""
    engine = _load_engine(codebase, index_depth=depth)
    if as_json:
        _echo_json(engine.code_index)
        return

    meta = engine.code_index.metadata
    graph_meta = engine.dependency_graph.metadata
    table = Table(title=f"Indexed {engine.codebase_path}", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Files", str(meta.total_files))
    table.add_row("Functions", str(meta.total_functions))
    table.add_row("Classes", str(meta.total_classes))
    table.add_row("Graph nodes", str(graph_meta.node_count))
    table.add_row("Graph edges", str(graph_meta.edge_count))
    console.print(table)


@app.command("search")
def search(
    codebase: Path = typer.Argument(..., help="Root directory of the codebase."),
    query: str = typer.Argument(..., help="Natural-language query."),
    limit: int = typer.Option(10, "--limit", "-n", help="Maximum number of results."),
    threshold: Optional[float] = typer.Option(None, "--threshold", "-t", help="Minimum similarity."),
    types: Optional[List[str]] = typer.Option(
        None, "--type", help="Restrict to files, functions or classes (repeatable)."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON."),
):
    """Semantic search over indexed files, functions and classes."""
    engine = _load_engine(codebase)
    results = engine.search(
        query,
        limit=limit,
        types=types or ("files", "functions", "classes"),
        threshold=threshold,
    )
    if as_json:
        _echo_json([
            {"type": r.type, "name": r.item.name, "file_path": r.item.file_path, "similarity": r.similarity}
            for r in results
        ])
        return
    if not results:
        console.print("[yellow]No matching elements.[/yellow]")
        return

    table = Table(title=f"Results for '{query}'", show_header=True)
    table.add_column("Type", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("File")
    table.add_column("Similarity", justify="right")
    for r in results:
        table.add_row(r.type.value, r.item.name, r.item.file_path, f"{r.similarity:.3f}")
    console.print(table)


@app.command("map")
def map_task(
    codebase: Path = typer.Argument(..., help="Root directory of the codebase."),
    title: str = typer.Option(..., "--title", help="Task title."),
    description: str = typer.Option("", "--description", "-d", help="Task description."),
    keywords: List[str] = typer.Option([], "--keyword", "-k", help="Task keyword (repeatable)."),
    dependencies: List[str] = typer.Option([], "--dependency", help="Dependency identifier (repeatable)."),
    task_type: str = typer.Option("", "--type", help="Task type tag."),
    task_id: str = typer.Option("task-1", "--id", help="Task id."),
    as_json: bool = typer.Option(False, "--json", help="Print mapping results as JSON."),
):
    """Map a task onto the code elements most likely to implement it."""
    engine = _load_engine(codebase)
    task = _build_task(title, description, keywords, dependencies, task_type, task_id)
    results = engine.map_task_to_code(task)
    if as_json:
        _echo_json(results)
        return
    if not results:
        console.print("[yellow]No code elements matched this task.[/yellow]")
        return

    table = Table(title=f"Mapping for '{title}'", show_header=True)
    table.add_column("Element", style="bold")
    table.add_column("File")
    table.add_column("Lines", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Confidence")
    for r in results:
        loc = r.code_element.location
        table.add_row(
            f"{r.code_element.type.value} {r.code_element.name}",
            r.code_element.file_path,
            f"{loc.start}-{loc.end}",
            f"{r.mapping.final_score:.3f}",
            r.mapping.confidence,
        )
    console.print(table)


@app.command("predict")
def predict(
    codebase: Path = typer.Argument(..., help="Root directory of the codebase."),
    title: str = typer.Option(..., "--title", help="Task title."),
    description: str = typer.Option("", "--description", "-d", help="Task description."),
    keywords: List[str] = typer.Option([], "--keyword", "-k", help="Task keyword (repeatable)."),
    dependencies: List[str] = typer.Option([], "--dependency", help="Dependency identifier (repeatable)."),
    task_type: str = typer.Option("", "--type", help="Task type tag."),
    task_id: str = typer.Option("task-1", "--id", help="Task id."),
    as_json: bool = typer.Option(False, "--json", help="Print suggestions as JSON."),
):
    """Suggest where to implement a task and predict the impact of the change."""
    engine = _load_engine(codebase)
    task = _build_task(title, description, keywords, dependencies, task_type, task_id)
    suggestions = engine.generate_code_modification_suggestions(task)
    if as_json:
        _echo_json(suggestions)
        return

    plan = suggestions.change_impact.change_plan
    summary = plan.impact_summary
    color = _RISK_COLORS.get(summary.risk_level, "white")
    console.print(
        Panel.fit(
            f"[bold {color}]{summary.risk_level.upper()}[/bold {color}]  "
            f"impact score {summary.total_impact_score:.2f}",
            title="[bold]Risk[/bold]",
            border_style=color,
        )
    )

    table = Table(title="Change plan", show_header=True)
    table.add_column("Priority")
    table.add_column("Action", style="cyan")
    table.add_column("File")
    for change in plan.primary_changes + plan.secondary_changes + plan.dependency_checks:
        table.add_row(change.priority, change.change_type, change.file_path)
    console.print(table)

    for change in suggestions.modification_plan.suggested_changes:
        console.print(f"  • {change.file_path}:{change.location.start}  {change.suggestion}")


@app.command("deps")
def deps(
    codebase: Path = typer.Argument(..., help="Root directory of the codebase."),
    node_id: str = typer.Argument(..., help="Graph node id, e.g. 'function:/abs/path.js:name'."),
    direction: str = typer.Option("outgoing", "--direction", help="outgoing, incoming or both."),
    depth: int = typer.Option(1, "--depth", help="Maximum number of hops."),
    max_results: int = typer.Option(100, "--max-results", help="Maximum number of nodes."),
    as_json: bool = typer.Option(False, "--json", help="Print dependencies as JSON."),
):
    """Show the graph neighbourhood of one node."""
    if direction not in ("outgoing", "incoming", "both"):
        raise typer.BadParameter("direction must be one of: outgoing, incoming, both")
    engine = _load_engine(codebase)
    found = engine.node_dependencies(node_id, direction=direction, depth=depth, max_results=max_results)
    if as_json:
        _echo_json([{"id": d.id, "edge": d.edge.type, "depth": d.depth} for d in found])
        return
    if not found:
        console.print(f"[yellow]No {direction} dependencies for {node_id}.[/yellow]")
        return
    for dep in found:
        console.print(f"{'  ' * dep.depth}[cyan]{dep.edge.type.value}[/cyan] {dep.id}")


@config_app.command("show")
def config_show():
    """Print the effective engine settings."""
    settings = config_manager.load_engine_config()
    table = Table(title="Engine settings", show_header=True)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in settings.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting name, e.g. similarity_threshold."),
    value: str = typer.Argument(..., help="TOML value, e.g. 0.5 or '[\".js\"]'."),
):
    """Persist one engine setting to the config file."""
    try:
        updated = config_manager.set_engine_value(key, value)
    except CodeMapError as exc:
        err_console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)
    name = config.setting_name(key)
    console.print(f"[green]✓[/green] {name} = {updated.to_dict()[name]}")
