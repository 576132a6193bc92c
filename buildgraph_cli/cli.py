"""Typer-based CLI for BuildGraph incremental builds."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .changes import artifact_paths
from .cli_watch import watch
from .config import DANGLING_POLICIES, EXTRACTORS, BuildConfig, default_config_path
from .config_manager import load_config, save_config
from .errors import BuildGraphError
from .impact import dependents_of, impact_tree
from .models import RunReport
from .orchestrator import BuildOrchestrator
from .scanner import scan_units, unit_name
from .storage import BuildState, GraphStore

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="🔨 BuildGraph: rebuild only what an edit actually touches.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("watch")(watch)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"BuildGraph v{__version__}")
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
    """BuildGraph: dependency-aware incremental compilation."""
    _configure_logging(verbose)


# ------------------------------------------------------------------
# Shared option handling
# ------------------------------------------------------------------

ProjectOpt = typer.Option(Path("."), "--project", "-p", file_okay=False, help="Project root.")
ConfigOpt = typer.Option(None, "--config", "-c", dir_okay=False, help="Config file (default: buildgraph.toml).")
ExtractorOpt = typer.Option(None, "--extractor", "-e", help=f"Reference extractor: {', '.join(EXTRACTORS)}.")


def load_or_exit(project: Path, config_file: Optional[Path], **overrides) -> BuildConfig:
    try:
        return load_config(project.resolve(), config_file, **overrides)
    except BuildGraphError as exc:
        console.print(f"[red]✗[/red] {escape(str(exc))}")
        raise typer.Exit(1)


def run_or_exit(orchestrator: BuildOrchestrator, dry_run: bool = False) -> RunReport:
    try:
        return orchestrator.run(dry_run=dry_run)
    except BuildGraphError as exc:
        console.print(f"[red]✗[/red] {escape(str(exc))}")
        raise typer.Exit(1)


def print_report(report: RunReport) -> None:
    for unit_id, targets in report.dangling.items():
        console.print(
            f"[yellow]![/yellow] {escape(unit_id)} references deleted: {escape(', '.join(targets))}"
        )
    for unit_id in report.impacted:
        typer.echo(unit_id)
    if report.diagnostics:
        typer.echo(report.diagnostics)
    typer.echo(report.summary())


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------

@app.command("build")
def build(
    project: Path = ProjectOpt,
    config_file: Optional[Path] = ConfigOpt,
    extractor: Optional[str] = ExtractorOpt,
    dangling: Optional[str] = typer.Option(
        None, "--dangling", help=f"Dangling reference policy: {', '.join(DANGLING_POLICIES)}.",
    ),
    workers: Optional[int] = typer.Option(None, "--workers", "-j", min=1, help="Extraction threads."),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show the impacted set only."),
):
    """Recompile changed units and everything that depends on them."""
    cfg = load_or_exit(project, config_file, extractor=extractor, dangling=dangling, workers=workers)
    orchestrator = BuildOrchestrator(cfg)
    report = run_or_exit(orchestrator, dry_run=dry_run)
    print_report(report)
    if not report.success:
        raise typer.Exit(1)


@app.command("status")
def status(
    project: Path = ProjectOpt,
    config_file: Optional[Path] = ConfigOpt,
    extractor: Optional[str] = ExtractorOpt,
):
    """Show changed, deleted, and impacted units without building."""
    cfg = load_or_exit(project, config_file, extractor=extractor)
    report = run_or_exit(BuildOrchestrator(cfg), dry_run=True)

    table = Table(title="Build status", show_header=True)
    table.add_column("Unit")
    table.add_column("State")
    impacted = set(report.impacted)
    changed = set(report.changed)
    for unit_id in sorted(set(report.units) | set(report.deleted)):
        if unit_id in report.deleted:
            label = "[red]deleted[/red]"
        elif unit_id in changed:
            label = "[yellow]changed[/yellow]"
        elif unit_id in impacted:
            label = "[cyan]dependent[/cyan]"
        else:
            label = "[green]up to date[/green]"
        table.add_row(escape(unit_id), label)
    console.print(table)
    typer.echo(report.summary())


@app.command("deps")
def deps(
    unit: Optional[str] = typer.Argument(None, help="Unit to inspect (e.g. A.java)."),
    project: Path = ProjectOpt,
    config_file: Optional[Path] = ConfigOpt,
    extractor: Optional[str] = ExtractorOpt,
    depth: int = typer.Option(3, min=1, max=10, help="Dependent tree depth."),
):
    """Show reference sets, or the dependents tree of one unit."""
    cfg = load_or_exit(project, config_file, extractor=extractor)
    store = GraphStore(cfg.deps_path)
    units = scan_units(cfg.source_path, cfg.unit_suffix)
    BuildOrchestrator(cfg).build_graph(units, store, write_records=False)
    graph = store.as_dict()

    if unit is None:
        table = Table(title="Dependency graph", show_header=True)
        table.add_column("Unit")
        table.add_column("References")
        table.add_column("Dependents")
        for unit_id in store.units():
            table.add_row(
                escape(unit_id),
                escape(", ".join(sorted(graph[unit_id]))) or "-",
                escape(", ".join(dependents_of(unit_id, graph))) or "-",
            )
        console.print(table)
        return

    if unit not in graph:
        console.print(f"[red]✗[/red] Unknown unit: {escape(unit)}")
        raise typer.Exit(1)
    typer.echo(f"References: {', '.join(sorted(graph[unit])) or 'none'}")
    typer.echo("Rebuilt when it changes:")
    typer.echo(impact_tree(unit, graph, depth=depth))


@app.command("clean")
def clean(
    project: Path = ProjectOpt,
    config_file: Optional[Path] = ConfigOpt,
    artifacts: bool = typer.Option(True, "--artifacts/--keep-artifacts", help="Also delete build outputs."),
):
    """Forget all build state so the next build starts from scratch."""
    cfg = load_or_exit(project, config_file)
    state = BuildState.open(cfg)
    removed = 0
    if artifacts:
        known = {u.unit_id for u in scan_units(cfg.source_path, cfg.unit_suffix)}
        for unit_id in sorted(known | state.hashes.unit_ids()):
            for path in artifact_paths(cfg.output_path, unit_name(unit_id, cfg.unit_suffix), cfg.artifact_suffix):
                path.unlink(missing_ok=True)
                removed += 1
    for unit_id, _ in list(state.graph.iter_records()):
        state.graph.remove_record(unit_id)
    if cfg.deps_path.is_dir() and not any(cfg.deps_path.iterdir()):
        cfg.deps_path.rmdir()
    cfg.hash_path.unlink(missing_ok=True)
    typer.echo(f"Cleaned build state ({removed} artifact(s) removed).")


@app.command("init")
def init(
    project: Path = ProjectOpt,
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing config."),
):
    """Write a default buildgraph.toml."""
    root = project.resolve()
    path = default_config_path(root)
    if path.exists() and not force:
        console.print(f"[yellow]![/yellow] {escape(str(path))} already exists (use --force).")
        raise typer.Exit(1)
    save_config(BuildConfig(project_root=root), path)
    typer.echo(f"Wrote {path}")


if __name__ == "__main__":
    app()
