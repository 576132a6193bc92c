"""Watch mode: rebuild automatically when units change."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable, Optional, Set

import typer
from rich.console import Console
from rich.markup import escape
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .errors import BuildGraphError
from .models import RunReport
from .orchestrator import BuildOrchestrator, summarize

console = Console()


class UnitChangeHandler(FileSystemEventHandler):
    """Collect unit file events and trigger a debounced rebuild."""

    def __init__(
        self,
        unit_suffix: str,
        rebuild_callback: Callable[[Set[str]], None],
        debounce_seconds: float = 1.0,
    ) -> None:
        super().__init__()
        self.unit_suffix = unit_suffix
        self.rebuild_callback = rebuild_callback
        self.debounce_seconds = debounce_seconds
        self.last_event = 0.0
        self._pending: Set[str] = set()
        self._lock = threading.Lock()

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        for raw in (event.src_path, getattr(event, "dest_path", "")):
            if not raw:
                continue
            path = Path(str(raw))
            if path.suffix != self.unit_suffix or path.name.startswith("."):
                continue
            with self._lock:
                self._pending.add(path.name)
                self.last_event = time.monotonic()

    def flush(self, now: Optional[float] = None) -> bool:
        """Fire the callback once events have settled; returns True if it fired."""
        now = time.monotonic() if now is None else now
        with self._lock:
            if not self._pending or now - self.last_event < self.debounce_seconds:
                return False
            names = set(self._pending)
            self._pending.clear()
        self.rebuild_callback(names)
        return True


def watch(
    project: Path = typer.Option(Path("."), "--project", "-p", file_okay=False, help="Project root."),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", dir_okay=False, help="Config file."),
    interval: float = typer.Option(1.0, "--interval", "-i", help="Debounce interval in seconds."),
):
    """👀 Watch the source root and rebuild on every settled change.

    Example:
      bg watch
      bg watch --project ./app --interval 3
    """
    from .cli import load_or_exit, print_report

    cfg = load_or_exit(project, config_file)
    if not cfg.source_path.is_dir():
        console.print(f"[red]✗[/red] Source root not found: {escape(str(cfg.source_path))}")
        raise typer.Exit(1)

    orchestrator = BuildOrchestrator(cfg)
    reports: list[RunReport] = []

    def rebuild(names: Set[str]) -> None:
        console.print(f"[dim]Changed: {escape(', '.join(sorted(names)))}[/dim]")
        try:
            report = orchestrator.run()
        except BuildGraphError as exc:
            console.print(f"  [red]✗[/red] {escape(str(exc))}")
            return
        reports.append(report)
        print_report(report)

    console.print(f"\n[bold green]👀 Watching[/bold green] [cyan]{escape(str(cfg.source_path))}[/cyan]")
    console.print("[dim]  Press Ctrl+C to stop[/dim]\n")
    rebuild({"(initial build)"})

    handler = UnitChangeHandler(cfg.unit_suffix, rebuild, debounce_seconds=interval)
    observer = Observer()
    observer.schedule(handler, str(cfg.source_path), recursive=False)
    observer.start()

    try:
        while True:
            time.sleep(0.2)
            handler.flush()
    except KeyboardInterrupt:
        observer.stop()
        counts = summarize(reports)
        console.print(
            f"\n[yellow]Stopped watching.[/yellow] "
            + ", ".join(f"{status}: {n}" for status, n in sorted(counts.items()))
        )

    observer.join()
