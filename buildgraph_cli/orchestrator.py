"""Build orchestrator: sequences scanning, analysis, compilation, and commit."""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .changes import clean_deleted, detect_changes, detect_deletions
from .compiler import Compiler, compiler_from_command
from .config import BuildConfig, ensure_build_dirs
from .errors import BuildCancelled, DanglingReferenceError, ExtractionError
from .impact import compute_impacted
from .models import RunReport, Unit
from .parser import ReferenceExtractor, get_extractor, mentions_identifier
from .scanner import scan_units, unit_name
from .storage import BuildState, GraphStore

logger = logging.getLogger(__name__)

ReportCallback = Callable[[Optional[RunReport], Optional[BaseException]], None]


class BuildOrchestrator:
    """Runs one incremental build per call to :meth:`run`.

    The orchestrator holds no mutable build state of its own; every run
    opens a fresh :class:`~buildgraph_cli.storage.BuildState` (or uses the
    one passed in), so instances are safe to use side by side.
    """

    def __init__(
        self,
        config: BuildConfig,
        compiler: Optional[Compiler] = None,
        extractor: Optional[ReferenceExtractor] = None,
    ) -> None:
        self.config = config
        self.compiler = compiler or compiler_from_command(config.compiler)
        self.extractor = extractor or get_extractor(config.extractor, config.unit_suffix)

    def open_state(self) -> BuildState:
        return BuildState.open(self.config)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def run(
        self,
        dry_run: bool = False,
        cancel: Optional[threading.Event] = None,
        state: Optional[BuildState] = None,
    ) -> RunReport:
        """Scan, analyze, and (unless *dry_run*) build and commit.

        Raises:
            DigestError: a unit could not be read.
            DanglingReferenceError: policy ``error`` and a surviving unit
                references a deleted one.
            PersistenceError: the hash store could not be written.
            BuildCancelled: *cancel* was set before compilation.
        """
        config = self.config
        state = state or self.open_state()
        if not dry_run:
            ensure_build_dirs(config)

        units = scan_units(config.source_path, config.unit_suffix)
        deleted = detect_deletions(units, state.hashes)
        dangling = self.build_graph(
            units, state.graph, deleted=deleted, cancel=cancel, write_records=not dry_run,
        )
        changes = detect_changes(units, state.hashes)

        if changes.deleted and not dry_run:
            clean_deleted(changes.deleted, state)

        seeds = set(changes.changed)
        if dangling:
            seeds |= self._apply_dangling_policy(dangling)

        impacted = sorted(compute_impacted(seeds, state.graph.as_dict()))
        report = RunReport(
            units=[u.unit_id for u in units],
            changed=sorted(changes.changed),
            deleted=sorted(changes.deleted),
            impacted=impacted,
            dangling={k: sorted(v) for k, v in sorted(dangling.items())},
        )
        logger.info("Impacted set: %s", ", ".join(impacted) or "(empty)")

        if dry_run:
            return report

        if not impacted:
            if changes.deleted:
                state.hashes.save()
            logger.info("No changes detected. Compilation skipped.")
            return report

        if cancel is not None and cancel.is_set():
            raise BuildCancelled("compile", impacted)

        result = self.compiler.compile(
            [config.source_path / unit_id for unit_id in impacted],
            config.output_path,
        )
        report.diagnostics = result.diagnostics
        if not result.success:
            report.success = False
            logger.warning("Build failed for %d unit(s); state not committed", len(impacted))
            return report

        for unit_id in impacted:
            state.hashes.set(unit_id, changes.digests[unit_id])
        state.hashes.save()
        report.compiled = True
        logger.info("Compiled %d unit(s)", len(impacted))
        return report

    # ------------------------------------------------------------------
    # Reference extraction
    # ------------------------------------------------------------------

    def build_graph(
        self,
        units: Sequence[Unit],
        graph: GraphStore,
        deleted: Iterable[str] = (),
        cancel: Optional[threading.Event] = None,
        write_records: bool = True,
    ) -> Dict[str, Set[str]]:
        """Rebuild the dependency graph from current content.

        Names of *deleted* units are matched too, so references to them can
        be reported instead of silently dropped.  A deleted name only counts
        when it appears as a whole identifier.

        Returns:
            Mapping of unit id -> deleted unit ids it still references.
        """
        suffix = self.config.unit_suffix
        by_name = {unit.name: unit.unit_id for unit in units}
        deleted_by_name = {unit_name(unit_id, suffix): unit_id for unit_id in deleted}
        known = set(by_name) | set(deleted_by_name)

        def _job(unit: Unit) -> Tuple[Unit, Set[str]]:
            if cancel is not None and cancel.is_set():
                raise BuildCancelled("extraction")
            return unit, self._extract(unit, known, set(deleted_by_name))

        if self.config.workers > 1 and len(units) > 1:
            with ThreadPoolExecutor(max_workers=self.config.workers) as pool:
                results = list(pool.map(_job, units))
        else:
            results = [_job(unit) for unit in units]

        # Single-writer merge into the shared graph
        graph.clear()
        dangling: Dict[str, Set[str]] = {}
        for unit, names in results:
            refs = {by_name[n] for n in names if n in by_name}
            graph.set_references(unit.unit_id, refs)
            if write_records:
                graph.save_record(unit.unit_id, refs)
            gone = {deleted_by_name[n] for n in names if n in deleted_by_name}
            if gone:
                dangling[unit.unit_id] = gone
        logger.debug("Dependency graph rebuilt for %d unit(s)", len(results))
        return dangling

    def _extract(self, unit: Unit, known: Set[str], deleted_names: Set[str]) -> Set[str]:
        try:
            content = unit.path.read_text(encoding="utf-8", errors="ignore")
            names = self.extractor.extract(content, unit.name, known)
        except (ExtractionError, OSError, ValueError) as exc:
            logger.warning("Failed to extract references from %s: %s", unit.unit_id, exc)
            return set()
        stale = {n for n in names & deleted_names if not mentions_identifier(content, n)}
        return names - stale

    def _apply_dangling_policy(self, dangling: Dict[str, Set[str]]) -> Set[str]:
        policy = self.config.dangling
        if policy == "error":
            raise DanglingReferenceError(dangling)
        for unit_id, targets in sorted(dangling.items()):
            logger.warning(
                "%s references deleted unit(s): %s", unit_id, ", ".join(sorted(targets)),
            )
        if policy == "rebuild":
            return set(dangling)
        return set()


# ===================================================================
# Background execution for interactive callers
# ===================================================================

class BuildWorker:
    """Run builds off the caller's thread.

    Runs are serialized on one worker thread.  Results arrive through the
    returned :class:`~concurrent.futures.Future` and, optionally, a
    ``callback(report, error)``.
    """

    def __init__(self, orchestrator: BuildOrchestrator) -> None:
        self.orchestrator = orchestrator
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="buildgraph")
        # One token per queued or running submission
        self._tokens: Set[threading.Event] = set()
        self._lock = threading.Lock()

    def submit(
        self,
        callback: Optional[ReportCallback] = None,
        dry_run: bool = False,
    ) -> "Future[RunReport]":
        token = threading.Event()
        with self._lock:
            self._tokens.add(token)
        future = self._executor.submit(self.orchestrator.run, dry_run=dry_run, cancel=token)

        def _release(done: "Future[RunReport]") -> None:
            with self._lock:
                self._tokens.discard(token)

        future.add_done_callback(_release)
        if callback is not None:
            def _deliver(done: "Future[RunReport]") -> None:
                error = done.exception()
                callback(None if error else done.result(), error)

            future.add_done_callback(_deliver)
        return future

    async def arun(self, dry_run: bool = False) -> RunReport:
        return await asyncio.wrap_future(self.submit(dry_run=dry_run))

    def cancel(self) -> None:
        """Cancel every submission that is queued or running; later ones are unaffected."""
        with self._lock:
            for token in self._tokens:
                token.set()

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "BuildWorker":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()


def summarize(reports: List[RunReport]) -> Dict[str, int]:
    """Count run statuses, e.g. for watch-mode summaries."""
    counts: Dict[str, int] = {}
    for report in reports:
        counts[report.status] = counts.get(report.status, 0) + 1
    return counts
