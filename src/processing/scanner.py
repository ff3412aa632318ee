"""
Scanner - walks scan roots and catalogs detected projects.

The unit of concurrent work is one directory: a worker lists it, classifies
it, catalogs it when it is a project, and hands back the child directories
that survived ignore pruning. The coordinating thread submits those children
to the same bounded pool, so a pruned directory is never listed at all.

Soft failures (missing roots, unreadable subtrees, enrichment errors) are
collected as warnings and never stop the scan. A ``CatalogError`` raised by
the catalog is fatal and propagates to the caller.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Set, Tuple, Union

from config.scan_config import ScanConfig, expand_root
from utils.error_handling import ErrorCollector
from utils.timing import PhaseTimer

from .enrichers import Enricher, EnrichmentContext, build_enrichers
from .ignore_rules import IgnoreMatcher, IgnoreScope
from .metrics import compute_directory_metrics
from .models import ProjectRecord, ScanReport
from .project_detector import Classification, ProjectDetector

logger = logging.getLogger(__name__)

# How often the coordinator re-checks cancellation while workers are busy
POLL_INTERVAL_SECONDS = 0.1

ProgressCallback = Callable[[str, int], None]
ChildList = List[Tuple[Path, IgnoreScope]]


@dataclass
class ScanOptions:
    """Per-invocation scan options.

    Attributes:
        dry_run: Run the full pipeline but skip catalog writes.
        roots: Override for ``ScanConfig.roots``.
        timeout: Seconds after which no new directory is started.
        cancel_event: Setting it stops the scan the same way a timeout does.
        progress_callback: Called with ``(path, count)`` for each project found.
    """

    dry_run: bool = False
    roots: Optional[Sequence[Union[str, Path]]] = None
    timeout: Optional[float] = None
    cancel_event: Optional[threading.Event] = None
    progress_callback: Optional[ProgressCallback] = None


class _ScanState:
    """Mutable bookkeeping for one scan, shared by worker threads."""

    def __init__(self, options: ScanOptions):
        self.options = options
        self.collector = ErrorCollector("scan")
        self.timer = PhaseTimer({"dry_run": options.dry_run})
        self.deadline = (
            time.monotonic() + options.timeout if options.timeout is not None else None
        )
        self.count = 0
        self.directories_visited = 0
        self.projects: List[ProjectRecord] = []
        self._lock = threading.Lock()

    def directory_visited(self) -> None:
        with self._lock:
            self.directories_visited += 1

    def project_found(self, record: ProjectRecord) -> int:
        with self._lock:
            self.count += 1
            self.projects.append(record)
            return self.count

    def should_stop(self) -> bool:
        event = self.options.cancel_event
        if event is not None and event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline


class Scanner:
    """Bounded-concurrency project scanner.

    Args:
        config: Effective configuration for this scan.
        catalog: Object with ``upsert(record) -> int``; may be None for dry runs.
        matcher: Ignore matcher; built from ``config`` when omitted.
        detector: Project detector; default marker rules when omitted.
        enrichers: Enrichers to run; built from ``config.enrichers`` when None.
        user_ignore_files: User-level ignore files for the default matcher.
    """

    def __init__(
        self,
        config: ScanConfig,
        catalog=None,
        matcher: Optional[IgnoreMatcher] = None,
        detector: Optional[ProjectDetector] = None,
        enrichers: Optional[Sequence[Enricher]] = None,
        user_ignore_files: Sequence[Path] = (),
    ):
        self.config = config
        self.catalog = catalog
        self.matcher = matcher or IgnoreMatcher(
            global_patterns=config.global_ignores,
            user_ignore_files=user_ignore_files,
            skip_hidden=config.skip_hidden,
        )
        self.detector = detector or ProjectDetector()
        self.enrichers: List[Enricher] = (
            list(enrichers) if enrichers is not None else build_enrichers(config)
        )

    # ---- public API ---------------------------------------------------

    def scan(self, options: Optional[ScanOptions] = None) -> ScanReport:
        """Scan every root and return the report.

        Raises:
            ValueError: A non-dry-run scan was requested without a catalog.
            CatalogError: The catalog failed; the scan is aborted.
        """
        options = options or ScanOptions()
        if not options.dry_run and self.catalog is None:
            raise ValueError("A catalog is required unless dry_run is set")

        roots = (
            [expand_root(root) for root in options.roots]
            if options.roots is not None
            else list(self.config.roots)
        )
        state = _ScanState(options)
        started = time.perf_counter()

        logger.info(
            "Scan started",
            extra={
                "event": "scan.start",
                "roots": [str(root) for root in roots],
                "dry_run": options.dry_run,
                "concurrency": self.config.concurrency,
                "enrichers": [enricher.name for enricher in self.enrichers],
            },
        )

        cancelled = self._run(roots, state)

        timings = state.timer.totals()
        report = ScanReport(
            count=state.count,
            dry_run=options.dry_run,
            cancelled=cancelled,
            directories_visited=state.directories_visited,
            warnings=list(state.collector.entries),
            projects=list(state.projects),
            timings=timings,
        )
        logger.info(
            "Scan finished: %d project(s), %d warning(s)",
            report.count,
            len(report.warnings),
            extra={
                "event": "scan.complete",
                "count": report.count,
                "dry_run": report.dry_run,
                "cancelled": report.cancelled,
                "directories_visited": report.directories_visited,
                "warnings": len(report.warnings),
                "timings": {phase: round(value, 4) for phase, value in timings.items()},
                "duration": round(time.perf_counter() - started, 4),
            },
        )
        return report

    # ---- coordination -------------------------------------------------

    def _run(self, roots: List[Path], state: _ScanState) -> bool:
        """Drive the worker pool; returns True when the scan was cut short."""
        stopping = False
        pending: Set[Future] = set()

        with ThreadPoolExecutor(
            max_workers=self.config.concurrency, thread_name_prefix="scan"
        ) as executor:
            try:
                for root in roots:
                    if not root.is_dir():
                        state.collector.add_error(
                            str(root),
                            f"Scan root does not exist or is not a directory: {root}",
                            kind="root_missing",
                            event="scan.root_missing",
                        )
                        continue
                    pending.add(executor.submit(self._visit, root.resolve(), None, state))

                while pending:
                    done, pending = wait(
                        pending, timeout=POLL_INTERVAL_SECONDS, return_when=FIRST_COMPLETED
                    )
                    if not stopping and state.should_stop():
                        stopping = True
                        state.collector.add_error(
                            "scan",
                            "Scan stopped before completion; results are partial",
                            kind="cancelled",
                        )
                        for future in pending:
                            future.cancel()

                    for future in done:
                        if future.cancelled():
                            continue
                        children = future.result()
                        if stopping:
                            continue
                        for child, scope in children:
                            pending.add(executor.submit(self._visit, child, scope, state))
            except Exception:
                for future in pending:
                    future.cancel()
                raise

        return stopping

    # ---- per-directory work -------------------------------------------

    def _read_entries(self, directory: Path) -> List[os.DirEntry]:
        """List one directory. Every directory the scan visits goes through here."""
        with os.scandir(directory) as it:
            return list(it)

    def _visit(
        self,
        directory: Path,
        parent_scope: Optional[IgnoreScope],
        state: _ScanState,
    ) -> ChildList:
        entries: Optional[List[os.DirEntry]] = None
        with state.timer.measure("walk"):
            with state.collector.catch(str(directory), kind="io", catch=(OSError,)):
                entries = self._read_entries(directory)
        if entries is None:
            return []

        state.directory_visited()
        names = [entry.name for entry in entries]
        if parent_scope is None:
            scope = self.matcher.root_scope(directory, names)
        else:
            scope = self.matcher.enter(directory, parent_scope, names)

        classification = self.detector.classify(names)
        if classification.is_catalogued:
            self._catalog_project(directory, scope, classification, state)
            if not self.config.descend_into_projects:
                return []

        children: ChildList = []
        for entry in entries:
            try:
                if not entry.is_dir(follow_symlinks=False):
                    continue
            except OSError:
                continue
            child = Path(entry.path)
            if self.matcher.should_prune(child, True, scope):
                logger.debug("Pruned %s", child)
                continue
            children.append((child, scope))
        return children

    def _catalog_project(
        self,
        directory: Path,
        scope: IgnoreScope,
        classification: Classification,
        state: _ScanState,
    ) -> None:
        record = ProjectRecord(
            name=directory.name or str(directory),
            path=str(directory),
            project_type=(
                classification.project_type.value
                if classification.project_type is not None
                else None
            ),
            is_git_repo=classification.is_git_repo,
        )

        with state.timer.measure("metrics"):
            metrics = compute_directory_metrics(
                directory, self.matcher, scope, self.config.size_mode
            )
        record.files_count = metrics.files_count
        record.size_bytes = metrics.size_bytes
        record.last_edited_at = metrics.latest_mtime

        context = EnrichmentContext(
            path=directory, matcher=self.matcher, scope=scope, config=self.config
        )
        for enricher in self.enrichers:
            with state.timer.measure("enrich", {"enricher": enricher.name}):
                with state.collector.catch(str(directory), kind="enrichment"):
                    enricher.enrich(record, context)

        if not state.options.dry_run:
            with state.timer.measure("upsert"):
                self.catalog.upsert(record)

        count = state.project_found(record)
        logger.debug(
            "Catalogued %s",
            record.path,
            extra={
                "event": "scan.project",
                "path": record.path,
                "project_type": record.project_type,
                "is_git_repo": record.is_git_repo,
                "dry_run": state.options.dry_run,
            },
        )
        if state.options.progress_callback is not None:
            state.options.progress_callback(record.path, count)
