"""Background scan worker for the desktop layer."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional, Sequence

from PyQt6.QtCore import QThread, pyqtSignal

from config.scan_config import ScanConfig
from database.catalog import Catalog
from processing.models import ScanReport
from services.catalog_service import run_scan
from utils.error_handling import handle_worker_error

logger = logging.getLogger(__name__)


class ScanWorker(QThread):
    """Runs a scan off the UI thread.

    The caller owns the catalog handle and the effective configuration; the
    worker only borrows them for the duration of ``run``.

    Signals:
        progress: Emitted with (project_path, projects_so_far) per project
        warning: Emitted with a message for every soft failure
        finished: Emitted with the final project count
        failed: Emitted with a user-facing message when the scan aborted
    """

    progress = pyqtSignal(str, int)
    warning = pyqtSignal(str)
    finished = pyqtSignal(int)
    failed = pyqtSignal(str)

    def __init__(
        self,
        catalog: Optional[Catalog],
        config: ScanConfig,
        roots: Optional[Sequence[Path]] = None,
        dry_run: bool = False,
        user_ignore_files: Optional[Sequence[Path]] = None,
        parent=None,
    ):
        super().__init__(parent)
        self.catalog = catalog
        self.config = config
        self.roots = list(roots) if roots is not None else None
        self.dry_run = dry_run
        self.user_ignore_files = user_ignore_files
        self.report: Optional[ScanReport] = None
        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """Ask the scan to stop starting new directories."""
        self._cancel_event.set()

    def run(self):
        """Execute the scan in the background thread."""
        try:
            report = run_scan(
                self.catalog,
                roots=self.roots,
                dry_run=self.dry_run,
                config=self.config,
                cancel_event=self._cancel_event,
                progress_callback=self._emit_progress,
                user_ignore_files=self.user_ignore_files,
            )
        except Exception as e:
            roots = self.roots if self.roots is not None else list(self.config.roots)
            self.failed.emit(handle_worker_error(e, "Scan failed", *roots))
            return

        self.report = report
        for entry in report.warnings:
            self.warning.emit(entry.message)
        self.finished.emit(report.count)

    def _emit_progress(self, path: str, count: int):
        self.progress.emit(path, count)
