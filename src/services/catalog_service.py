"""Scan and query entry points shared by the CLI and the desktop layer.

Both callers own a ``Catalog`` handle and pass it in; this module never opens
or closes one.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from config.config_store import ConfigError, ConfigResolver, ConfigStore
from config.scan_config import ScanConfig
from database.catalog import DEFAULT_PAGE_SIZE, Catalog, ProjectsPage
from processing.models import ScanReport
from processing.scanner import ProgressCallback, ScanOptions, Scanner

logger = logging.getLogger(__name__)


def load_scan_config(
    overrides: Optional[Dict[str, Any]] = None,
    config_path: Optional[Path] = None,
) -> Tuple[ScanConfig, Optional[ConfigError]]:
    """Resolve the effective configuration.

    A malformed persisted file does not fail: defaults are used and the error
    is returned alongside so the caller can display it. Invalid overrides
    still raise ``ConfigError``.
    """
    resolver = ConfigResolver(config_path)
    config = resolver.effective(overrides)
    return config, resolver.last_error


def run_scan(
    catalog: Optional[Catalog],
    roots: Optional[Sequence[Union[str, Path]]] = None,
    dry_run: bool = False,
    config: Optional[ScanConfig] = None,
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
    progress_callback: Optional[ProgressCallback] = None,
    user_ignore_files: Optional[Sequence[Path]] = None,
) -> ScanReport:
    """Scan ``roots`` (or the configured roots) into ``catalog``.

    ``report.count`` is the number of projects upserted, or in dry-run mode
    the number that would have been. After a real scan, rows whose directory
    has disappeared are flagged stale (never deleted).
    """
    if config is None:
        config, config_error = load_scan_config()
        if config_error is not None:
            logger.warning("Using default configuration: %s", config_error)
    if user_ignore_files is None:
        user_ignore_files = ConfigStore.ignore_file_paths()

    scanner = Scanner(config, catalog=catalog, user_ignore_files=user_ignore_files)
    report = scanner.scan(
        ScanOptions(
            dry_run=dry_run,
            roots=roots,
            timeout=timeout,
            cancel_event=cancel_event,
            progress_callback=progress_callback,
        )
    )

    if not dry_run and catalog is not None:
        catalog.refresh_stale()
    return report


def query_projects(
    catalog: Catalog,
    text: str = "",
    sort_key: str = "recent",
    direction: str = "desc",
    page: int = 0,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> ProjectsPage:
    """Filtered, sorted, paginated read; raises ``QueryError`` on invalid input."""
    return catalog.query(
        filter_text=text,
        sort_key=sort_key,
        direction=direction,
        page=page,
        page_size=page_size,
    )
