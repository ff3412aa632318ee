"""File-level metrics for a catalogued directory."""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from config.scan_config import SizeMode
from utils.error_handling import timed

from .ignore_rules import IgnoreMatcher, IgnoreScope

logger = logging.getLogger(__name__)


@dataclass
class DirectoryMetrics:
    files_count: int = 0
    size_bytes: Optional[int] = None
    latest_mtime: Optional[int] = None


def iter_project_files(
    root: Path,
    matcher: IgnoreMatcher,
    scope: IgnoreScope,
) -> Iterator[Tuple[Path, os.stat_result]]:
    """Yield ``(path, stat)`` for every regular file under ``root`` not ignored.

    ``scope`` must already include ``root``'s own ignore files. Symlinks are not
    followed; unreadable subdirectories are skipped with a debug log.
    """
    stack: List[Tuple[Path, IgnoreScope]] = [(root, scope)]
    while stack:
        directory, dir_scope = stack.pop()
        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as exc:
            logger.debug("Skipping unreadable directory %s: %s", directory, exc)
            continue

        if directory != root:
            dir_scope = matcher.enter(directory, dir_scope, (e.name for e in entries))

        for entry in entries:
            path = Path(entry.path)
            try:
                if entry.is_dir(follow_symlinks=False):
                    if not matcher.should_prune(path, True, dir_scope):
                        stack.append((path, dir_scope))
                    continue
                if not entry.is_file(follow_symlinks=False):
                    continue
                if matcher.should_prune(path, False, dir_scope):
                    continue
                st = entry.stat(follow_symlinks=False)
            except OSError as exc:
                logger.debug("Unable to stat %s: %s", path, exc)
                continue
            if stat.S_ISREG(st.st_mode):
                yield path, st


@timed
def compute_directory_metrics(
    root: Path,
    matcher: IgnoreMatcher,
    scope: IgnoreScope,
    size_mode: SizeMode,
) -> DirectoryMetrics:
    """Count files and, in exact mode, sum their sizes; track the newest mtime."""
    files_count = 0
    total_size = 0
    latest_mtime = 0

    for _path, st in iter_project_files(root, matcher, scope):
        files_count += 1
        total_size += st.st_size
        latest_mtime = max(latest_mtime, int(st.st_mtime))

    return DirectoryMetrics(
        files_count=files_count,
        size_bytes=total_size if size_mode is SizeMode.EXACT_CACHED else None,
        latest_mtime=latest_mtime if latest_mtime > 0 else None,
    )
