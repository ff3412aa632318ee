"""Data models produced by the scanner and consumed by the catalog."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from utils.error_handling import CollectedError

# Soft scan failure: subject is the affected path, kind one of
# root_missing / io / enrichment / cancelled.
ScanWarning = CollectedError


@dataclass
class GitInfo:
    last_commit_at: Optional[int] = None
    branch: Optional[str] = None
    remote_url: Optional[str] = None


@dataclass
class ProjectRecord:
    """One detected project directory, ready to be upserted into the catalog."""

    name: str
    path: str
    project_type: Optional[str] = None
    is_git_repo: bool = False
    size_bytes: Optional[int] = None
    files_count: Optional[int] = None
    last_edited_at: Optional[int] = None
    loc: Optional[int] = None
    git: Optional[GitInfo] = None
    loc_by_language: Optional[Dict[str, int]] = None


@dataclass
class ScanReport:
    """Outcome of one scan invocation.

    ``count`` is the number of projects upserted, or in dry-run mode the number
    that would have been upserted.
    """

    count: int = 0
    dry_run: bool = False
    cancelled: bool = False
    directories_visited: int = 0
    warnings: List[ScanWarning] = field(default_factory=list)
    projects: List[ProjectRecord] = field(default_factory=list)
    timings: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            "count": self.count,
            "dry_run": self.dry_run,
            "cancelled": self.cancelled,
            "directories_visited": self.directories_visited,
            "warnings": [warning.to_dict() for warning in self.warnings],
            "timings": dict(self.timings),
        }
