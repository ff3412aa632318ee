"""Processing module for project discovery.

This module contains:
- Layered ignore matching (global, user and per-directory ignore files)
- Marker-file project detection
- File metrics and optional metadata enrichers (VCS, lines of code)
- The bounded-concurrency scanner that ties them together

Key components:
- Scanner / ScanOptions: run one scan over the configured roots
- IgnoreMatcher: decides which directories are pruned
- ProjectDetector: classifies a directory from its entry names
"""

from .ignore_rules import IgnoreMatcher, IgnoreScope
from .models import GitInfo, ProjectRecord, ScanReport, ScanWarning
from .project_detector import Classification, ProjectDetector, ProjectType
from .scanner import ScanOptions, Scanner

__all__ = [
    "Classification",
    "GitInfo",
    "IgnoreMatcher",
    "IgnoreScope",
    "ProjectDetector",
    "ProjectRecord",
    "ProjectType",
    "ScanOptions",
    "ScanReport",
    "ScanWarning",
    "Scanner",
]
