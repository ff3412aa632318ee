"""Line-of-code counting per language."""

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, Optional, Tuple

from config.scan_config import DEFAULT_LOC_MAX_FILE_BYTES

from ..ignore_rules import IgnoreMatcher, IgnoreScope
from ..metrics import iter_project_files
from ..models import ProjectRecord
from .base import Enricher, EnrichmentContext

logger = logging.getLogger(__name__)

LANGUAGE_MAP: Dict[str, str] = {
    ".py": "Python",
    ".pyi": "Python",
    ".js": "JavaScript",
    ".mjs": "JavaScript",
    ".cjs": "JavaScript",
    ".jsx": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".java": "Java",
    ".kt": "Kotlin",
    ".kts": "Kotlin",
    ".scala": "Scala",
    ".c": "C",
    ".h": "C",
    ".cpp": "C++",
    ".cc": "C++",
    ".cxx": "C++",
    ".hpp": "C++",
    ".cs": "C#",
    ".fs": "F#",
    ".go": "Go",
    ".rs": "Rust",
    ".rb": "Ruby",
    ".php": "PHP",
    ".swift": "Swift",
    ".m": "Objective-C",
    ".sh": "Shell",
    ".bash": "Shell",
    ".zsh": "Shell",
    ".sql": "SQL",
    ".lua": "Lua",
    ".dart": "Dart",
    ".tf": "HCL",
    ".r": "R",
}

_SLASH = ("//",)
_HASH = ("#",)

COMMENT_PREFIXES: Dict[str, Tuple[str, ...]] = {
    "Python": _HASH,
    "Ruby": _HASH,
    "Shell": _HASH,
    "R": _HASH,
    "HCL": ("#", "//"),
    "PHP": ("//", "#"),
    "SQL": ("--",),
    "Lua": ("--",),
    "F#": _SLASH,
}


def language_for(path: Path) -> Optional[str]:
    return LANGUAGE_MAP.get(path.suffix.lower())


def count_code_lines(text: str, comment_prefixes: Tuple[str, ...]) -> int:
    """Non-blank lines that are not entirely a single-line comment."""
    count = 0
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(comment_prefixes):
            continue
        count += 1
    return count


class LocAnalyzer(Enricher):
    """Counts code lines of recognized source files under a project directory."""

    name = "loc"

    def __init__(self, max_file_bytes: int = DEFAULT_LOC_MAX_FILE_BYTES):
        self.max_file_bytes = max_file_bytes

    def enrich(self, record: ProjectRecord, context: EnrichmentContext) -> None:
        by_language = self.count_tree(context.path, context.matcher, context.scope)
        record.loc = sum(by_language.values())
        record.loc_by_language = by_language

    def count_tree(self, root: Path, matcher: IgnoreMatcher, scope: IgnoreScope) -> Dict[str, int]:
        totals: Dict[str, int] = defaultdict(int)
        for path, st in iter_project_files(root, matcher, scope):
            language = language_for(path)
            if language is None:
                continue
            if st.st_size > self.max_file_bytes:
                logger.debug("Skipping large file for LOC: %s (%d bytes)", path, st.st_size)
                continue
            lines = self.count_file(path, language)
            if lines is not None:
                totals[language] += lines
        return dict(totals)

    def count_file(self, path: Path, language: str) -> Optional[int]:
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.debug("Unable to read %s for LOC: %s", path, exc)
            return None
        return count_code_lines(text, COMMENT_PREFIXES.get(language, _SLASH))
