"""
Project Detector Module

Classifies a single directory as a project from the names of the entries it
contains. A project root is identified by marker files (package manifests,
build configurations); version-control metadata is tracked independently.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Set, Tuple, Union

logger = logging.getLogger(__name__)

VCS_METADATA_NAMES: Tuple[str, ...] = (".git",)


class ProjectType(str, Enum):
    RUST = "rust"
    NODE = "node"
    PYTHON = "python"
    GO = "go"
    JAVA = "java"
    DOTNET = ".net"
    RUBY = "ruby"
    PHP = "php"
    TERRAFORM = "terraform"
    ANSIBLE = "ansible"


@dataclass(frozen=True)
class MarkerRule:
    """A set of marker names that must *all* be present to yield ``project_type``.

    Markers may be exact file names or ``fnmatch`` globs such as ``*.csproj``.
    """

    markers: Tuple[str, ...]
    project_type: ProjectType

    def matches(self, names: Set[str]) -> bool:
        return all(_marker_present(marker, names) for marker in self.markers)


def _marker_present(marker: str, names: Set[str]) -> bool:
    if not any(ch in marker for ch in "*?["):
        return marker in names
    return any(fnmatch.fnmatchcase(name, marker) for name in names)


# Declaration order is the tie-break: the first matching rule wins.
DEFAULT_RULES: Tuple[MarkerRule, ...] = (
    MarkerRule(("Cargo.toml",), ProjectType.RUST),
    MarkerRule(("package.json",), ProjectType.NODE),
    MarkerRule(("pyproject.toml",), ProjectType.PYTHON),
    MarkerRule(("setup.py",), ProjectType.PYTHON),
    MarkerRule(("requirements.txt",), ProjectType.PYTHON),
    MarkerRule(("Pipfile",), ProjectType.PYTHON),
    MarkerRule(("go.mod",), ProjectType.GO),
    MarkerRule(("pom.xml",), ProjectType.JAVA),
    MarkerRule(("build.gradle",), ProjectType.JAVA),
    MarkerRule(("build.gradle.kts",), ProjectType.JAVA),
    MarkerRule(("gradlew",), ProjectType.JAVA),
    MarkerRule(("global.json",), ProjectType.DOTNET),
    MarkerRule(("*.csproj",), ProjectType.DOTNET),
    MarkerRule(("*.sln",), ProjectType.DOTNET),
    MarkerRule(("Gemfile",), ProjectType.RUBY),
    MarkerRule(("composer.json",), ProjectType.PHP),
    MarkerRule(("*.tf",), ProjectType.TERRAFORM),
    MarkerRule(("ansible.cfg",), ProjectType.ANSIBLE),
    MarkerRule(("playbook.yml", "inventory"), ProjectType.ANSIBLE),
)


@dataclass(frozen=True)
class Classification:
    project_type: Optional[ProjectType] = None
    is_git_repo: bool = False

    @property
    def is_catalogued(self) -> bool:
        """A directory is catalogued when it has a type or VCS metadata."""
        return self.project_type is not None or self.is_git_repo


DirectoryEntry = Union[str, "os.DirEntry[str]"]


class ProjectDetector:
    """Evaluates an ordered list of marker rules against a directory listing."""

    def __init__(self, rules: Iterable[MarkerRule] = DEFAULT_RULES):
        self.rules: Tuple[MarkerRule, ...] = tuple(rules)

    def classify(self, entries: Iterable[DirectoryEntry]) -> Classification:
        """Classify a directory from its entries (names or ``os.DirEntry``).

        The result depends only on the set of names, never on listing order.
        """
        names = {entry if isinstance(entry, str) else entry.name for entry in entries}

        project_type: Optional[ProjectType] = None
        for rule in self.rules:
            if rule.matches(names):
                project_type = rule.project_type
                break

        # .git may be a directory or, for worktrees and submodules, a file
        is_git_repo = any(name in names for name in VCS_METADATA_NAMES)
        return Classification(project_type=project_type, is_git_repo=is_git_repo)
