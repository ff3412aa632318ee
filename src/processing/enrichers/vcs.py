"""Git metadata for catalogued repositories.

Reads are done with ``pygit2``. When the native read fails and the CLI
fallback is enabled, the same fields are read by running ``git`` itself.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from subprocess import CalledProcessError, check_output
from typing import List, Optional

import pygit2

from ..models import GitInfo, ProjectRecord
from .base import Enricher, EnrichmentContext, EnrichmentError

logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 10
DEFAULT_REMOTE = "origin"


class VcsEnricher(Enricher):
    """Fills ``record.git`` and raises ``last_edited_at`` to the last commit time."""

    name = "vcs"

    def __init__(self, use_cli_fallback: bool = False, git_executable: str = "git"):
        self.use_cli_fallback = use_cli_fallback
        self.git_executable = git_executable

    def enrich(self, record: ProjectRecord, context: EnrichmentContext) -> None:
        if not record.is_git_repo:
            return

        try:
            info = self.read_native(context.path)
        except EnrichmentError as exc:
            if not self.use_cli_fallback:
                raise
            logger.debug("Native git read failed for %s, using git CLI: %s", context.path, exc)
            info = self.read_cli(context.path)

        record.git = info
        if info.last_commit_at is not None and (
            record.last_edited_at is None or info.last_commit_at > record.last_edited_at
        ):
            record.last_edited_at = info.last_commit_at

    # ---- native -------------------------------------------------------

    def read_native(self, path: Path) -> GitInfo:
        try:
            repo = pygit2.Repository(str(path))
        except (pygit2.GitError, KeyError, ValueError) as exc:
            raise EnrichmentError(f"Unable to open git repository {path}: {exc}") from exc

        try:
            if repo.head_is_unborn:
                last_commit_at = None
                branch = _unborn_branch(repo)
            else:
                commit = repo.head.peel(pygit2.Commit)
                last_commit_at = int(commit.commit_time)
                branch = None if repo.head_is_detached else repo.head.shorthand
        except (pygit2.GitError, KeyError, ValueError) as exc:
            raise EnrichmentError(f"Unable to read HEAD of {path}: {exc}") from exc

        return GitInfo(
            last_commit_at=last_commit_at,
            branch=branch,
            remote_url=_remote_url(repo, DEFAULT_REMOTE),
        )

    # ---- CLI fallback -------------------------------------------------

    def _git(self, args: List[str], cwd: Path) -> str:
        return check_output(
            [self.git_executable, *args],
            cwd=str(cwd),
            text=True,
            stderr=subprocess.DEVNULL,
            timeout=GIT_TIMEOUT_SECONDS,
        ).strip()

    def _git_optional(self, args: List[str], cwd: Path) -> Optional[str]:
        try:
            out = self._git(args, cwd)
        except (CalledProcessError, subprocess.TimeoutExpired):
            return None
        return out or None

    def read_cli(self, path: Path) -> GitInfo:
        try:
            inside = self._git(["rev-parse", "--is-inside-work-tree"], path)
        except (CalledProcessError, subprocess.TimeoutExpired) as exc:
            raise EnrichmentError(f"git CLI does not recognize {path} as a repository") from exc
        except OSError as exc:
            raise EnrichmentError(f"Unable to run {self.git_executable}: {exc}") from exc
        if inside.lower() != "true":
            raise EnrichmentError(f"{path} is not a git work tree")

        # Each of these may legitimately fail (unborn HEAD, no remote).
        last_commit = self._git_optional(["log", "-1", "--format=%ct"], path)
        branch = self._git_optional(["rev-parse", "--abbrev-ref", "HEAD"], path)
        remote_url = self._git_optional(
            ["config", "--get", f"remote.{DEFAULT_REMOTE}.url"], path
        )

        try:
            last_commit_at = int(last_commit) if last_commit else None
        except ValueError:
            last_commit_at = None

        return GitInfo(
            last_commit_at=last_commit_at,
            branch=None if branch == "HEAD" else branch,
            remote_url=remote_url,
        )


def _unborn_branch(repo: "pygit2.Repository") -> Optional[str]:
    target = repo.references["HEAD"].target
    if isinstance(target, str) and target.startswith("refs/heads/"):
        return target[len("refs/heads/"):]
    return None


def _remote_url(repo: "pygit2.Repository", name: str) -> Optional[str]:
    try:
        return repo.remotes[name].url
    except (KeyError, ValueError, pygit2.GitError):
        return None
