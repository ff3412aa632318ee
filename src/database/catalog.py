"""Catalog handle: the persistent store of project rows and its query engine.

A ``Catalog`` is opened by the owning process and passed to scans and
queries; there is no module-level instance. Writes from concurrent scanner
workers are serialized by a per-handle lock, each upsert in its own
transaction, so an interrupted scan loses only uncommitted rows. Queries open
their own session and may run while a scan is writing.
"""

from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager, nullcontext
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from processing.models import GitInfo, ProjectRecord

from .catalog_base import create_catalog_engine, default_catalog_path, init_catalog_db
from .catalog_models import CatalogProject
from .catalog_repository import CatalogProjectRepository
from .session import session_scope

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50


class CatalogError(Exception):
    """The catalog store failed or is unusable."""


class QueryError(ValueError):
    """A query was issued with invalid parameters."""


class SortKey(str, Enum):
    RECENT = "recent"
    SIZE = "size"
    NAME = "name"
    TYPE = "type"
    LOC = "loc"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: Union[str, "SortDirection"]) -> "SortDirection":
        if isinstance(value, cls):
            return value
        aliases = {"ascending": cls.ASC, "descending": cls.DESC}
        text = str(value).lower()
        if text in aliases:
            return aliases[text]
        return cls(text)


@dataclass
class ProjectRow:
    """A catalog row as returned to callers (detached from any session)."""

    id: int
    name: str
    path: str
    project_type: Optional[str] = None
    is_git_repo: bool = False
    size_bytes: Optional[int] = None
    files_count: Optional[int] = None
    last_edited_at: Optional[int] = None
    loc: Optional[int] = None
    is_stale: bool = False
    git: Optional[GitInfo] = None
    loc_by_language: Optional[Dict[str, int]] = None

    @classmethod
    def from_model(cls, project: CatalogProject, details: bool = False) -> "ProjectRow":
        row = cls(
            id=project.id,
            name=project.name,
            path=project.path,
            project_type=project.project_type,
            is_git_repo=bool(project.is_git_repo),
            size_bytes=project.size_bytes,
            files_count=project.files_count,
            last_edited_at=project.last_edited_at,
            loc=project.loc,
            is_stale=bool(project.is_stale),
        )
        if details:
            if project.git_info is not None:
                row.git = GitInfo(
                    last_commit_at=project.git_info.last_commit_at,
                    branch=project.git_info.branch,
                    remote_url=project.git_info.remote_url,
                )
            if project.languages:
                row.loc_by_language = {lang.language: lang.lines for lang in project.languages}
        return row

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.git is None:
            data.pop("git")
        if self.loc_by_language is None:
            data.pop("loc_by_language")
        return data


@dataclass
class ProjectsPage:
    items: List[ProjectRow] = field(default_factory=list)
    page: int = 0
    page_size: int = DEFAULT_PAGE_SIZE
    total_count: int = 0

    @property
    def page_count(self) -> int:
        return -(-self.total_count // self.page_size) if self.total_count else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "page": self.page,
            "page_size": self.page_size,
            "total_count": self.total_count,
        }


def _validate_page(page: Any, page_size: Any) -> None:
    if isinstance(page, bool) or not isinstance(page, int) or page < 0:
        raise QueryError(f"page must be a non-negative integer, got {page!r}")
    if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
        raise QueryError(f"page_size must be a positive integer, got {page_size!r}")


class Catalog:
    """Explicit handle over one catalog database."""

    def __init__(self, engine: Engine, path: Optional[Path] = None, shared_connection: bool = False):
        self.engine: Optional[Engine] = engine
        self.path = path
        self.session_factory = sessionmaker(bind=engine, autoflush=False)
        self._write_lock = threading.Lock()
        # An in-memory catalog has a single connection; reads must not interleave with writes
        self._read_guard: Callable[[], Any] = (
            (lambda: self._write_lock) if shared_connection else nullcontext
        )

    # ---- lifecycle ----------------------------------------------------

    @classmethod
    def open(cls, path: Optional[Union[str, Path]] = None) -> "Catalog":
        """Open (creating if needed) the catalog at ``path`` or the default location."""
        db_path = Path(path) if path is not None else default_catalog_path()
        try:
            engine = create_catalog_engine(db_path)
            init_catalog_db(engine)
        except (SQLAlchemyError, OSError) as exc:
            raise CatalogError(f"Unable to open catalog at {db_path}: {exc}") from exc
        logger.debug("Catalog opened at %s", db_path)
        return cls(engine, path=db_path)

    @classmethod
    def in_memory(cls) -> "Catalog":
        engine = create_catalog_engine(None)
        init_catalog_db(engine)
        return cls(engine, shared_connection=True)

    @property
    def closed(self) -> bool:
        return self.engine is None

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            logger.debug("Catalog closed (%s)", self.path or "in-memory")

    def __enter__(self) -> "Catalog":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @contextmanager
    def _session(self, operation: str) -> Iterator[CatalogProjectRepository]:
        if self.engine is None:
            raise CatalogError(f"Catalog is closed ({operation})")
        try:
            with session_scope(self.session_factory) as session:
                yield CatalogProjectRepository(session)
        except SQLAlchemyError as exc:
            raise CatalogError(f"Catalog {operation} failed: {exc}") from exc

    # ---- writes -------------------------------------------------------

    def upsert(self, record: ProjectRecord) -> int:
        """Insert or replace the row for ``record.path``; returns the stable id."""
        with self._write_lock:
            with self._session("upsert") as repo:
                return repo.upsert(record).id

    def refresh_stale(self, path_exists: Callable[[str], bool] = os.path.isdir) -> int:
        """Mark rows whose directory no longer exists; returns the stale count."""
        with self._write_lock:
            with self._session("refresh_stale") as repo:
                stale = repo.refresh_stale(path_exists)
        if stale:
            logger.info("%d catalogued project(s) no longer exist on disk", stale,
                        extra={"event": "catalog.stale", "count": stale})
        return stale

    def prune_stale(self) -> int:
        """Delete rows currently marked stale; returns how many were removed."""
        with self._write_lock:
            with self._session("prune_stale") as repo:
                removed = repo.delete_stale()
        logger.info("Pruned %d stale project(s)", removed,
                    extra={"event": "catalog.prune", "count": removed})
        return removed

    # ---- reads --------------------------------------------------------

    def get(self, path: Union[str, Path]) -> Optional[ProjectRow]:
        with self._read_guard():
            with self._session("get") as repo:
                project = repo.get_with_details(str(path))
                return ProjectRow.from_model(project, details=True) if project else None

    def count(self, filter_text: str = "") -> int:
        with self._read_guard():
            with self._session("count") as repo:
                return repo.count(filter_text)

    def query(
        self,
        filter_text: str = "",
        sort_key: Union[str, SortKey] = SortKey.RECENT,
        direction: Union[str, SortDirection] = SortDirection.DESC,
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> ProjectsPage:
        """Return one page of the filtered, sorted project set.

        Raises:
            QueryError: Unknown sort key or direction, negative page, or a
                page size that is not a positive integer.
            CatalogError: The store failed.
        """
        try:
            key = SortKey(sort_key)
        except ValueError:
            raise QueryError(
                f"Unknown sort key {sort_key!r}; expected one of {[k.value for k in SortKey]}"
            ) from None
        try:
            order = SortDirection.parse(direction)
        except ValueError:
            raise QueryError(
                f"Unknown sort direction {direction!r}; expected 'asc' or 'desc'"
            ) from None
        _validate_page(page, page_size)

        with self._read_guard():
            with self._session("query") as repo:
                rows, total = repo.page(
                    filter_text or "",
                    key.value,
                    order is SortDirection.DESC,
                    page,
                    page_size,
                )
                items = [ProjectRow.from_model(row) for row in rows]

        return ProjectsPage(items=items, page=page, page_size=page_size, total_count=total)
