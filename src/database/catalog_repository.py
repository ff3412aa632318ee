"""Catalog repository helpers."""

from __future__ import annotations

import os
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Query, Session, selectinload

from processing.models import ProjectRecord

from .catalog_models import CatalogGitInfo, CatalogLanguageLoc, CatalogProject

SORT_COLUMNS = {
    "recent": CatalogProject.last_edited_at,
    "size": CatalogProject.size_bytes,
    "name": func.casefold(CatalogProject.name),
    "type": CatalogProject.project_type,
    "loc": CatalogProject.loc,
}


class CatalogProjectRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_path(self, path: str) -> Optional[CatalogProject]:
        return (
            self.session.query(CatalogProject)
            .filter(CatalogProject.path == path)
            .first()
        )

    def get_with_details(self, path: str) -> Optional[CatalogProject]:
        return (
            self.session.query(CatalogProject)
            .options(selectinload(CatalogProject.git_info), selectinload(CatalogProject.languages))
            .filter(CatalogProject.path == path)
            .first()
        )

    def upsert(self, record: ProjectRecord) -> CatalogProject:
        """Insert ``record`` or overwrite the row with the same path, keeping its id."""
        project = self.get_by_path(record.path)
        if project is None:
            project = CatalogProject(path=record.path)
            self.session.add(project)

        project.name = record.name
        project.project_type = record.project_type
        project.is_git_repo = record.is_git_repo
        project.size_bytes = record.size_bytes
        project.files_count = record.files_count
        project.last_edited_at = record.last_edited_at
        project.loc = record.loc
        project.is_stale = False

        self._replace_git_info(project, record)
        self._replace_languages(project, record.loc_by_language or {})

        self.session.flush()
        return project

    def _replace_git_info(self, project: CatalogProject, record: ProjectRecord) -> None:
        if record.git is None:
            project.git_info = None
            return
        # Update in place; the row is keyed by project_id
        info = project.git_info
        if info is None:
            info = CatalogGitInfo()
            project.git_info = info
        info.last_commit_at = record.git.last_commit_at
        info.branch = record.git.branch
        info.remote_url = record.git.remote_url

    def _replace_languages(self, project: CatalogProject, by_language: Dict[str, int]) -> None:
        existing = {row.language: row for row in project.languages}
        for language, row in existing.items():
            if language not in by_language:
                project.languages.remove(row)
        for language, lines in by_language.items():
            row = existing.get(language)
            if row is None:
                project.languages.append(CatalogLanguageLoc(language=language, lines=lines))
            else:
                row.lines = lines

    # ---- queries ------------------------------------------------------

    def _filtered(self, filter_text: str) -> Query:
        query = self.session.query(CatalogProject)
        needle = (filter_text or "").casefold()
        if needle:
            query = query.filter(
                or_(
                    func.casefold(CatalogProject.name).contains(needle, autoescape=True),
                    func.casefold(CatalogProject.path).contains(needle, autoescape=True),
                )
            )
        return query

    def count(self, filter_text: str = "") -> int:
        return self._filtered(filter_text).count()

    def page(
        self,
        filter_text: str,
        sort_key: str,
        descending: bool,
        page: int,
        page_size: int,
    ) -> Tuple[List[CatalogProject], int]:
        """Return one page of rows and the total size of the filtered set.

        Absent sort values order as the smallest value; ``id`` ascending breaks
        every tie so pages of a fixed snapshot never overlap.
        """
        column = SORT_COLUMNS[sort_key]
        present = case((column.is_(None), 0), else_=1)
        if descending:
            ordering = (present.desc(), column.desc(), CatalogProject.id.asc())
        else:
            ordering = (present.asc(), column.asc(), CatalogProject.id.asc())

        query = self._filtered(filter_text)
        total = query.count()
        rows = (
            query.order_by(*ordering)
            .offset(page * page_size)
            .limit(page_size)
            .all()
        )
        return rows, total

    # ---- stale handling -----------------------------------------------

    def refresh_stale(self, path_exists: Callable[[str], bool] = os.path.isdir) -> int:
        """Flag rows whose directory is gone and clear rows that came back."""
        stale = 0
        for project in self.session.query(CatalogProject).all():
            missing = not path_exists(project.path)
            if project.is_stale != missing:
                project.is_stale = missing
            if missing:
                stale += 1
        self.session.flush()
        return stale

    def delete_stale(self) -> int:
        stale_rows = (
            self.session.query(CatalogProject)
            .filter(CatalogProject.is_stale.is_(True))
            .all()
        )
        for project in stale_rows:
            self.session.delete(project)
        self.session.flush()
        return len(stale_rows)
