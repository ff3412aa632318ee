"""Catalog database models."""

from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .catalog_base import CatalogBase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogProject(CatalogBase):
    """One detected project directory, keyed by its absolute path."""

    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    path = Column(String(4096), nullable=False, unique=True)
    project_type = Column(String(32), nullable=True)
    is_git_repo = Column(Boolean, nullable=False, default=False)
    size_bytes = Column(BigInteger, nullable=True)
    files_count = Column(Integer, nullable=True)
    last_edited_at = Column(BigInteger, nullable=True)  # unix seconds
    loc = Column(BigInteger, nullable=True)
    is_stale = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    git_info = relationship(
        "CatalogGitInfo",
        uselist=False,
        back_populates="project",
        cascade="all, delete-orphan",
    )
    languages = relationship(
        "CatalogLanguageLoc",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="CatalogLanguageLoc.language",
    )

    __table_args__ = (
        Index("ix_projects_last_edited_at", "last_edited_at"),
        Index("ix_projects_is_stale", "is_stale"),
    )

    def __repr__(self) -> str:
        return f"<CatalogProject(id={self.id}, path='{self.path}', type={self.project_type})>"


class CatalogGitInfo(CatalogBase):
    """VCS details for a project that is a git repository."""

    __tablename__ = "git_info"

    project_id = Column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True
    )
    last_commit_at = Column(BigInteger, nullable=True)
    branch = Column(String(255), nullable=True)
    remote_url = Column(String(2048), nullable=True)

    project = relationship("CatalogProject", back_populates="git_info")


class CatalogLanguageLoc(CatalogBase):
    """Code lines per language for a project."""

    __tablename__ = "loc_languages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    language = Column(String(64), nullable=False)
    lines = Column(BigInteger, nullable=False, default=0)

    project = relationship("CatalogProject", back_populates="languages")

    __table_args__ = (
        UniqueConstraint("project_id", "language", name="uq_loc_languages_project_language"),
    )
