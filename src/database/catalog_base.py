"""Catalog database base, engine factory and default location."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from config.config_store import ConfigStore

logger = logging.getLogger(__name__)

CatalogBase = declarative_base()

BUSY_TIMEOUT_MS = 5000


def _casefold(value):
    return None if value is None else value.casefold()


def default_catalog_path() -> Path:
    return ConfigStore.catalog_path()


def _install_pragmas(engine: Engine, wal: bool) -> None:
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, _connection_record):
        # SQLite lower() only folds ASCII
        dbapi_connection.create_function("casefold", 1, _casefold, deterministic=True)
        cursor = dbapi_connection.cursor()
        try:
            if wal:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
            cursor.execute("PRAGMA foreign_keys=ON")
        finally:
            cursor.close()


def create_catalog_engine(db_path: Optional[Union[str, Path]] = None) -> Engine:
    """Create an engine for a catalog file, or a shared in-memory catalog when None.

    File catalogs run in WAL mode so queries can read while a scan writes.
    """
    if db_path is None:
        engine = create_engine(
            "sqlite://",
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        _install_pragmas(engine, wal=False)
        return engine

    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"check_same_thread": False},
    )
    _install_pragmas(engine, wal=True)
    logger.debug("Catalog engine created for %s", db_path)
    return engine


def init_catalog_db(engine: Engine) -> None:
    # Model registration happens on import
    from . import catalog_models  # noqa: F401

    CatalogBase.metadata.create_all(bind=engine)
