"""Session helpers for the catalog database.

SQLAlchemy sessions are NOT thread-safe. Scanner workers and query callers
each open their own short-lived session through ``session_scope``; never share
a session across threads.

Usage:
    from database.session import session_scope

    with session_scope(catalog.session_factory) as session:
        repo = CatalogProjectRepository(session)
        repo.upsert(record)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]

__all__ = [
    "SessionFactory",
    "session_scope",
]


@contextmanager
def session_scope(factory: SessionFactory) -> Iterator[Session]:
    """Context manager for commit/rollback semantics around a session factory."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.debug(f"Session rolled back: {e}")
        raise
    finally:
        session.close()
