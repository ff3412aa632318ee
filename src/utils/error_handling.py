"""Standardized error handling and performance utilities.

This module provides:
1. Consistent error handling patterns for scan workers and the desktop layer
2. Performance timing decorator for profiling hot paths
3. Structured context logging for errors
4. A thread-safe collector for soft failures during batch work

Usage in QThread workers:
    from utils.error_handling import handle_worker_error

    class MyWorker(QThread):
        failed = pyqtSignal(str)

        def run(self):
            try:
                # ... do work ...
            except Exception as e:
                self.failed.emit(handle_worker_error(e, "Scan failed", self.roots))

Collecting soft failures:
    collector = ErrorCollector("scan")
    with collector.catch(str(path), kind="io"):
        entries = list(os.scandir(path))

Performance timing usage:
    from utils.error_handling import timed

    @timed
    def expensive_operation():
        ...

    # Enable timing with: PROJECT_BROWSER_PERF_DEBUG=1
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from utils.env import env_flag

logger = logging.getLogger(__name__)

PERF_DEBUG = env_flag("PERF_DEBUG")

F = TypeVar("F", bound=Callable[..., Any])


def timed(func: F) -> F:
    """Decorator to log execution time of functions.

    Only active when PROJECT_BROWSER_PERF_DEBUG=1 is set. Logs timing at
    DEBUG level to avoid noise in production.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        if not PERF_DEBUG:
            return func(*args, **kwargs)

        start = time.perf_counter()
        try:
            result = func(*args, **kwargs)
            elapsed = time.perf_counter() - start
            logger.debug(f"PERF: {func.__module__}.{func.__name__} took {elapsed:.3f}s")
            return result
        except Exception:
            elapsed = time.perf_counter() - start
            logger.debug(f"PERF: {func.__module__}.{func.__name__} failed after {elapsed:.3f}s")
            raise

    return wrapper  # type: ignore


def format_error_message(
    error: Exception,
    context: Optional[str] = None,
    include_type: bool = True,
) -> str:
    """Format an exception into a user-friendly message.

    Args:
        error: The exception that occurred
        context: Optional context describing what was being done
        include_type: Whether to include the exception type name

    Returns:
        Formatted error message suitable for display to users
    """
    error_str = str(error)

    if not error_str or error_str == "None":
        error_str = type(error).__name__
        include_type = False

    parts = []
    if context:
        parts.append(context)

    if include_type:
        parts.append(f"{type(error).__name__}: {error_str}")
    else:
        parts.append(error_str)

    return " - ".join(parts) if len(parts) > 1 else parts[0]


def log_exception(
    error: Exception,
    context: str,
    extra: Optional[dict] = None,
    level: int = logging.ERROR,
) -> None:
    """Log an exception with structured context.

    Args:
        error: The exception that occurred
        context: Description of what was being done when error occurred
        extra: Additional context to include in the log record
        level: Logging level (default ERROR)
    """
    log_extra = {"event": "error", "error_type": type(error).__name__}
    if extra:
        log_extra.update(extra)

    logger.log(level, f"{context}: {error}", extra=log_extra, exc_info=True)


def handle_worker_error(
    error: Exception,
    context: str,
    *args: Any,
) -> str:
    """Handle an error in a worker thread.

    Logs the exception with context and returns a user-friendly message
    suitable for emitting through a Qt signal.
    """
    extra = {}
    for i, arg in enumerate(args):
        extra[f"context_{i}"] = str(arg)

    log_exception(error, context, extra)

    return format_error_message(error, context)


@dataclass(frozen=True)
class CollectedError:
    """One soft failure: what it concerned, what category, and why."""

    subject: str
    kind: str
    message: str

    def to_dict(self) -> dict:
        return {"subject": self.subject, "kind": self.kind, "message": self.message}


class _Catch:
    def __init__(self, collector: "ErrorCollector", subject: str, kind: str, catch: tuple):
        self._collector = collector
        self._subject = subject
        self._kind = kind
        self._catch = catch

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_val is None:
            return False
        if not isinstance(exc_val, self._catch):
            return False
        self._collector._record(self._subject, self._kind, exc_val)
        return True


class ErrorCollector:
    """Collects errors during batch operations without stopping.

    Safe to share between worker threads: every ``catch`` call returns its own
    context manager and appends happen under a lock.

    Example:
        collector = ErrorCollector("scan")
        for path in paths:
            with collector.catch(str(path), kind="io", catch=(OSError,)):
                visit(path)

        if collector.has_errors:
            for entry in collector.entries:
                logger.warning(entry.message)
    """

    def __init__(self, operation_name: str):
        self.operation_name = operation_name
        self.entries: list[CollectedError] = []
        self._lock = threading.Lock()

    @property
    def errors(self) -> list[str]:
        with self._lock:
            return [entry.message for entry in self.entries]

    @property
    def has_errors(self) -> bool:
        with self._lock:
            return len(self.entries) > 0

    def catch(
        self,
        subject: str,
        kind: str = "error",
        catch: tuple = (Exception,),
    ) -> _Catch:
        """Context manager that records and suppresses exceptions of ``catch`` types.

        Anything outside ``catch`` propagates unchanged.
        """
        return _Catch(self, subject, kind, catch)

    def _record(self, subject: str, kind: str, error: Exception) -> None:
        message = format_error_message(error, subject)
        with self._lock:
            self.entries.append(CollectedError(subject=subject, kind=kind, message=message))
        log_exception(
            error,
            f"{self.operation_name}: {subject}",
            extra={"event": f"{self.operation_name}.warning", "kind": kind},
            level=logging.WARNING,
        )

    def add_error(
        self,
        subject: str,
        message: str,
        kind: str = "error",
        event: Optional[str] = None,
    ) -> None:
        """Manually add an error entry."""
        with self._lock:
            self.entries.append(CollectedError(subject=subject, kind=kind, message=message))
        logger.warning(
            f"{self.operation_name}: {message}",
            extra={
                "event": event or f"{self.operation_name}.warning",
                "kind": kind,
                "subject": subject,
            },
        )

    def get_summary(self) -> str:
        """Get a summary of collected errors."""
        count = len(self.errors)
        if not count:
            return f"{self.operation_name} completed successfully"
        return f"{self.operation_name} completed with {count} warning(s)"
