"""Structured logging setup for Project Browser.

The root logger gets two handlers: a JSON-lines file (one object per record,
``extra`` fields included so scan events stay queryable) and a plain console
stream for humans.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

LOG_FILE_NAME = "project-browser.log"
CONSOLE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

# Marks handlers installed here so a second setup call can replace them
_OWNED = "_project_browser_handler"


class StructuredFormatter(logging.Formatter):
    """Emit log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def default_log_file() -> Path:
    from config.config_store import ConfigStore

    return ConfigStore.data_dir() / "logs" / LOG_FILE_NAME


def setup_logging(level: int = logging.INFO, log_file: Optional[Path] = None) -> Path:
    """Route the root logger to the structured file and the console.

    Handlers from an earlier call are closed and replaced; handlers installed
    by anyone else are left alone. Returns the log file path.
    """
    target = Path(log_file) if log_file is not None else default_log_file()
    target.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, _OWNED, False):
            root_logger.removeHandler(handler)
            handler.close()

    file_handler = logging.FileHandler(target, encoding="utf-8")
    file_handler.setFormatter(StructuredFormatter())
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    for handler in (file_handler, console_handler):
        setattr(handler, _OWNED, True)
        root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # SQLAlchemy engine/pool loggers are chatty at DEBUG
    for name in ("sqlalchemy.engine", "sqlalchemy.pool"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return target
