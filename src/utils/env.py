"""Environment helpers for runtime configuration."""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

ENV_PREFIX = "PROJECT_BROWSER_"


@lru_cache
def is_dev_mode() -> bool:
    """Return True when the app runs in development mode."""
    value = os.environ.get(f"{ENV_PREFIX}ENV") or os.environ.get(f"{ENV_PREFIX}DEV_MODE")
    if not value:
        return False
    normalized = value.strip().lower()
    return normalized in {"dev", "development", "1", "true", "yes"}


def env_flag(name: str) -> bool:
    """Return True when ``PROJECT_BROWSER_<name>`` is set to a truthy value."""
    value = os.environ.get(f"{ENV_PREFIX}{name}", "")
    return value.strip().lower() in {"1", "true", "yes", "on"}


def env_path(name: str) -> Optional[Path]:
    """Return ``PROJECT_BROWSER_<name>`` as an expanded path, or None when unset."""
    value = os.environ.get(f"{ENV_PREFIX}{name}")
    if not value or not value.strip():
        return None
    return Path(value.strip()).expanduser()


__all__ = ["ENV_PREFIX", "is_dev_mode", "env_flag", "env_path"]
