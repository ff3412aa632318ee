"""Configuration file locations and resolution.

Precedence is defaults < persisted ``config.json`` < caller overrides. A
malformed persisted file never aborts the process: ``ConfigResolver.load``
falls back to defaults and keeps the error on ``last_error`` so callers can
surface it.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from utils.env import env_path

from .scan_config import ScanConfig, config_from_mapping

logger = logging.getLogger(__name__)

APP_DIR_NAME = "projectbrowser"
WINDOWS_APP_DIR_NAME = "ProjectBrowser"
CONFIG_FILE_NAME = "config.json"
IGNORE_FILE_NAME = "ignore"
CATALOG_FILE_NAME = "projects.sqlite"


class ConfigError(Exception):
    """Persisted or caller-supplied configuration is malformed."""

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


class ConfigStore:
    """Resolves where configuration, ignore files and data live on this machine."""

    @staticmethod
    def config_dir() -> Path:
        override = env_path("CONFIG_DIR")
        if override is not None:
            return override
        if sys.platform == "win32":
            base = os.environ.get("APPDATA")
            if base:
                return Path(base) / WINDOWS_APP_DIR_NAME
        if sys.platform == "darwin":
            return Path.home() / "Library" / "Application Support" / WINDOWS_APP_DIR_NAME
        base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
        return Path(base) / APP_DIR_NAME

    @staticmethod
    def data_dir() -> Path:
        override = env_path("DATA_DIR")
        if override is not None:
            return override
        if sys.platform == "win32":
            base = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA")
            if base:
                return Path(base) / WINDOWS_APP_DIR_NAME
        if sys.platform == "darwin":
            return Path.home() / "Library" / "Application Support" / WINDOWS_APP_DIR_NAME
        base = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
        return Path(base) / APP_DIR_NAME

    @classmethod
    def config_path(cls) -> Path:
        return cls.config_dir() / CONFIG_FILE_NAME

    @classmethod
    def catalog_path(cls) -> Path:
        return cls.data_dir() / CATALOG_FILE_NAME

    @classmethod
    def app_ignore_path(cls) -> Path:
        """Primary app-level ignore file next to config.json."""
        return cls.config_dir() / IGNORE_FILE_NAME

    @staticmethod
    def user_ignore_path_legacy() -> Path:
        """Legacy ignore file: ~/.config/project-browser/ignore."""
        return Path.home() / ".config" / "project-browser" / IGNORE_FILE_NAME

    @classmethod
    def ignore_file_paths(cls) -> List[Path]:
        """Existing user ignore files, primary location first."""
        candidates = [cls.app_ignore_path(), cls.user_ignore_path_legacy()]
        seen: List[Path] = []
        for candidate in candidates:
            if candidate.is_file() and candidate not in seen:
                seen.append(candidate)
        return seen


class ConfigResolver:
    """Loads defaults, then the persisted file, then caller overrides."""

    def __init__(self, config_path: Optional[Path] = None) -> None:
        self.config_path = Path(config_path) if config_path else ConfigStore.config_path()
        self.last_error: Optional[ConfigError] = None

    def _read_persisted(self) -> Optional[Dict[str, Any]]:
        if not self.config_path.exists():
            logger.debug("No persisted config at %s; using defaults", self.config_path)
            return None
        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigError(
                f"Malformed config file {self.config_path}: {exc}", self.config_path
            ) from exc
        except OSError as exc:
            raise ConfigError(
                f"Unable to read config file {self.config_path}: {exc}", self.config_path
            ) from exc

    def _load_strict(self) -> ScanConfig:
        data = self._read_persisted()
        if data is None:
            return ScanConfig()
        try:
            config, unknown = config_from_mapping(ScanConfig(), data)
        except ValueError as exc:
            raise ConfigError(f"Invalid config file {self.config_path}: {exc}", self.config_path) from exc
        if unknown:
            logger.debug("Ignoring unknown config keys: %s", ", ".join(unknown))
        logger.debug("Config loaded from %s", self.config_path)
        return config

    def load(self, strict: bool = False) -> ScanConfig:
        """Return the persisted config merged over defaults.

        A malformed file yields defaults plus ``last_error`` unless ``strict``.
        """
        self.last_error = None
        try:
            return self._load_strict()
        except ConfigError as exc:
            if strict:
                raise
            self.last_error = exc
            logger.warning(
                "Falling back to default configuration: %s",
                exc,
                extra={"event": "config.fallback", "config_path": str(self.config_path)},
            )
            return ScanConfig()

    def effective(self, overrides: Optional[Dict[str, Any]] = None) -> ScanConfig:
        """Return ``load()`` with caller overrides applied on top.

        Overrides use the persisted schema (``roots``, ``concurrency``,
        ``vcs: {use_cli_fallback}`` ...); ``None`` values are ignored. Invalid
        override values raise ``ConfigError``.
        """
        config = self.load()
        if not overrides:
            return config
        cleaned = {key: value for key, value in overrides.items() if value is not None}
        try:
            config, unknown = config_from_mapping(config, cleaned)
        except ValueError as exc:
            raise ConfigError(f"Invalid configuration override: {exc}") from exc
        if unknown:
            raise ConfigError(f"Unknown configuration override(s): {', '.join(sorted(unknown))}")
        return config

    def save(self, config: ScanConfig) -> Path:
        """Persist ``config`` as pretty JSON and return the file path."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            json.dump(config.to_dict(), f, indent=2)
        logger.debug("Config saved to %s", self.config_path)
        return self.config_path
