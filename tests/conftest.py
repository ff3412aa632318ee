"""Pytest configuration and fixtures."""

import sys
from pathlib import Path
from typing import Callable, Dict, Generator, Optional
from unittest.mock import MagicMock

import pytest

# Add src directory to Python path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from config.scan_config import ScanConfig
from database.catalog import Catalog
from processing.models import ProjectRecord


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def isolated_app_dirs(tmp_path_factory, monkeypatch) -> Dict[str, Path]:
    """Point config/data directories at temp dirs so tests never touch $HOME."""
    base = tmp_path_factory.mktemp("appdirs")
    config_dir = base / "config"
    data_dir = base / "data"
    monkeypatch.setenv("PROJECT_BROWSER_CONFIG_DIR", str(config_dir))
    monkeypatch.setenv("PROJECT_BROWSER_DATA_DIR", str(data_dir))
    return {"config": config_dir, "data": data_dir}


# ---------------------------------------------------------------------------
# Catalog Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def catalog() -> Generator[Catalog, None, None]:
    """In-memory catalog handle."""
    handle = Catalog.in_memory()
    try:
        yield handle
    finally:
        handle.close()


@pytest.fixture
def file_catalog(tmp_path: Path) -> Generator[Catalog, None, None]:
    """Catalog backed by a SQLite file in the test's temp dir."""
    handle = Catalog.open(tmp_path / "catalog" / "projects.sqlite")
    try:
        yield handle
    finally:
        handle.close()


def make_record(path: str, name: Optional[str] = None, **fields) -> ProjectRecord:
    return ProjectRecord(name=name or Path(path).name, path=path, **fields)


@pytest.fixture
def record_factory() -> Callable[..., ProjectRecord]:
    return make_record


# ---------------------------------------------------------------------------
# Filesystem Fixtures
# ---------------------------------------------------------------------------

def build_tree(root: Path, layout: Dict[str, str]) -> Path:
    """Create files from a ``{"relative/path": "content"}`` mapping.

    A key ending in ``/`` creates an empty directory.
    """
    root.mkdir(parents=True, exist_ok=True)
    for relative, content in layout.items():
        target = root / relative
        if relative.endswith("/"):
            target.mkdir(parents=True, exist_ok=True)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[..., Path]:
    """Build a directory tree under ``tmp_path / name``."""

    def _make(layout: Dict[str, str], name: str = "root") -> Path:
        return build_tree(tmp_path / name, layout)

    return _make


@pytest.fixture
def scan_config_for() -> Callable[..., ScanConfig]:
    """ScanConfig over the given roots with enrichers off unless requested."""

    def _make(*roots: Path, **overrides) -> ScanConfig:
        overrides.setdefault("enrichers", ())
        overrides.setdefault("concurrency", 4)
        return ScanConfig(roots=tuple(roots), **overrides)

    return _make


@pytest.fixture
def mock_progress_callback() -> MagicMock:
    """Create a mock progress callback for testing scans."""
    return MagicMock()
