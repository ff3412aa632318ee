"""Scan configuration model.

``ScanConfig`` is what one scan invocation runs with. It is built by
``config.config_store.ConfigResolver`` from defaults, the persisted
``config.json`` and caller overrides, and is treated as immutable for the
duration of a scan.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple


class SizeMode(str, Enum):
    """How aggregate byte sizes are computed for catalogued projects."""

    EXACT_CACHED = "exact_cached"
    NONE = "none"


ENRICHER_VCS = "vcs"
ENRICHER_LOC = "loc"
KNOWN_ENRICHERS = (ENRICHER_VCS, ENRICHER_LOC)

DEFAULT_ROOTS: Tuple[str, ...] = ("~/Code",)

DEFAULT_GLOBAL_IGNORES: Tuple[str, ...] = (
    ".git",
    "node_modules",
    "target",
    "build",
    "dist",
    ".venv",
    "Pods",
    "DerivedData",
    ".cache",
)

DEFAULT_CONCURRENCY = 8
DEFAULT_LOC_MAX_FILE_BYTES = 1024 * 1024


def expand_root(value: str | Path) -> Path:
    """Expand ``~`` and make a root absolute without requiring it to exist."""
    return Path(value).expanduser().absolute()


@dataclass(frozen=True)
class ScanConfig:
    roots: Tuple[Path, ...] = field(
        default_factory=lambda: tuple(expand_root(r) for r in DEFAULT_ROOTS)
    )
    global_ignores: Tuple[str, ...] = DEFAULT_GLOBAL_IGNORES
    size_mode: SizeMode = SizeMode.EXACT_CACHED
    concurrency: int = DEFAULT_CONCURRENCY
    vcs_cli_fallback: bool = False
    # Continue below a detected project root (nested discovery). Off by default.
    descend_into_projects: bool = False
    skip_hidden: bool = True
    enrichers: Tuple[str, ...] = KNOWN_ENRICHERS
    loc_max_file_bytes: int = DEFAULT_LOC_MAX_FILE_BYTES

    def with_roots(self, roots: Iterable[str | Path]) -> "ScanConfig":
        return replace(self, roots=tuple(expand_root(r) for r in roots))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the persisted ``config.json`` schema."""
        return {
            "roots": [str(root) for root in self.roots],
            "global_ignores": list(self.global_ignores),
            "size_mode": self.size_mode.value,
            "concurrency": self.concurrency,
            "vcs": {"use_cli_fallback": self.vcs_cli_fallback},
            "descend_into_projects": self.descend_into_projects,
            "skip_hidden": self.skip_hidden,
            "enrichers": list(self.enrichers),
            "loc_max_file_bytes": self.loc_max_file_bytes,
        }


def config_from_mapping(base: ScanConfig, data: Dict[str, Any]) -> Tuple[ScanConfig, List[str]]:
    """Apply a (possibly partial) schema mapping on top of ``base``.

    Returns the new config and the list of keys that were not recognized.
    Raises ``ValueError`` when a recognized key carries an invalid value.
    """
    if not isinstance(data, dict):
        raise ValueError("configuration must be a JSON object")

    changes: Dict[str, Any] = {}
    unknown: List[str] = []

    for key, value in data.items():
        if key == "roots":
            changes["roots"] = tuple(expand_root(r) for r in _string_list(key, value))
        elif key == "global_ignores":
            changes["global_ignores"] = tuple(_string_list(key, value))
        elif key == "size_mode":
            try:
                changes["size_mode"] = SizeMode(value)
            except ValueError:
                raise ValueError(
                    f"size_mode must be one of {[m.value for m in SizeMode]}, got {value!r}"
                ) from None
        elif key == "concurrency":
            changes["concurrency"] = _positive_int(key, value)
        elif key == "vcs":
            if not isinstance(value, dict):
                raise ValueError("vcs must be an object")
            for vcs_key, vcs_value in value.items():
                if vcs_key == "use_cli_fallback":
                    changes["vcs_cli_fallback"] = _bool(f"vcs.{vcs_key}", vcs_value)
                else:
                    unknown.append(f"vcs.{vcs_key}")
        elif key == "vcs_cli_fallback":
            changes["vcs_cli_fallback"] = _bool(key, value)
        elif key in ("descend_into_projects", "skip_hidden"):
            changes[key] = _bool(key, value)
        elif key == "enrichers":
            names = _string_list(key, value)
            invalid = [name for name in names if name not in KNOWN_ENRICHERS]
            if invalid:
                raise ValueError(f"unknown enrichers: {invalid}; expected a subset of {list(KNOWN_ENRICHERS)}")
            changes["enrichers"] = tuple(dict.fromkeys(names))
        elif key == "loc_max_file_bytes":
            changes["loc_max_file_bytes"] = _positive_int(key, value)
        else:
            unknown.append(key)

    return replace(base, **changes), unknown


def _string_list(key: str, value: Any) -> List[str]:
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise ValueError(f"{key} must be a list of strings")
    items = []
    for item in value:
        if isinstance(item, Path):
            item = str(item)
        if not isinstance(item, str):
            raise ValueError(f"{key} must be a list of strings")
        items.append(item)
    return items


def _positive_int(key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{key} must be a positive integer, got {value!r}")
    return value


def _bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be true or false, got {value!r}")
    return value
