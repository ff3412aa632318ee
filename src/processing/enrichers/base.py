"""Enricher interface shared by the VCS and LOC enrichers."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from config.scan_config import ScanConfig

from ..ignore_rules import IgnoreMatcher, IgnoreScope
from ..models import ProjectRecord


class EnrichmentError(Exception):
    """An enricher could not produce its fields for one project."""


@dataclass(frozen=True)
class EnrichmentContext:
    """What an enricher may look at besides the record itself.

    ``scope`` is the ignore scope of the project directory, with the
    directory's own ignore files already applied.
    """

    path: Path
    matcher: IgnoreMatcher
    scope: IgnoreScope
    config: ScanConfig


class Enricher:
    """Post-detection step that fills optional fields on a ``ProjectRecord``.

    Implementations assign fields only once all of their work succeeded, so a
    failure leaves the record exactly as it was.
    """

    name = "base"

    def enrich(self, record: ProjectRecord, context: EnrichmentContext) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
