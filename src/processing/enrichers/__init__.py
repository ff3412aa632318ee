"""Optional metadata enrichers.

Capabilities are chosen by ``ScanConfig.enrichers``; an empty selection runs
no enrichment at all. Implementations are imported only when selected so the
scanner runs without ``pygit2`` installed as long as ``vcs`` is not enabled.
"""

from __future__ import annotations

import logging
from typing import List

from config.scan_config import ENRICHER_LOC, ENRICHER_VCS, ScanConfig

from .base import Enricher, EnrichmentContext, EnrichmentError

logger = logging.getLogger(__name__)


def build_enrichers(config: ScanConfig) -> List[Enricher]:
    """Instantiate the enrichers selected by ``config``, in configured order."""
    enrichers: List[Enricher] = []
    for name in config.enrichers:
        if name == ENRICHER_VCS:
            from .vcs import VcsEnricher

            enrichers.append(VcsEnricher(use_cli_fallback=config.vcs_cli_fallback))
        elif name == ENRICHER_LOC:
            from .loc import LocAnalyzer

            enrichers.append(LocAnalyzer(max_file_bytes=config.loc_max_file_bytes))
        else:
            raise ValueError(f"Unknown enricher: {name}")
    logger.debug("Enrichers enabled: %s", [e.name for e in enrichers] or "none")
    return enrichers


__all__ = [
    "Enricher",
    "EnrichmentContext",
    "EnrichmentError",
    "build_enrichers",
]
