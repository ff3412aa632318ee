"""Simple timing helpers for collecting phase durations with optional context."""

from __future__ import annotations

import threading
from time import perf_counter
from typing import Any, Dict, List, Optional


class PhaseTimer:
    """Collects simple duration metrics for named phases.

    Worker threads may measure concurrently; entries are appended under a lock.
    """

    def __init__(self, base_context: Optional[Dict[str, Any]] = None) -> None:
        self._base_context = base_context or {}
        self._entries: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def as_list(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._entries)

    def totals(self) -> Dict[str, float]:
        """Summed duration per phase name."""
        summed: Dict[str, float] = {}
        for entry in self.as_list():
            summed[entry["phase"]] = summed.get(entry["phase"], 0.0) + entry["duration"]
        return summed

    def measure(self, phase: str, extra: Optional[Dict[str, Any]] = None):
        """Context manager recording elapsed wall time for a phase."""

        class _TimerCtx:
            def __init__(self, outer: "PhaseTimer") -> None:
                self.outer = outer
                self.phase = phase
                self.extra = extra or {}
                self.start = perf_counter()

            def __enter__(self):
                return None

            def __exit__(self, exc_type, exc, tb):
                duration = perf_counter() - self.start
                entry: Dict[str, Any] = {"phase": self.phase, "duration": duration}
                entry.update(self.outer._base_context)
                if self.extra:
                    entry.update(self.extra)
                with self.outer._lock:
                    self.outer._entries.append(entry)
                return False

        return _TimerCtx(self)
