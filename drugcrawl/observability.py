"""Logging setup and per-run progress counters.

A :class:`RunContext` is created once per pipeline run and handed to every
component that needs to report progress.  It bundles the logger to write to
and a :class:`RunStats` table of per-stage counters, so nothing in the
pipeline depends on module-level mutable state.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once.  Unknown level names fall back to INFO."""
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger("drugcrawl").setLevel(resolved)
    # httpx logs every request at INFO; that drowns out progress output.
    logging.getLogger("httpx").setLevel(max(resolved, logging.WARNING))


@dataclass
class StageStats:
    processed: int = 0
    failed: int = 0
    emitted: int = 0


class RunStats:
    """Thread-safe processed / failed / emitted counters keyed by stage name."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stages: dict[str, StageStats] = {}

    def _get(self, stage: str) -> StageStats:
        return self._stages.setdefault(stage, StageStats())

    def record_processed(self, stage: str, emitted: int = 0) -> None:
        with self._lock:
            entry = self._get(stage)
            entry.processed += 1
            entry.emitted += emitted

    def record_failed(self, stage: str) -> None:
        with self._lock:
            self._get(stage).failed += 1

    def snapshot(self) -> dict[str, StageStats]:
        """Return a copy of the counters, safe to read while workers run."""
        with self._lock:
            return {
                name: StageStats(s.processed, s.failed, s.emitted)
                for name, s in self._stages.items()
            }

    def summary(self) -> str:
        parts = [
            f"{name}: {s.processed} ok, {s.failed} failed, {s.emitted} out"
            for name, s in self.snapshot().items()
        ]
        return "; ".join(parts) or "no stages ran"


@dataclass
class RunContext:
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("drugcrawl.run")
    )
    stats: RunStats = field(default_factory=RunStats)
