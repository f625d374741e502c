"""Sink contracts consumed by the pipeline.

A sink is opened before any crawl work is scheduled, so a bad output path or
database surfaces as a :class:`~drugcrawl.errors.SetupError` up front.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from drugcrawl.observability import RunContext
from drugcrawl.pipeline.stream import Stream
from drugcrawl.scraper.models import Drug, TreeNode

PROGRESS_EVERY = 100


class _Lifecycle:
    ctx: RunContext

    def open(self) -> None:
        """Acquire the output resource.  Raises ``SetupError`` on failure."""

    def close(self) -> None:
        """Release the output resource.  Safe to call more than once."""

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def logger(self) -> logging.Logger:
        return self.ctx.logger


class RecordSink(_Lifecycle, ABC):
    """Terminal consumer of the :class:`Drug` stream."""

    def __init__(self, ctx: Optional[RunContext] = None) -> None:
        self.ctx = ctx or RunContext()

    @abstractmethod
    def accept(self, stream: Stream[Drug]) -> int:
        """Consume *stream* until it closes and return the number of records saved.

        Raises:
            SinkError: A write failed; the run must be aborted.  The sink
                cancels *stream* first so upstream workers stop.
        """

    def _progress(self, num: int) -> None:
        if num % PROGRESS_EVERY == 0:
            self.logger.info("Scanned %d drugs", num)


class TreeSink(_Lifecycle, ABC):
    """Writes a fully crawled tree in one go."""

    def __init__(self, ctx: Optional[RunContext] = None) -> None:
        self.ctx = ctx or RunContext()

    @abstractmethod
    def write(self, tree: TreeNode) -> None:
        """Persist *tree*.  Raises ``SinkError`` on failure."""
