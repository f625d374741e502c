"""File sinks used in debug mode: drugs to CSV, the ATC tree to JSON."""

from __future__ import annotations

import csv
import json
import os
from pathlib import Path
from typing import IO, Optional, Union

from drugcrawl.errors import SetupError, SinkError
from drugcrawl.observability import RunContext
from drugcrawl.pipeline.stream import Stream
from drugcrawl.scraper.models import CSV_HEADERS, Drug, TreeNode
from drugcrawl.sinks.base import RecordSink, TreeSink


def tree_to_json(tree: TreeNode) -> str:
    return json.dumps(tree.to_dict(), ensure_ascii=False, indent=2)


def _open_for_write(path: Path) -> IO[str]:
    try:
        return open(path, "w", newline="", encoding="utf-8")
    except OSError as exc:
        raise SetupError(f"Cannot open {path} for writing: {exc}") from exc


class CsvSink(RecordSink):
    """Write one CSV row per drug under a fixed header.

    The instruction text is not written: it would make every line several
    pages long.
    """

    def __init__(self, path: Union[str, Path], ctx: Optional[RunContext] = None) -> None:
        super().__init__(ctx)
        self.path = Path(path)
        self._file: Optional[IO[str]] = None
        self._writer = None

    def open(self) -> None:
        if self._file is not None:
            return
        self._file = _open_for_write(self.path)
        self._writer = csv.writer(self._file)
        self._writer.writerow(CSV_HEADERS)

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            self._writer = None

    def accept(self, stream: Stream[Drug]) -> int:
        self.open()
        num = 0
        try:
            for drug in stream:
                self._writer.writerow(drug.csv_row())
                num += 1
                self._progress(num)
            self._file.flush()
        except (OSError, csv.Error) as exc:
            stream.cancel()
            raise SinkError(f"Writing {self.path} failed after {num} rows: {exc}", committed=num) from exc

        self.logger.info("Scanned %d drugs", num)
        return num


class JsonTreeSink(TreeSink):
    """Serialise the tree as indented JSON (``name`` + ``children``) to a file.

    ``open`` only checks that the file can be written; the previous tree is
    replaced in ``write``, once the crawl has completed.
    """

    def __init__(self, path: Union[str, Path], ctx: Optional[RunContext] = None) -> None:
        super().__init__(ctx)
        self.path = Path(path)

    def open(self) -> None:
        target = self.path if self.path.exists() else self.path.parent
        if not target.exists() or not os.access(target, os.W_OK):
            raise SetupError(f"Cannot open {self.path} for writing: not writable")

    def write(self, tree: TreeNode) -> None:
        self.open()
        self.logger.info("Save ATC tree to JSON %s", self.path)
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                f.write(tree_to_json(tree))
        except OSError as exc:
            raise SinkError(f"Writing {self.path} failed: {exc}") from exc
