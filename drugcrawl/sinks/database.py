"""SQLite sinks used in production mode.

Each run replaces the previous one.  ``SqliteSink`` empties ``drugs`` when
opened; ``SqliteTreeSink`` swaps the tree row only once the crawl succeeded.
Drugs are inserted in transactions of ``batch_size`` rows; batches that
were committed before a failure stay in the database.
"""

from __future__ import annotations

import sqlite3
from typing import List, Optional, Tuple

from drugcrawl.errors import SetupError, SinkError
from drugcrawl.observability import RunContext
from drugcrawl.pipeline.stream import Stream
from drugcrawl.scraper.models import Drug, TreeNode
from drugcrawl.sinks.base import RecordSink, TreeSink
from drugcrawl.sinks.files import tree_to_json

INSERT_DRUG = """
    INSERT INTO drugs (
        name, link, dosage, manufacture, inn,
        pharm_group, registration, atc_code, instruction
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


def _truncate(conn: sqlite3.Connection, table: str) -> None:
    try:
        with conn:
            conn.execute(f"DELETE FROM {table}")  # noqa: S608
    except sqlite3.Error as exc:
        raise SetupError(f"Cannot reset table {table!r}: {exc}") from exc


class SqliteSink(RecordSink):
    """Batched writer for the ``drugs`` table.

    The connection is owned by the caller; this sink only runs transactions
    on it, from the single thread that consumes the stream.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        batch_size: int = 100,
        ctx: Optional[RunContext] = None,
    ) -> None:
        super().__init__(ctx)
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.conn = conn
        self.batch_size = batch_size
        self._opened = False

    def open(self) -> None:
        if not self._opened:
            _truncate(self.conn, "drugs")
            self._opened = True

    def _commit(self, batch: List[Tuple[str, ...]]) -> None:
        # ``with conn`` commits on success and rolls the batch back on error.
        with self.conn:
            self.conn.executemany(INSERT_DRUG, batch)

    def accept(self, stream: Stream[Drug]) -> int:
        self.open()
        total = 0
        num = 0
        batch: List[Tuple[str, ...]] = []
        try:
            for drug in stream:
                batch.append(drug.db_row())
                if len(batch) >= self.batch_size:
                    self._commit(batch)
                    total += len(batch)
                    batch = []
                num += 1
                self._progress(num)

            if batch:
                self._commit(batch)
                total += len(batch)
        except sqlite3.Error as exc:
            stream.cancel()
            raise SinkError(
                f"Saving drugs failed after {total} committed rows: {exc}",
                committed=total,
            ) from exc

        self.logger.info("Saved %d drugs to the database", total)
        return total


class SqliteTreeSink(TreeSink):
    """Store the tree's JSON document as the single row of ``atc_tree``.

    The previous tree is replaced in the same transaction that inserts the
    new one, so a failed crawl leaves it in place.
    """

    def __init__(self, conn: sqlite3.Connection, ctx: Optional[RunContext] = None) -> None:
        super().__init__(ctx)
        self.conn = conn
        self._opened = False

    def open(self) -> None:
        if self._opened:
            return
        try:
            self.conn.execute("SELECT 1 FROM atc_tree LIMIT 1").fetchall()
        except sqlite3.Error as exc:
            raise SetupError(f"Cannot use table 'atc_tree': {exc}") from exc
        self._opened = True

    def write(self, tree: TreeNode) -> None:
        self.open()
        self.logger.info("Save ATC tree to the database")
        try:
            with self.conn:
                self.conn.execute("DELETE FROM atc_tree")
                self.conn.execute(
                    "INSERT INTO atc_tree (tree) VALUES (?)", (tree_to_json(tree),)
                )
        except sqlite3.Error as exc:
            raise SinkError(f"Saving ATC tree failed: {exc}") from exc
