"""Database initialisation.

``init_db(conn)`` is idempotent and safe to call on an existing database.
"""

from __future__ import annotations

import sqlite3

from drugcrawl.config import settings
from drugcrawl.errors import SetupError


def init_db(conn: sqlite3.Connection) -> None:
    """Create the ``drugs`` and ``atc_tree`` tables if they do not exist.

    Args:
        conn: An open SQLite connection.

    Raises:
        SetupError: The schema could not be applied.
    """
    sql = settings.schema_path.read_text(encoding="utf-8")
    try:
        # executescript() issues an implicit COMMIT first, fine for DDL.
        conn.executescript(sql)
    except sqlite3.Error as exc:
        raise SetupError(f"Cannot initialise database schema: {exc}") from exc
