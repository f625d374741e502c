"""SQLite connection factory.

Usage::

    from drugcrawl.db.connection import get_connection

    with closing(get_connection()) as conn:
        init_db(conn)
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional, Union

from drugcrawl.config import settings
from drugcrawl.errors import SetupError


def get_connection(db_path: Optional[Union[str, Path]] = None) -> sqlite3.Connection:
    """Open and configure a SQLite connection.

    Steps performed on every new connection:
    1. Create the parent directory of an on-disk database.
    2. Switch to WAL journal mode so the file can be read while a scan
       is writing to it.

    Args:
        db_path: Override the DB path.  Defaults to ``settings.db_path``.

    Returns:
        A configured :class:`sqlite3.Connection` with ``row_factory`` set to
        :class:`sqlite3.Row` so columns can be accessed by name.

    Raises:
        SetupError: The database file cannot be opened.
    """
    path = db_path or settings.db_path

    try:
        if str(path) != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
    except (OSError, sqlite3.Error) as exc:
        raise SetupError(f"Cannot open database {path}: {exc}") from exc

    return conn
