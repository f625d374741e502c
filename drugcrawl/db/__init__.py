"""Database layer package.

Public re-exports so callers can write::

    from drugcrawl.db import get_connection, init_db
"""

from drugcrawl.db.connection import get_connection
from drugcrawl.db.migrations import init_db

__all__ = ["get_connection", "init_db"]
