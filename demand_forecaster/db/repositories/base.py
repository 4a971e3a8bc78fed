"""
Base repository providing shared SQLite execution helpers.

Repositories receive a ``sqlite3.Connection`` at construction time. The
connection is opened and owned by the caller (typically ``connect()``), so
transaction boundaries belong to the caller as well.

Design:
  - No ORM - all SQL is explicit and lives in repository methods.
  - Repositories speak pydantic models, not raw dicts.
  - ``row_factory = sqlite3.Row`` gives dict-like row access throughout.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Optional

logger = logging.getLogger(__name__)

Params = tuple[Any, ...] | dict[str, Any]


class BaseRepository:
    """Shared SQL execution helpers for all repository classes.

    Attributes:
        conn: The active ``sqlite3.Connection``.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def execute(self, sql: str, params: Params = ()) -> sqlite3.Cursor:
        """Execute a single SQL statement with ``?`` or ``:name`` placeholders."""
        logger.debug("SQL: %s | params: %s", sql.strip(), params)
        return self.conn.execute(sql, params)

    def insert(self, sql: str, params: Params = ()) -> int:
        """Execute an INSERT and return the new row's id.

        Returns ``0`` when an ``INSERT OR IGNORE`` skipped the row.
        """
        cursor = self.execute(sql, params)
        if cursor.rowcount == 0:
            return 0
        return int(cursor.lastrowid or 0)

    def fetchone(self, sql: str, params: Params = ()) -> Optional[sqlite3.Row]:
        return self.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: Params = ()) -> list[sqlite3.Row]:
        return self.execute(sql, params).fetchall()
