"""
SQLite connection management.

``get_connection()`` is a context manager that:
  - Enables foreign key enforcement (OFF by default in SQLite).
  - Optionally enables WAL journal mode so concurrent period writes and
    parallel runs only serialize on the write lock.
  - Sets a busy timeout so contending writers wait instead of failing.
  - Uses ``sqlite3.Row`` factory so rows behave like dicts.
  - Commits on clean exit, rolls back on exception.

``connect()`` is the same thing driven by a ``DatabaseConfig``; stores and
CLI commands use it so pragmas always come from configuration.

Usage::

    from demand_forecaster.db.connection import connect

    with connect(config.database) as conn:
        conn.execute("INSERT INTO ...")
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from demand_forecaster.config import DatabaseConfig

logger = logging.getLogger(__name__)


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """Yield a configured SQLite connection.

    The database file (and any parent directories) are created if missing.

    Args:
        db_path: Path to the SQLite file, or ``":memory:"``.
        wal_mode: Enable WAL journal mode.
        busy_timeout_ms: Milliseconds to wait on a locked database.

    Yields:
        An open, configured ``sqlite3.Connection``.

    Raises:
        sqlite3.OperationalError: If the database cannot be opened or stays locked.
    """
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    conn.row_factory = sqlite3.Row

    try:
        # Pragmas must precede any DML/DDL
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)};")
        if wal_mode and db_path != ":memory:":
            conn.execute("PRAGMA journal_mode = WAL;")

        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        conn.close()


@contextmanager
def connect(
    config: DatabaseConfig,
    db_path: Optional[str] = None,
) -> Generator[sqlite3.Connection, None, None]:
    """``get_connection()`` with pragmas taken from ``config``.

    Args:
        config: Database section of ``AppConfig``.
        db_path: Optional override of ``config.db_path``.
    """
    with get_connection(
        db_path or config.db_path,
        wal_mode=config.wal_mode,
        busy_timeout_ms=config.busy_timeout_ms,
    ) as conn:
        yield conn
