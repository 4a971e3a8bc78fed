"""
SQLite schema DDL - tables, indexes and append-only triggers.

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is **idempotent**.

Table creation order respects foreign key dependencies:
  1. products              (no FKs)
  2. daily_sales           (→ products)          Fact: confirmed sales
  3. inventory_snapshots   (→ products)          Fact: confirmed stock levels
  4. forecast_results      (→ products)          Prediction: one row per period
  5. forecast_evaluations  (→ forecast_results)  Prediction vs. actual
  6. run_metadata          (no FKs)              Pipeline audit log

Facts and predictions are append-only: triggers abort every UPDATE and
DELETE on them. A re-forecast is a new request id, never an overwrite.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_PRODUCTS = """
CREATE TABLE IF NOT EXISTS products (
    product_id      TEXT    PRIMARY KEY,
    product_name    TEXT    NOT NULL,
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_DAILY_SALES = """
CREATE TABLE IF NOT EXISTS daily_sales (
    sale_id         INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id      TEXT    NOT NULL REFERENCES products(product_id),
    sales_date      TEXT    NOT NULL,
    quantity        INTEGER NOT NULL CHECK (quantity >= 0),
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    UNIQUE (product_id, sales_date)
);
CREATE INDEX IF NOT EXISTS idx_daily_sales_product_date
    ON daily_sales(product_id, sales_date);
"""

_DDL_INVENTORY_SNAPSHOTS = """
CREATE TABLE IF NOT EXISTS inventory_snapshots (
    snapshot_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id      TEXT    NOT NULL REFERENCES products(product_id),
    snapshot_date   TEXT    NOT NULL,
    inventory_level INTEGER NOT NULL CHECK (inventory_level >= 0),
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    UNIQUE (product_id, snapshot_date)
);
CREATE INDEX IF NOT EXISTS idx_inventory_product_date
    ON inventory_snapshots(product_id, snapshot_date);
"""

_DDL_FORECAST_RESULTS = """
CREATE TABLE IF NOT EXISTS forecast_results (
    result_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    request_id       TEXT    NOT NULL,
    product_id       TEXT    NOT NULL REFERENCES products(product_id),
    forecast_date    TEXT    NOT NULL,
    forecast_value   REAL    NOT NULL,
    confidence_lower REAL    NOT NULL,
    confidence_upper REAL    NOT NULL,
    method           TEXT    NOT NULL,
    confidence_level REAL    NOT NULL,
    model_version    TEXT    NOT NULL,
    explanation      TEXT    NOT NULL,
    rationale_source TEXT,
    summary_json     TEXT    NOT NULL,
    generated_at     TEXT    NOT NULL,
    created_at       TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    UNIQUE (request_id, forecast_date),
    CHECK (confidence_lower <= forecast_value AND forecast_value <= confidence_upper)
);
CREATE INDEX IF NOT EXISTS idx_forecast_results_product_date
    ON forecast_results(product_id, forecast_date);
CREATE INDEX IF NOT EXISTS idx_forecast_results_request
    ON forecast_results(request_id);
"""

_DDL_FORECAST_EVALUATIONS = """
CREATE TABLE IF NOT EXISTS forecast_evaluations (
    evaluation_id    INTEGER PRIMARY KEY AUTOINCREMENT,
    result_id        INTEGER NOT NULL UNIQUE REFERENCES forecast_results(result_id),
    actual_quantity  REAL    NOT NULL,
    error            REAL    NOT NULL,
    evaluated_at     TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_RUN_METADATA = """
CREATE TABLE IF NOT EXISTS run_metadata (
    run_id           INTEGER PRIMARY KEY AUTOINCREMENT,
    request_id       TEXT    NOT NULL,
    product_id       TEXT    NOT NULL,
    status           TEXT    NOT NULL DEFAULT 'started',
    final_state      TEXT,
    periods_written  INTEGER NOT NULL DEFAULT 0,
    periods_failed   INTEGER NOT NULL DEFAULT 0,
    rationale_source TEXT,
    error_message    TEXT,
    config_snapshot  TEXT    NOT NULL,
    started_at       TEXT    NOT NULL,
    finished_at      TEXT
);
CREATE INDEX IF NOT EXISTS idx_run_metadata_request
    ON run_metadata(request_id);
"""

_APPEND_ONLY_TABLES = (
    "daily_sales",
    "inventory_snapshots",
    "forecast_results",
    "forecast_evaluations",
)


def _append_only_triggers(table: str) -> str:
    return f"""
CREATE TRIGGER IF NOT EXISTS trg_{table}_no_update
BEFORE UPDATE ON {table}
BEGIN
    SELECT RAISE(ABORT, '{table} is append-only');
END;
CREATE TRIGGER IF NOT EXISTS trg_{table}_no_delete
BEFORE DELETE ON {table}
BEGIN
    SELECT RAISE(ABORT, '{table} is append-only');
END;
"""


# ── Ordered list of all DDL to apply ──────────────────────────────────────────

_ALL_DDL: list[str] = [
    _DDL_PRODUCTS,
    _DDL_DAILY_SALES,
    _DDL_INVENTORY_SNAPSHOTS,
    _DDL_FORECAST_RESULTS,
    _DDL_FORECAST_EVALUATIONS,
    _DDL_RUN_METADATA,
    *(_append_only_triggers(t) for t in _APPEND_ONLY_TABLES),
]

# Table names for introspection / tests
ALL_TABLE_NAMES = [
    "products",
    "daily_sales",
    "inventory_snapshots",
    "forecast_results",
    "forecast_evaluations",
    "run_metadata",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL to ``conn``.

    Idempotent - safe to call on an already-initialized database. Blocks are
    run with ``executescript`` because trigger bodies contain semicolons.

    Args:
        conn: An open ``sqlite3.Connection`` (FK enforcement should be ON).
    """
    logger.debug("Applying schema to database...")
    for ddl in _ALL_DDL:
        conn.executescript(ddl)
    conn.commit()
    logger.info("Schema applied: %d tables, indexes and triggers verified.", len(ALL_TABLE_NAMES))


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return table names present in the database, sorted alphabetically."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]


def get_existing_triggers(conn: sqlite3.Connection) -> list[str]:
    """Return trigger names present in the database, sorted alphabetically."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='trigger' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
