"""
Shared pytest fixtures for the Demand Forecaster test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the full
    schema applied. Created anew for each test that requests it.
  - ``sample_facts`` / ``sample_series``: the seven-day reference history
    (100, 110, 105, 120, 115, 108, 112 on 2023-01-01..07).
  - ``app_config`` / ``seeded_db_path``: a file-backed configuration for
    end-to-end tests, with the reference history already imported.
"""

from __future__ import annotations

import sqlite3
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Generator

import pytest

from demand_forecaster.config import (
    AppConfig,
    DatabaseConfig,
    LoggingConfig,
    RationaleConfig,
)
from demand_forecaster.db.connection import connect
from demand_forecaster.db.repositories.fact_repo import FactRepository
from demand_forecaster.db.schema import apply_schema
from demand_forecaster.forecasting.timeseries import TimeSeries
from demand_forecaster.models.fact import Fact, FactImportRow

SAMPLE_PRODUCT = "PROD-001"
SAMPLE_QUANTITIES = [100, 110, 105, 120, 115, 108, 112]
SAMPLE_START = date(2023, 1, 1)
SAMPLE_AS_OF = date(2023, 1, 7)
FIXED_NOW = datetime(2023, 1, 7, 18, 0, 0, tzinfo=timezone.utc)


def _make_facts(values: list[float], start: date = SAMPLE_START) -> list[Fact]:
    """Consecutive daily facts starting at ``start``."""
    return [
        Fact(fact_date=start + timedelta(days=i), value=float(v))
        for i, v in enumerate(values)
    ]


@pytest.fixture
def fixed_clock():
    """Clock returning a constant UTC timestamp."""
    return lambda: FIXED_NOW


# ── Database fixture ──────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the full schema applied.

    Foreign key enforcement is ON. Connection is closed after the test.
    """
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    apply_schema(conn)
    yield conn
    conn.close()


# ── Sample domain objects ─────────────────────────────────────────────────────

@pytest.fixture
def sample_facts() -> list[Fact]:
    return _make_facts(SAMPLE_QUANTITIES)


@pytest.fixture
def sample_series(sample_facts) -> TimeSeries:
    return TimeSeries.load(sample_facts)


@pytest.fixture
def sample_import_rows() -> list[FactImportRow]:
    return [
        FactImportRow(
            product_id=SAMPLE_PRODUCT,
            date=SAMPLE_START + timedelta(days=i),
            quantity=q,
            inventory_level=500 - 20 * i,
            product_name="Widget",
        )
        for i, q in enumerate(SAMPLE_QUANTITIES)
    ]


# ── File-backed configuration ─────────────────────────────────────────────────

@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """AppConfig pointing at a temp DB, with external rationale disabled."""
    return AppConfig(
        database=DatabaseConfig(db_path=str(tmp_path / "db" / "test.db")),
        rationale=RationaleConfig(enabled=False),
        logging=LoggingConfig(log_file=str(tmp_path / "logs" / "test.log")),
    )


@pytest.fixture
def seeded_db_path(app_config, sample_import_rows) -> str:
    """Path of a schema-initialized DB holding the reference history."""
    with connect(app_config.database) as conn:
        apply_schema(conn)
        FactRepository(conn).import_rows(sample_import_rows)
    return app_config.database.db_path
