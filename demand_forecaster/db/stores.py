"""
SQLite implementations of the pipeline's Fact Store, Result Store and run log.

Every call opens its own connection (via ``connect()``), so instances hold no
connection state and can be shared by parallel pipeline runs.
"""

from __future__ import annotations

import logging
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Optional

from demand_forecaster.config import DatabaseConfig
from demand_forecaster.db.connection import connect
from demand_forecaster.db.repositories.fact_repo import FactRepository
from demand_forecaster.db.repositories.forecast_repo import (
    ForecastResultRepository,
    RunMetadataRepository,
)
from demand_forecaster.exceptions import FactsNotFound
from demand_forecaster.models.fact import Fact
from demand_forecaster.models.forecast import (
    ForecastPeriod,
    ForecastResult,
    PeriodWriteOutcome,
)
from demand_forecaster.models.meta import RunMetadata

logger = logging.getLogger(__name__)


class SqliteFactStore:
    """Fact Store over ``daily_sales`` and ``inventory_snapshots``."""

    def __init__(self, config: DatabaseConfig, db_path: Optional[str] = None) -> None:
        self.config = config
        self.db_path = db_path or config.db_path

    def load_facts(self, product_id: str, since_date: Optional[date]) -> list[Fact]:
        with connect(self.config, self.db_path) as conn:
            facts = FactRepository(conn).get_sales(product_id, since_date)
        if not facts:
            raise FactsNotFound(product_id, since_date)
        return facts

    def load_inventory(self, product_id: str, since_date: Optional[date]) -> list[Fact]:
        with connect(self.config, self.db_path) as conn:
            return FactRepository(conn).get_inventory(product_id, since_date)


class SqliteResultStore:
    """Result Store writing one ``forecast_results`` row per period.

    Each period is its own connection and transaction: a failed period rolls
    back alone and never touches periods already written. With
    ``max_workers > 1`` periods are written concurrently.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        db_path: Optional[str] = None,
        max_workers: int = 1,
    ) -> None:
        self.config = config
        self.db_path = db_path or config.db_path
        self.max_workers = max(1, max_workers)

    def persist(self, result: ForecastResult) -> list[PeriodWriteOutcome]:
        if self.max_workers == 1 or len(result.periods) == 1:
            return [self._write_period(result, p) for p in result.periods]

        workers = min(self.max_workers, len(result.periods))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="persist") as pool:
            return list(pool.map(lambda p: self._write_period(result, p), result.periods))

    def _write_period(self, result: ForecastResult, period: ForecastPeriod) -> PeriodWriteOutcome:
        try:
            with connect(self.config, self.db_path) as conn:
                ForecastResultRepository(conn).insert_period(result, period)
        except (sqlite3.Error, OSError) as exc:
            logger.error(
                "Period write failed | request_id=%s date=%s: %s",
                result.request_id, period.period_date.isoformat(), exc,
            )
            return PeriodWriteOutcome(
                period_date=period.period_date, success=False, error=str(exc)
            )
        return PeriodWriteOutcome(period_date=period.period_date, success=True)


class SqliteRunLog:
    """Run log appending to ``run_metadata``."""

    def __init__(self, config: DatabaseConfig, db_path: Optional[str] = None) -> None:
        self.config = config
        self.db_path = db_path or config.db_path

    def record(self, run: RunMetadata) -> None:
        with connect(self.config, self.db_path) as conn:
            run.run_id = RunMetadataRepository(conn).insert_run(run)
