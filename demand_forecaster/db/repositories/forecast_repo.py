"""
Repositories for forecast results (one row per period) and run metadata.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import date, datetime
from typing import Any, Optional

from demand_forecaster.db.repositories.base import BaseRepository
from demand_forecaster.models.forecast import (
    ConfidenceInterval,
    ForecastPeriod,
    ForecastResult,
    ForecastSummary,
)
from demand_forecaster.models.meta import RunMetadata

logger = logging.getLogger(__name__)


class ForecastResultRepository(BaseRepository):
    """Append-only access to ``forecast_results``."""

    def insert_period(self, result: ForecastResult, period: ForecastPeriod) -> int:
        """Insert one period of ``result`` and return its ``result_id``.

        Raises:
            sqlite3.IntegrityError: If the period was already written for this
                request, or the product is unknown.
        """
        return self.insert(
            """
            INSERT INTO forecast_results (
                request_id, product_id, forecast_date, forecast_value,
                confidence_lower, confidence_upper, method, confidence_level,
                model_version, explanation, rationale_source, summary_json,
                generated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                result.request_id,
                result.product_id,
                period.period_date.isoformat(),
                period.forecast_value,
                period.confidence_interval.lower,
                period.confidence_interval.upper,
                result.method,
                result.confidence_level,
                result.model_version,
                result.rationale,
                result.rationale_source,
                result.summary.model_dump_json(),
                result.generated_at.isoformat(),
            ),
        )

    def count_periods(self, request_id: str) -> int:
        row = self.fetchone(
            "SELECT COUNT(*) AS n FROM forecast_results WHERE request_id = ?;",
            (request_id,),
        )
        return int(row["n"]) if row else 0

    def get_result(self, request_id: str) -> Optional[ForecastResult]:
        """Rebuild the ``ForecastResult`` for a request from its stored periods.

        A run that failed part-way returns only the periods that were written;
        compare ``len(result.periods)`` with the run's horizon when auditing.

        Returns:
            ``ForecastResult`` or ``None`` if no period was stored.
        """
        rows = self.fetchall(
            """
            SELECT * FROM forecast_results
            WHERE request_id = ?
            ORDER BY forecast_date ASC;
            """,
            (request_id,),
        )
        if not rows:
            return None
        first = rows[0]
        return ForecastResult(
            request_id=first["request_id"],
            product_id=first["product_id"],
            generated_at=datetime.fromisoformat(first["generated_at"]),
            method=first["method"],
            model_version=first["model_version"],
            confidence_level=first["confidence_level"],
            periods=tuple(_row_to_period(r) for r in rows),
            summary=ForecastSummary.model_validate_json(first["summary_json"]),
            rationale=first["explanation"],
            rationale_source=first["rationale_source"],
        )

    def list_requests(self, product_id: str, limit: int = 20) -> list[dict[str, Any]]:
        """Most recent forecast requests for a product.

        Returns:
            Dicts with ``request_id``, ``generated_at`` and ``periods``.
        """
        rows = self.fetchall(
            """
            SELECT request_id, MIN(generated_at) AS generated_at, COUNT(*) AS periods
            FROM forecast_results
            WHERE product_id = ?
            GROUP BY request_id
            ORDER BY generated_at DESC
            LIMIT ?;
            """,
            (product_id, limit),
        )
        return [dict(r) for r in rows]


class RunMetadataRepository(BaseRepository):
    """Read/write access to ``run_metadata``."""

    def insert_run(self, run: RunMetadata) -> int:
        """Insert a run record and return its ``run_id``."""
        return self.insert(
            """
            INSERT INTO run_metadata (
                request_id, product_id, status, final_state, periods_written,
                periods_failed, rationale_source, error_message,
                config_snapshot, started_at, finished_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                run.request_id,
                run.product_id,
                run.status,
                run.final_state,
                run.periods_written,
                run.periods_failed,
                run.rationale_source,
                run.error_message,
                json.dumps(run.config_snapshot),
                run.started_at.isoformat(),
                run.finished_at.isoformat() if run.finished_at else None,
            ),
        )

    def get_runs_for_request(self, request_id: str) -> list[RunMetadata]:
        rows = self.fetchall(
            "SELECT * FROM run_metadata WHERE request_id = ? ORDER BY run_id ASC;",
            (request_id,),
        )
        return [_row_to_run(r) for r in rows]

    def get_recent_runs(self, limit: int = 20) -> list[RunMetadata]:
        rows = self.fetchall(
            "SELECT * FROM run_metadata ORDER BY started_at DESC LIMIT ?;",
            (limit,),
        )
        return [_row_to_run(r) for r in rows]


# ── Private helpers ────────────────────────────────────────────────────────────

def _row_to_period(row: sqlite3.Row) -> ForecastPeriod:
    return ForecastPeriod(
        period_date=date.fromisoformat(row["forecast_date"]),
        forecast_value=row["forecast_value"],
        confidence_interval=ConfidenceInterval(
            lower=row["confidence_lower"],
            upper=row["confidence_upper"],
        ),
    )


def _row_to_run(row: sqlite3.Row) -> RunMetadata:
    return RunMetadata(
        run_id=row["run_id"],
        request_id=row["request_id"],
        product_id=row["product_id"],
        status=row["status"],
        final_state=row["final_state"],
        periods_written=row["periods_written"],
        periods_failed=row["periods_failed"],
        rationale_source=row["rationale_source"],
        error_message=row["error_message"],
        config_snapshot=json.loads(row["config_snapshot"]),
        started_at=datetime.fromisoformat(row["started_at"]),
        finished_at=(
            datetime.fromisoformat(row["finished_at"]) if row["finished_at"] else None
        ),
    )
