"""
ForecastEvaluator - score stored predictions against later sales facts.

For one request id:
  1. Find stored periods whose date now has a sales fact and no evaluation.
  2. Append one ``forecast_evaluations`` row per such period.
  3. Return metrics over every evaluation of the request (old and new).

Safe to re-run: already-evaluated periods are skipped, and the append-only
triggers reject any attempt to rewrite an evaluation.
"""

from __future__ import annotations

import logging
from typing import Optional

from demand_forecaster.config import AppConfig
from demand_forecaster.db.connection import connect
from demand_forecaster.db.repositories.evaluation_repo import EvaluationRepository
from demand_forecaster.db.repositories.forecast_repo import ForecastResultRepository
from demand_forecaster.evaluation.metrics import (
    EvaluationSummary,
    compute_evaluation_metrics,
)

logger = logging.getLogger(__name__)


class ForecastEvaluator:
    """Evaluate persisted forecasts.

    Args:
        config:  AppConfig for database settings.
        db_path: Override DB path (defaults to config.database.db_path).
    """

    def __init__(self, config: AppConfig, db_path: Optional[str] = None) -> None:
        self.config = config
        self.db_path = db_path or config.database.db_path

    def evaluate(self, request_id: str) -> EvaluationSummary:
        """Evaluate every newly evaluable period of ``request_id``.

        Raises:
            LookupError: If no period was stored for ``request_id``.
        """
        with connect(self.config.database, self.db_path) as conn:
            n_periods = ForecastResultRepository(conn).count_periods(request_id)
            if n_periods == 0:
                raise LookupError(f"No forecast periods stored for request_id={request_id}.")

            repo = EvaluationRepository(conn)
            pending = repo.get_pending(request_id)
            for record in pending:
                repo.insert_evaluation(record)
            records = repo.get_evaluations(request_id)

        summary = compute_evaluation_metrics(
            request_id, records, n_periods=n_periods, n_new=len(pending)
        )
        logger.info(
            "Evaluated request_id=%s | new=%d evaluated=%d/%d mae=%s",
            request_id, summary.n_new, summary.n_evaluated, n_periods,
            f"{summary.mae:.3f}" if summary.mae is not None else "n/a",
        )
        return summary
