"""
Repository for ``forecast_evaluations`` - predictions scored against the
sales facts that arrived after them.
"""

from __future__ import annotations

import logging
from datetime import date

from demand_forecaster.db.repositories.base import BaseRepository
from demand_forecaster.evaluation.metrics import EvaluationRecord

logger = logging.getLogger(__name__)


class EvaluationRepository(BaseRepository):
    """Append-only access to ``forecast_evaluations``."""

    def get_pending(self, request_id: str) -> list[EvaluationRecord]:
        """Predictions of ``request_id`` that have an actual fact but no evaluation yet.

        Each record carries the stored ``result_id`` it will be attached to.
        """
        rows = self.fetchall(
            """
            SELECT fr.result_id, fr.forecast_date, fr.forecast_value,
                   ds.quantity AS actual_quantity
            FROM forecast_results fr
            JOIN daily_sales ds
                ON ds.product_id = fr.product_id AND ds.sales_date = fr.forecast_date
            LEFT JOIN forecast_evaluations fe ON fe.result_id = fr.result_id
            WHERE fr.request_id = ? AND fe.evaluation_id IS NULL
            ORDER BY fr.forecast_date ASC;
            """,
            (request_id,),
        )
        return [
            EvaluationRecord(
                result_id=r["result_id"],
                forecast_date=date.fromisoformat(r["forecast_date"]),
                forecast_value=float(r["forecast_value"]),
                actual_quantity=float(r["actual_quantity"]),
            )
            for r in rows
        ]

    def insert_evaluation(self, record: EvaluationRecord) -> int:
        """Record one evaluation and return its ``evaluation_id``."""
        return self.insert(
            """
            INSERT INTO forecast_evaluations (result_id, actual_quantity, error)
            VALUES (?, ?, ?);
            """,
            (record.result_id, record.actual_quantity, record.error),
        )

    def get_evaluations(self, request_id: str) -> list[EvaluationRecord]:
        """All stored evaluations of ``request_id`` in forecast-date order."""
        rows = self.fetchall(
            """
            SELECT fr.result_id, fr.forecast_date, fr.forecast_value, fe.actual_quantity
            FROM forecast_evaluations fe
            JOIN forecast_results fr ON fr.result_id = fe.result_id
            WHERE fr.request_id = ?
            ORDER BY fr.forecast_date ASC;
            """,
            (request_id,),
        )
        return [
            EvaluationRecord(
                result_id=r["result_id"],
                forecast_date=date.fromisoformat(r["forecast_date"]),
                forecast_value=float(r["forecast_value"]),
                actual_quantity=float(r["actual_quantity"]),
            )
            for r in rows
        ]
