"""
Forecast accuracy metrics.

MAE   - "on average we're off by X units."
RMSE  - penalises large misses; RMSE well above MAE means occasional big misses.
MAPE  - MAE relative to actual demand. Days with actual demand below
        ``MAPE_EPSILON`` are excluded; zero-sales days would otherwise divide
        by zero.
Bias  - mean signed error (actual - forecast). Positive means the forecast
        runs low (under-forecasting), negative means it runs high.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Optional

MAPE_EPSILON = 0.5  # units; integer sales below this are zero-sales days


@dataclass(frozen=True)
class EvaluationRecord:
    """One prediction compared with the actual fact for its date."""

    result_id: int
    forecast_date: date
    forecast_value: float
    actual_quantity: float

    @property
    def error(self) -> float:
        return self.actual_quantity - self.forecast_value


@dataclass(frozen=True)
class EvaluationSummary:
    """Aggregated accuracy of one forecast request.

    All float fields are ``None`` when no period has an actual yet.

    Attributes:
        request_id:      Forecast being evaluated.
        n_periods:       Periods stored for the request.
        n_evaluated:     Periods with an actual fact.
        n_new:           Evaluations written by this call.
        mae, rmse, mape, bias: See module docstring.
    """

    request_id: str
    n_periods: int
    n_evaluated: int
    n_new: int
    mae: Optional[float]
    rmse: Optional[float]
    mape: Optional[float]
    bias: Optional[float]


def compute_evaluation_metrics(
    request_id: str,
    records: list[EvaluationRecord],
    n_periods: int,
    n_new: int = 0,
) -> EvaluationSummary:
    """Aggregate ``records`` into an ``EvaluationSummary``."""
    if not records:
        return EvaluationSummary(
            request_id=request_id,
            n_periods=n_periods,
            n_evaluated=0,
            n_new=n_new,
            mae=None, rmse=None, mape=None, bias=None,
        )

    errors = [r.error for r in records]
    mae = sum(abs(e) for e in errors) / len(errors)
    rmse = math.sqrt(sum(e * e for e in errors) / len(errors))
    bias = sum(errors) / len(errors)

    mape_terms = [
        abs(r.error) / r.actual_quantity
        for r in records
        if r.actual_quantity >= MAPE_EPSILON
    ]
    mape = (sum(mape_terms) / len(mape_terms)) if mape_terms else None

    return EvaluationSummary(
        request_id=request_id,
        n_periods=n_periods,
        n_evaluated=len(records),
        n_new=n_new,
        mae=mae,
        rmse=rmse,
        mape=mape,
        bias=bias,
    )
