"""
Forecast request, computation and result models.

``ForecastComputation`` is the engine's pure output: periods and summary
statistics, no timestamp, no identifiers. ``ForecastResult`` wraps it with
the request id, product, audit timestamp and rationale, and is what the
Result Store receives.

All models are frozen - a forecast is produced once and never mutated.
Re-running a forecast means a new request id and a new ``ForecastResult``.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

RationaleSource = Literal["generated", "fallback"]
RunStatus = Literal["completed", "failed"]


class ConfidenceInterval(BaseModel):
    """Closed interval around a forecast value."""

    model_config = ConfigDict(frozen=True)

    lower: float
    upper: float

    @model_validator(mode="after")
    def validate_bounds(self) -> "ConfidenceInterval":
        if self.lower > self.upper:
            raise ValueError(
                f"lower ({self.lower}) must be <= upper ({self.upper})."
            )
        return self


class ForecastPeriod(BaseModel):
    """One forecast day.

    Attributes:
        period_date:         Forecasted calendar date.
        forecast_value:      Point forecast, rounded to 2 decimal places.
        confidence_interval: Bounds around ``forecast_value``.
    """

    model_config = ConfigDict(frozen=True)

    period_date: date
    forecast_value: float
    confidence_interval: ConfidenceInterval

    @model_validator(mode="after")
    def validate_value_inside_interval(self) -> "ForecastPeriod":
        ci = self.confidence_interval
        if not ci.lower <= self.forecast_value <= ci.upper:
            raise ValueError(
                f"forecast_value ({self.forecast_value}) must lie within "
                f"[{ci.lower}, {ci.upper}]."
            )
        return self


class ForecastSummary(BaseModel):
    """Deterministic summary statistics of one forecast.

    Attributes:
        average_forecast: Mean of the unrounded period values, rounded to 2dp.
        min_forecast:     Smallest unrounded period value.
        max_forecast:     Largest unrounded period value.
        trend:            Last minus first unrounded period value, rounded to 2dp.
        moving_average:   Baseline (last trailing window mean, or 0.0 fallback).
        trend_slope:      ``(last fact - first fact) / number of facts``.
    """

    model_config = ConfigDict(frozen=True)

    average_forecast: float
    min_forecast: float
    max_forecast: float
    trend: float
    moving_average: float
    trend_slope: float


class ForecastComputation(BaseModel):
    """Pure engine output for one fact series."""

    model_config = ConfigDict(frozen=True)

    periods: tuple[ForecastPeriod, ...]
    summary: ForecastSummary
    historical_data_points: int
    horizon: int

    @model_validator(mode="after")
    def validate_horizon(self) -> "ForecastComputation":
        if len(self.periods) != self.horizon:
            raise ValueError(
                f"Expected {self.horizon} periods, got {len(self.periods)}."
            )
        return self


class ForecastRequest(BaseModel):
    """Trigger payload for one pipeline run.

    Attributes:
        request_id: Caller-unique correlation id threaded through every stage.
        product_id: Product to forecast.
        time_range: History window descriptor, e.g. ``"last-30-days"``.
    """

    model_config = ConfigDict(frozen=True)

    request_id: str
    product_id: str
    time_range: str = "last-30-days"

    @field_validator("request_id", "product_id", "time_range")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty.")
        return v.strip()


class ForecastResult(BaseModel):
    """Immutable prediction record for one request.

    Persisted downstream as one row per period.

    Attributes:
        request_id:       Correlation id of the run that produced it.
        product_id:       Forecasted product.
        generated_at:     UTC audit timestamp; the only non-deterministic field.
        method:           Algorithm name, e.g. ``"moving-average-trend"``.
        model_version:    Version label stored with every persisted row.
        confidence_level: Interval multiplier used by the engine.
        periods:          Forecast periods in date order.
        summary:          Summary statistics.
        rationale:        Human-readable explanation. Empty only before the
                          rationale stage has attached one.
        rationale_source: ``"generated"`` or ``"fallback"``; ``None`` until attached.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    request_id: str
    product_id: str
    generated_at: datetime
    method: str
    model_version: str
    confidence_level: float
    periods: tuple[ForecastPeriod, ...]
    summary: ForecastSummary
    rationale: str = ""
    rationale_source: Optional[RationaleSource] = None

    @model_validator(mode="after")
    def validate_periods(self) -> "ForecastResult":
        if not self.periods:
            raise ValueError("A ForecastResult must contain at least one period.")
        dates = [p.period_date for p in self.periods]
        if dates != sorted(set(dates)):
            raise ValueError("Period dates must be unique and ascending.")
        return self


class PeriodWriteOutcome(BaseModel):
    """Outcome of persisting a single period."""

    model_config = ConfigDict(frozen=True)

    period_date: date
    success: bool
    error: Optional[str] = None
