"""
ForecastEngine - moving-average baseline plus linear trend.

Algorithm
---------
For a validated ``TimeSeries`` of ``n`` facts and a horizon ``H``:

  1. Baseline: the most recent trailing mean over ``window_size`` (7) facts.
     Shorter series follow the configured short-series policy:
       zero_baseline → baseline 0.0, forecast driven by the trend alone
       fail          → ``InsufficientHistory``
  2. Trend slope: ``(last - first) / n``. A cheap, fully explainable rate of
     change across the observed range, not a least-squares fit.
  3. Periods: for ``d`` in ``1..H`` the forecast for ``last_date + d`` is
     ``round2(baseline + slope * d)``.
  4. Interval half-width: population std dev of all fact values times
     ``confidence_level``. The level is a linear multiplier, not a z-score;
     intervals are ``[round2(v - margin), round2(v + margin)]``.
  5. Summary statistics from the unrounded period values.

Worked example
--------------
Facts 100, 110, 105, 120, 115, 108, 112 on 2023-01-01..07:
  baseline = 770 / 7 = 110.0, slope = 12 / 7 ≈ 1.7143,
  2023-01-08 → round2(110.0 + 1.7143) = 111.71.

The engine performs no I/O and reads no clock; identical input yields
identical output.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from demand_forecaster.config import ForecastConfig, ShortSeriesPolicy
from demand_forecaster.exceptions import InsufficientHistory
from demand_forecaster.forecasting.timeseries import TimeSeries
from demand_forecaster.models.forecast import (
    ConfidenceInterval,
    ForecastComputation,
    ForecastPeriod,
    ForecastSummary,
)
from demand_forecaster.utils.time_utils import forecast_dates

logger = logging.getLogger(__name__)


def round2(value: float) -> float:
    """Round to 2 decimal places, halves away from zero.

    Python's ``round()`` rounds halves to even; quantities here follow the
    commercial convention instead (``round2(0.125) == 0.13``,
    ``round2(-0.125) == -0.13``).
    """
    scaled = math.floor(abs(value) * 100 + 0.5)
    return math.copysign(scaled, value) / 100 if scaled else 0.0


def population_std_dev(values: list[float]) -> float:
    """Population standard deviation (divides by ``n``). 0.0 for one value.

    Raises:
        ValueError: If ``values`` is empty.
    """
    if not values:
        raise ValueError("population_std_dev() requires at least one value.")
    mean = sum(values) / len(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


@dataclass(frozen=True)
class ForecastParameters:
    """Engine parameters.

    Attributes:
        horizon:             Number of daily periods to forecast.
        window_size:         Facts per trailing-mean window.
        confidence_level:    Linear multiplier on the history's std dev.
        short_series_policy: Behaviour when history < ``window_size``.
    """

    horizon: int = 5
    window_size: int = 7
    confidence_level: float = 0.95
    short_series_policy: ShortSeriesPolicy = "zero_baseline"

    def __post_init__(self) -> None:
        if self.horizon < 1:
            raise ValueError(f"horizon must be >= 1, got {self.horizon}.")
        if self.window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {self.window_size}.")
        if self.confidence_level < 0:
            raise ValueError(
                f"confidence_level must be >= 0, got {self.confidence_level}."
            )

    @classmethod
    def from_config(cls, config: ForecastConfig) -> "ForecastParameters":
        return cls(
            horizon=config.horizon,
            window_size=config.window_size,
            confidence_level=config.confidence_level,
            short_series_policy=config.short_series_policy,
        )


class ForecastEngine:
    """Pure transformation from a fact series to forecast periods + summary."""

    def __init__(self, parameters: ForecastParameters | None = None) -> None:
        self.parameters = parameters or ForecastParameters()

    def check_history(self, series: TimeSeries) -> None:
        """Apply the short-series policy without computing anything.

        Raises:
            InsufficientHistory: Under the ``fail`` policy when the series is
                shorter than the averaging window.
        """
        p = self.parameters
        if len(series) < p.window_size and p.short_series_policy == "fail":
            raise InsufficientHistory(len(series), p.window_size)

    def compute(self, series: TimeSeries) -> ForecastComputation:
        """Forecast ``horizon`` days past the last fact of ``series``.

        Raises:
            InsufficientHistory: See ``check_history()``.
        """
        self.check_history(series)
        p = self.parameters

        moving_average = self._baseline(series)
        trend_slope = (series.last_value() - series.first_value()) / len(series)
        margin = population_std_dev(series.values()) * p.confidence_level

        raw_values: list[float] = []
        periods: list[ForecastPeriod] = []
        for d, period_date in enumerate(forecast_dates(series.last_date(), p.horizon), start=1):
            raw = moving_average + trend_slope * d
            value = round2(raw)
            raw_values.append(raw)
            periods.append(
                ForecastPeriod(
                    period_date=period_date,
                    forecast_value=value,
                    confidence_interval=ConfidenceInterval(
                        lower=round2(value - margin),
                        upper=round2(value + margin),
                    ),
                )
            )

        summary = ForecastSummary(
            average_forecast=round2(sum(raw_values) / len(raw_values)),
            min_forecast=min(raw_values),
            max_forecast=max(raw_values),
            trend=round2(raw_values[-1] - raw_values[0]),
            moving_average=moving_average,
            trend_slope=trend_slope,
        )
        logger.debug(
            "Computed %d periods | baseline=%.4f slope=%.4f margin=%.4f n=%d",
            len(periods), moving_average, trend_slope, margin, len(series),
        )
        return ForecastComputation(
            periods=tuple(periods),
            summary=summary,
            historical_data_points=len(series),
            horizon=p.horizon,
        )

    def _baseline(self, series: TimeSeries) -> float:
        averages = series.windowed_average(self.parameters.window_size)
        if not averages:
            logger.info(
                "Series of %d point(s) is shorter than the %d-point window; "
                "using zero baseline.",
                len(series), self.parameters.window_size,
            )
            return 0.0
        return averages[-1]
