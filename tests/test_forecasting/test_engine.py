"""
Tests for ForecastEngine - the moving-average-plus-trend forecast.

Covers:
  - The reference example (100..112 over 2023-01-01..07 → 111.71 on 01-08)
  - Horizon, date and interval properties of every period
  - Summary statistics
  - Determinism
  - Short-series policies (zero_baseline and fail)
  - round2() and population_std_dev() helpers
"""

from __future__ import annotations

import math
from datetime import date, timedelta

import pytest

from demand_forecaster.config import ForecastConfig
from demand_forecaster.exceptions import InsufficientHistory
from demand_forecaster.forecasting.engine import (
    ForecastEngine,
    ForecastParameters,
    population_std_dev,
    round2,
)
from demand_forecaster.forecasting.timeseries import TimeSeries
from demand_forecaster.models.fact import MAX_FACT_VALUE, Fact


def _series(values, start=date(2023, 1, 1)) -> TimeSeries:
    return TimeSeries.load(
        [Fact(fact_date=start + timedelta(days=i), value=v) for i, v in enumerate(values)]
    )


# ── Reference example ─────────────────────────────────────────────────────────

class TestReferenceExample:
    def test_first_period(self, sample_series):
        computation = ForecastEngine().compute(sample_series)
        first = computation.periods[0]
        assert first.period_date == date(2023, 1, 8)
        assert first.forecast_value == 111.71

    def test_all_period_values(self, sample_series):
        computation = ForecastEngine().compute(sample_series)
        assert [p.forecast_value for p in computation.periods] == [
            111.71, 113.43, 115.14, 116.86, 118.57,
        ]

    def test_first_interval(self, sample_series):
        ci = ForecastEngine().compute(sample_series).periods[0].confidence_interval
        assert ci.lower == 105.94
        assert ci.upper == 117.48

    def test_summary(self, sample_series):
        s = ForecastEngine().compute(sample_series).summary
        assert s.moving_average == pytest.approx(110.0)
        assert s.trend_slope == pytest.approx(12 / 7)
        assert s.average_forecast == 115.14
        assert s.trend == 6.86
        assert s.min_forecast == pytest.approx(110.0 + 12 / 7)
        assert s.max_forecast == pytest.approx(110.0 + 5 * 12 / 7)

    def test_metadata(self, sample_series):
        computation = ForecastEngine().compute(sample_series)
        assert computation.historical_data_points == 7
        assert computation.horizon == 5


# ── Period properties ─────────────────────────────────────────────────────────

class TestPeriodProperties:
    @pytest.mark.parametrize("horizon", [1, 3, 5, 14])
    def test_period_count_equals_horizon(self, sample_series, horizon):
        engine = ForecastEngine(ForecastParameters(horizon=horizon))
        assert len(engine.compute(sample_series).periods) == horizon

    def test_dates_are_consecutive_after_last_fact(self, sample_series):
        periods = ForecastEngine().compute(sample_series).periods
        for d, period in enumerate(periods, start=1):
            assert period.period_date == date(2023, 1, 7) + timedelta(days=d)

    def test_value_inside_interval(self):
        series = _series([5.0, 50.0, 2.0, 80.0, 13.0, 0.0, 41.0, 9.0, 27.0])
        for period in ForecastEngine().compute(series).periods:
            ci = period.confidence_interval
            assert ci.lower <= period.forecast_value <= ci.upper

    def test_values_have_at_most_two_decimals(self, sample_series):
        for period in ForecastEngine().compute(sample_series).periods:
            assert round(period.forecast_value, 2) == period.forecast_value

    def test_constant_series_has_zero_width_interval(self):
        periods = ForecastEngine().compute(_series([20.0] * 7)).periods
        for period in periods:
            assert period.forecast_value == 20.0
            assert period.confidence_interval.lower == 20.0
            assert period.confidence_interval.upper == 20.0

    def test_zero_confidence_collapses_interval(self, sample_series):
        engine = ForecastEngine(ForecastParameters(confidence_level=0.0))
        for period in engine.compute(sample_series).periods:
            assert period.confidence_interval.lower == period.forecast_value
            assert period.confidence_interval.upper == period.forecast_value

    def test_confidence_level_scales_linearly(self, sample_series):
        narrow = ForecastEngine(ForecastParameters(confidence_level=1.0)).compute(sample_series)
        wide = ForecastEngine(ForecastParameters(confidence_level=2.0)).compute(sample_series)
        n_ci = narrow.periods[0].confidence_interval
        w_ci = wide.periods[0].confidence_interval
        assert (w_ci.upper - w_ci.lower) == pytest.approx(2 * (n_ci.upper - n_ci.lower), abs=0.05)

    def test_largest_fact_values_stay_finite(self):
        series = _series([MAX_FACT_VALUE, -MAX_FACT_VALUE] * 4)
        for period in ForecastEngine().compute(series).periods:
            ci = period.confidence_interval
            assert math.isfinite(ci.lower) and math.isfinite(ci.upper)
            assert ci.lower <= period.forecast_value <= ci.upper

    def test_declining_series_has_negative_trend(self):
        s = ForecastEngine().compute(_series([70.0, 65.0, 60.0, 55.0, 50.0, 45.0, 40.0])).summary
        assert s.trend_slope < 0
        assert s.trend < 0


class TestDeterminism:
    def test_same_input_same_output(self, sample_facts):
        engine = ForecastEngine()
        first = engine.compute(TimeSeries.load(sample_facts))
        second = engine.compute(TimeSeries.load(list(sample_facts)))
        assert first == second


# ── Short series ──────────────────────────────────────────────────────────────

class TestShortSeries:
    def test_zero_baseline_uses_trend_only(self):
        computation = ForecastEngine().compute(_series([10.0, 20.0, 30.0]))
        assert computation.summary.moving_average == 0.0
        assert computation.summary.trend_slope == pytest.approx(20 / 3)
        assert computation.periods[0].forecast_value == 6.67
        assert computation.periods[0].period_date == date(2023, 1, 4)
        assert computation.historical_data_points == 3

    def test_single_point_forecasts_zero(self):
        computation = ForecastEngine().compute(_series([42.0]))
        for period in computation.periods:
            assert period.forecast_value == 0.0
            assert period.confidence_interval.lower == 0.0
            assert period.confidence_interval.upper == 0.0

    def test_fail_policy_raises(self):
        engine = ForecastEngine(ForecastParameters(short_series_policy="fail"))
        with pytest.raises(InsufficientHistory) as exc_info:
            engine.compute(_series([10.0, 20.0, 30.0]))
        assert exc_info.value.length == 3
        assert exc_info.value.window_size == 7

    def test_fail_policy_accepts_full_window(self, sample_series):
        engine = ForecastEngine(ForecastParameters(short_series_policy="fail"))
        engine.check_history(sample_series)
        assert engine.compute(sample_series).periods[0].forecast_value == 111.71

    def test_check_history_noop_under_zero_baseline(self):
        ForecastEngine().check_history(_series([1.0]))


# ── Parameters ────────────────────────────────────────────────────────────────

class TestForecastParameters:
    def test_defaults(self):
        p = ForecastParameters()
        assert (p.horizon, p.window_size, p.confidence_level) == (5, 7, 0.95)
        assert p.short_series_policy == "zero_baseline"

    def test_from_config(self):
        cfg = ForecastConfig(horizon=3, window_size=4, confidence_level=1.5,
                             short_series_policy="fail")
        p = ForecastParameters.from_config(cfg)
        assert p == ForecastParameters(3, 4, 1.5, "fail")

    @pytest.mark.parametrize("kwargs", [
        {"horizon": 0},
        {"window_size": 0},
        {"confidence_level": -0.1},
    ])
    def test_invalid_values_raise(self, kwargs):
        with pytest.raises(ValueError):
            ForecastParameters(**kwargs)


# ── Helpers ───────────────────────────────────────────────────────────────────

class TestRound2:
    @pytest.mark.parametrize("value, expected", [
        (111.7142857, 111.71),
        (0.125, 0.13),
        (-0.125, -0.13),
        (2.5, 2.5),
        (0.004, 0.0),
        (-0.004, 0.0),
        (118.5714286, 118.57),
    ])
    def test_rounding(self, value, expected):
        assert round2(value) == expected

    def test_negative_zero_normalized(self):
        assert math.copysign(1.0, round2(-0.001)) == 1.0


class TestPopulationStdDev:
    def test_reference_history(self):
        values = [100.0, 110.0, 105.0, 120.0, 115.0, 108.0, 112.0]
        assert population_std_dev(values) == pytest.approx(math.sqrt(258 / 7))

    def test_single_value_is_zero(self):
        assert population_std_dev([5.0]) == 0.0

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            population_std_dev([])
