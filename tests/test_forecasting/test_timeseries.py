"""Tests for TimeSeries - load validation, windowed averages, accessors."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from demand_forecaster.exceptions import EmptySeries, InputError, UnsortedSeries
from demand_forecaster.forecasting.timeseries import TimeSeries
from demand_forecaster.models.fact import Fact


def _facts(values, start=date(2023, 1, 1)):
    return [Fact(fact_date=start + timedelta(days=i), value=v) for i, v in enumerate(values)]


class TestLoad:
    def test_loads_ascending_facts(self, sample_facts):
        series = TimeSeries.load(sample_facts)
        assert len(series) == 7
        assert series.length() == 7
        assert series.first_value() == 100.0
        assert series.last_value() == 112.0
        assert series.last_date() == date(2023, 1, 7)

    def test_empty_raises(self):
        with pytest.raises(EmptySeries):
            TimeSeries.load([])

    def test_empty_is_an_input_error(self):
        with pytest.raises(InputError):
            TimeSeries.load([])

    def test_out_of_order_raises_with_position(self):
        facts = _facts([1.0, 2.0, 3.0])
        facts[1], facts[2] = facts[2], facts[1]
        with pytest.raises(UnsortedSeries) as exc_info:
            TimeSeries.load(facts)
        assert exc_info.value.index == 2
        assert exc_info.value.previous == date(2023, 1, 3)
        assert exc_info.value.current == date(2023, 1, 2)

    def test_duplicate_date_raises(self):
        facts = _facts([1.0, 2.0])
        facts.append(Fact(fact_date=date(2023, 1, 2), value=5.0))
        with pytest.raises(UnsortedSeries):
            TimeSeries.load(facts)

    def test_single_fact_is_valid(self):
        series = TimeSeries.load(_facts([42.0]))
        assert series.first_value() == series.last_value() == 42.0

    def test_gaps_between_dates_are_allowed(self):
        facts = [
            Fact(fact_date=date(2023, 1, 1), value=1.0),
            Fact(fact_date=date(2023, 1, 5), value=2.0),
        ]
        assert TimeSeries.load(facts).dates() == [date(2023, 1, 1), date(2023, 1, 5)]

    def test_facts_are_preserved_in_order(self, sample_facts):
        series = TimeSeries.load(sample_facts)
        assert series.facts() == tuple(sample_facts)
        assert series.values() == [100.0, 110.0, 105.0, 120.0, 115.0, 108.0, 112.0]


class TestWindowedAverage:
    def test_full_window_equals_mean(self, sample_series):
        assert sample_series.windowed_average(7) == [110.0]

    def test_result_length(self, sample_series):
        averages = sample_series.windowed_average(3)
        assert len(averages) == 7 - 3 + 1

    def test_window_of_three(self):
        series = TimeSeries.load(_facts([3.0, 6.0, 9.0, 12.0]))
        assert series.windowed_average(3) == pytest.approx([6.0, 9.0])

    def test_window_of_one_is_identity(self, sample_series):
        assert sample_series.windowed_average(1) == sample_series.values()

    def test_shorter_than_window_is_empty(self):
        series = TimeSeries.load(_facts([1.0, 2.0, 3.0]))
        assert series.windowed_average(7) == []

    def test_invalid_window_raises(self, sample_series):
        with pytest.raises(ValueError, match="window_size"):
            sample_series.windowed_average(0)


def test_repr_shows_range(sample_series):
    assert repr(sample_series) == "TimeSeries(n=7, 2023-01-01..2023-01-07)"
