"""Tests for time range resolution and forecast date generation."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from demand_forecaster.exceptions import InputError, InvalidTimeRange
from demand_forecaster.utils.time_utils import (
    forecast_dates,
    resolve_time_range,
    today_utc,
    utcnow,
)

AS_OF = date(2023, 1, 31)


class TestResolveTimeRange:
    @pytest.mark.parametrize("descriptor, expected", [
        ("last-30-days", date(2023, 1, 2)),
        ("last-1-day", date(2023, 1, 31)),
        ("last-2-weeks", date(2023, 1, 18)),
        ("last-1-month", date(2023, 1, 2)),
        ("last-3-months", date(2022, 11, 3)),
        ("since-2022-12-25", date(2022, 12, 25)),
        ("  LAST-7-DAYS ", date(2023, 1, 25)),
    ])
    def test_descriptors(self, descriptor, expected):
        assert resolve_time_range(descriptor, AS_OF) == expected

    def test_all_has_no_lower_bound(self):
        assert resolve_time_range("all", AS_OF) is None

    def test_defaults_to_today(self):
        assert resolve_time_range("last-1-day") == today_utc()

    @pytest.mark.parametrize("descriptor", [
        "yesterday",
        "last-0-days",
        "last-x-days",
        "last-5-years",
        "since-2023-02-30",
        "since-01-01-2023",
        "",
    ])
    def test_invalid(self, descriptor):
        with pytest.raises(InvalidTimeRange):
            resolve_time_range(descriptor, AS_OF)

    @pytest.mark.parametrize("descriptor", ["last-1000000-days", "last-99999999999-months"])
    def test_window_before_earliest_date(self, descriptor):
        with pytest.raises(InvalidTimeRange):
            resolve_time_range(descriptor, AS_OF)

    def test_invalid_is_input_error(self):
        with pytest.raises(InputError, match="Cannot parse time range 'soon'"):
            resolve_time_range("soon", AS_OF)


class TestForecastDates:
    def test_consecutive_days(self):
        assert forecast_dates(date(2023, 1, 7), 3) == [
            date(2023, 1, 8), date(2023, 1, 9), date(2023, 1, 10),
        ]

    def test_crosses_month_and_year(self):
        assert forecast_dates(date(2023, 12, 31), 2) == [date(2024, 1, 1), date(2024, 1, 2)]

    def test_invalid_horizon(self):
        with pytest.raises(ValueError):
            forecast_dates(date(2023, 1, 7), 0)


def test_utcnow_is_timezone_aware():
    now = utcnow()
    assert now.tzinfo is not None
    assert now.utcoffset() == timedelta(0)
