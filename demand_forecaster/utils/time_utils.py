"""
Time and date utilities.

Key concepts:
  - Time range descriptors: the trigger names a history window as a string
    (``"last-30-days"``); ``resolve_time_range()`` turns it into the first
    date the Fact Store should return.
  - Forecast date generation: one calendar day per period after the last fact.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from demand_forecaster.exceptions import InvalidTimeRange

_LAST_N_PATTERN = re.compile(r"^last-(\d+)-(day|days|week|weeks|month|months)$")
_SINCE_PATTERN = re.compile(r"^since-(\d{4}-\d{2}-\d{2})$")

_UNIT_DAYS: dict[str, int] = {
    "day": 1,
    "week": 7,
    "month": 30,
}


def resolve_time_range(descriptor: str, as_of: Optional[date] = None) -> Optional[date]:
    """Resolve a time range descriptor to an inclusive start date.

    Supported formats:
      ``last-N-days``, ``last-N-weeks``, ``last-N-months`` (30-day months),
      ``since-YYYY-MM-DD``, ``all``.

    ``last-30-days`` as of 2023-01-31 covers 2023-01-02 .. 2023-01-31, i.e.
    exactly 30 calendar days including ``as_of``.

    Args:
        descriptor: Time range string from the trigger.
        as_of: Reference date (defaults to today, UTC).

    Returns:
        First date to include, or ``None`` for ``all``.

    Raises:
        InvalidTimeRange: If the descriptor is not recognized, N < 1, or the
            window reaches before the earliest representable date.
    """
    text = descriptor.strip().lower()
    if text == "all":
        return None

    if match := _SINCE_PATTERN.match(text):
        try:
            return date.fromisoformat(match.group(1))
        except ValueError:
            raise InvalidTimeRange(descriptor) from None

    if match := _LAST_N_PATTERN.match(text):
        count = int(match.group(1))
        if count < 1:
            raise InvalidTimeRange(descriptor)
        unit = match.group(2).rstrip("s")
        reference = as_of or today_utc()
        try:
            return reference - timedelta(days=count * _UNIT_DAYS[unit] - 1)
        except (OverflowError, ValueError):
            raise InvalidTimeRange(descriptor) from None

    raise InvalidTimeRange(descriptor)


def forecast_dates(last_date: date, horizon: int) -> list[date]:
    """Return the ``horizon`` calendar days following ``last_date``.

    Raises:
        ValueError: If ``horizon < 1``.
    """
    if horizon < 1:
        raise ValueError(f"horizon must be >= 1, got {horizon}.")
    return [last_date + timedelta(days=d) for d in range(1, horizon + 1)]


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def today_utc() -> date:
    """Return today's calendar date in UTC."""
    return utcnow().date()
