"""
Exception hierarchy for the forecasting core.

  ForecastError
  ├── InputError               fatal to a run; reported as a failed run
  │   ├── EmptySeries
  │   ├── UnsortedSeries
  │   ├── InsufficientHistory
  │   └── InvalidTimeRange
  ├── FactsNotFound            Fact Store had no rows; the pipeline maps it to EmptySeries
  ├── RationaleError           always recovered by the fallback rationale
  │   ├── RationaleUnavailable
  │   ├── RationaleTimeout
  │   └── InvalidRationaleResponse
  └── IllegalStateTransition   pipeline state machine misuse
"""

from __future__ import annotations

from datetime import date
from typing import Optional


class ForecastError(Exception):
    """Base class for all demand_forecaster errors."""


# ── Input errors ──────────────────────────────────────────────────────────────


class InputError(ForecastError):
    """Input that cannot produce a forecast. Never retried automatically."""


class EmptySeries(InputError):
    """Raised when a fact series has no points."""

    def __init__(self, message: str = "Fact series is empty; no forecast without data.") -> None:
        super().__init__(message)


class UnsortedSeries(InputError):
    """Raised when fact dates are not strictly ascending.

    Attributes:
        index:     Position of the first offending fact.
        previous:  Date of the fact before it.
        current:   Date of the offending fact.
    """

    def __init__(self, index: int, previous: date, current: date) -> None:
        self.index = index
        self.previous = previous
        self.current = current
        super().__init__(
            f"Fact dates must be strictly ascending: position {index} has "
            f"{current.isoformat()} after {previous.isoformat()}."
        )


class InsufficientHistory(InputError):
    """Raised under the ``fail`` short-series policy when history < window."""

    def __init__(self, length: int, window_size: int) -> None:
        self.length = length
        self.window_size = window_size
        super().__init__(
            f"Fact series has {length} point(s); at least {window_size} are "
            "required by the 'fail' short-series policy."
        )


class InvalidTimeRange(InputError):
    """Raised when a time range descriptor cannot be parsed."""

    def __init__(self, descriptor: str) -> None:
        self.descriptor = descriptor
        super().__init__(
            f"Cannot parse time range '{descriptor}'. Expected last-N-days, "
            "last-N-weeks, last-N-months, since-YYYY-MM-DD, or all."
        )


# ── Store errors ──────────────────────────────────────────────────────────────


class FactsNotFound(ForecastError):
    """Raised by a Fact Store when no rows exist for the product/date range."""

    def __init__(self, product_id: str, since_date: Optional[date]) -> None:
        self.product_id = product_id
        self.since_date = since_date
        since = since_date.isoformat() if since_date else "the beginning"
        super().__init__(f"No facts for product '{product_id}' since {since}.")


# ── Rationale dependency errors ───────────────────────────────────────────────


class RationaleError(ForecastError):
    """Failure of the external text generator."""


class RationaleUnavailable(RationaleError):
    """Generator unconfigured, unreachable, or refused the request."""


class RationaleTimeout(RationaleError):
    """Generator did not answer within the configured timeout."""


class InvalidRationaleResponse(RationaleError):
    """Generator answered with a payload that holds no usable text."""


# ── Programming errors ────────────────────────────────────────────────────────


class IllegalStateTransition(ForecastError):
    """Raised when the pipeline attempts a transition its state machine forbids."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Illegal pipeline transition {current} -> {target}.")
