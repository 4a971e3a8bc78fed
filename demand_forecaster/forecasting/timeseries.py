"""
Validated, ordered fact series.

``TimeSeries.load()`` is the gate every fact series passes before the engine
sees it: the series must be non-empty and strictly ascending by date. Upstream
stores already return facts in order; the check is repeated here because the
engine's date arithmetic is meaningless otherwise.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date

from demand_forecaster.exceptions import EmptySeries, UnsortedSeries
from demand_forecaster.models.fact import Fact


class TimeSeries:
    """Immutable view over an ascending, non-empty sequence of facts."""

    __slots__ = ("_facts",)

    def __init__(self, facts: tuple[Fact, ...]) -> None:
        self._facts = facts

    @classmethod
    def load(cls, facts: Sequence[Fact]) -> "TimeSeries":
        """Validate ``facts`` and wrap them.

        Raises:
            EmptySeries: If ``facts`` is empty.
            UnsortedSeries: If any date is not strictly after its predecessor.
        """
        if not facts:
            raise EmptySeries()
        for i in range(1, len(facts)):
            if facts[i].fact_date <= facts[i - 1].fact_date:
                raise UnsortedSeries(i, facts[i - 1].fact_date, facts[i].fact_date)
        return cls(tuple(facts))

    def windowed_average(self, window_size: int) -> list[float]:
        """Trailing mean of every run of ``window_size`` consecutive values.

        Element ``i`` is the mean of values ``i .. i + window_size - 1``, so the
        result has ``len(self) - window_size + 1`` elements, ending with the
        mean of the most recent window. Empty when the series is shorter
        than the window.

        Raises:
            ValueError: If ``window_size < 1``.
        """
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}.")
        values = self.values()
        if len(values) < window_size:
            return []

        return [
            sum(values[i:i + window_size]) / window_size
            for i in range(len(values) - window_size + 1)
        ]

    def first_value(self) -> float:
        return self._facts[0].value

    def last_value(self) -> float:
        return self._facts[-1].value

    def last_date(self) -> date:
        return self._facts[-1].fact_date

    def length(self) -> int:
        return len(self._facts)

    def values(self) -> list[float]:
        return [f.value for f in self._facts]

    def dates(self) -> list[date]:
        return [f.fact_date for f in self._facts]

    def facts(self) -> tuple[Fact, ...]:
        return self._facts

    def __len__(self) -> int:
        return len(self._facts)

    def __repr__(self) -> str:
        return (
            f"TimeSeries(n={len(self._facts)}, "
            f"{self._facts[0].fact_date.isoformat()}..{self.last_date().isoformat()})"
        )
