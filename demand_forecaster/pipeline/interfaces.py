"""
Collaborator contracts consumed by ``ForecastPipeline``.

The pipeline depends only on these protocols; ``demand_forecaster.db.stores``
provides the SQLite implementations and tests substitute in-memory fakes.
"""

from __future__ import annotations

from datetime import date
from typing import Optional, Protocol

from demand_forecaster.models.fact import Fact
from demand_forecaster.models.forecast import ForecastResult, PeriodWriteOutcome
from demand_forecaster.models.meta import RunMetadata


class FactStore(Protocol):
    """Read-only source of ordered historical facts."""

    def load_facts(self, product_id: str, since_date: Optional[date]) -> list[Fact]:
        """Sales facts in ascending date order.

        Raises:
            FactsNotFound: If no rows exist for the product/date range.
        """
        ...

    def load_inventory(self, product_id: str, since_date: Optional[date]) -> list[Fact]:
        """Inventory facts in ascending date order; may be empty."""
        ...


class ResultStore(Protocol):
    """Write-only sink for prediction records.

    ``persist`` writes each period independently and reports one outcome per
    period, in period order. It must not raise for individual period
    failures; an exception means the store could not be used at all.
    """

    def persist(self, result: ForecastResult) -> list[PeriodWriteOutcome]:
        ...


class RunLog(Protocol):
    """Sink for run audit records."""

    def record(self, run: RunMetadata) -> None:
        ...
