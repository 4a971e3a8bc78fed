"""
LoadFactsStage - resolve the history window and load a validated series.

This stage is the validation boundary: facts leave it as a ``TimeSeries``
that is non-empty, strictly ascending and long enough for the configured
short-series policy. Later stages trust it.

Failure mapping:
  InvalidTimeRange           → propagated (input error)
  FactsNotFound              → EmptySeries
  EmptySeries/UnsortedSeries → propagated
  InsufficientHistory        → propagated (``fail`` policy only)
"""

from __future__ import annotations

import logging

from demand_forecaster.config import AppConfig
from demand_forecaster.exceptions import EmptySeries, FactsNotFound
from demand_forecaster.forecasting.engine import ForecastEngine
from demand_forecaster.forecasting.timeseries import TimeSeries
from demand_forecaster.pipeline.base import PipelineStage, PipelineState, RunContext
from demand_forecaster.pipeline.interfaces import FactStore
from demand_forecaster.utils.time_utils import resolve_time_range

logger = logging.getLogger(__name__)


class LoadFactsStage(PipelineStage):
    """Read sales (and inventory) facts for the request's product and window."""

    stage_name = "load_facts"
    state = PipelineState.LOADING_FACTS

    def __init__(self, config: AppConfig, fact_store: FactStore, engine: ForecastEngine) -> None:
        super().__init__(config)
        self.fact_store = fact_store
        self.engine = engine

    def _execute(self, context: RunContext) -> None:
        request = context.request
        context.since_date = resolve_time_range(request.time_range, context.as_of)

        try:
            facts = self.fact_store.load_facts(request.product_id, context.since_date)
        except FactsNotFound as exc:
            raise EmptySeries(str(exc)) from exc

        series = TimeSeries.load(facts)
        self.engine.check_history(series)
        context.series = series
        context.inventory = self.fact_store.load_inventory(request.product_id, context.since_date)

        logger.info(
            "Loaded %d sales fact(s), %d inventory fact(s) | request_id=%s product_id=%s since=%s",
            len(series), len(context.inventory), context.request_id, request.product_id,
            context.since_date.isoformat() if context.since_date else "all",
            extra=context.log_extra,
        )
