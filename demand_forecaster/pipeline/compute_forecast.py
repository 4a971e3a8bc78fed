"""ComputeForecastStage - run the pure engine over the loaded series."""

from __future__ import annotations

import logging

from demand_forecaster.config import AppConfig
from demand_forecaster.forecasting.engine import ForecastEngine
from demand_forecaster.pipeline.base import PipelineStage, PipelineState, RunContext

logger = logging.getLogger(__name__)


class ComputeForecastStage(PipelineStage):
    stage_name = "compute_forecast"
    state = PipelineState.COMPUTING

    def __init__(self, config: AppConfig, engine: ForecastEngine) -> None:
        super().__init__(config)
        self.engine = engine

    def _execute(self, context: RunContext) -> None:
        if context.series is None:
            raise RuntimeError("ComputeForecastStage requires a loaded series.")
        context.computation = self.engine.compute(context.series)
        summary = context.computation.summary
        logger.info(
            "Forecast computed | request_id=%s periods=%d average=%.2f trend=%.2f",
            context.request_id, len(context.computation.periods),
            summary.average_forecast, summary.trend,
            extra=context.log_extra,
        )
