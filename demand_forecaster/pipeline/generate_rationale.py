"""
GenerateRationaleStage - explain the forecast and assemble the result.

The rationale generator is total, so this stage has no failure path of its
own. It is also where the ``ForecastResult`` gets its only non-deterministic
field, ``generated_at``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from demand_forecaster.config import AppConfig
from demand_forecaster.models.forecast import ForecastResult
from demand_forecaster.pipeline.base import PipelineStage, PipelineState, RunContext
from demand_forecaster.rationale.generator import RationaleGenerator, RationaleInputs

logger = logging.getLogger(__name__)


class GenerateRationaleStage(PipelineStage):
    stage_name = "generate_rationale"
    state = PipelineState.GENERATING_RATIONALE

    def __init__(
        self,
        config: AppConfig,
        rationale_generator: RationaleGenerator,
        clock: Callable[[], datetime],
    ) -> None:
        super().__init__(config)
        self.rationale_generator = rationale_generator
        self.clock = clock

    def _execute(self, context: RunContext) -> None:
        computation = context.computation
        if computation is None:
            raise RuntimeError("GenerateRationaleStage requires a computed forecast.")

        request = context.request
        outcome = self.rationale_generator.generate_outcome(
            RationaleInputs.from_computation(request.product_id, computation)
        )
        context.rationale = outcome
        context.result = ForecastResult(
            request_id=request.request_id,
            product_id=request.product_id,
            generated_at=self.clock(),
            method=self.config.forecast.method,
            model_version=self.config.forecast.model_version,
            confidence_level=self.config.forecast.confidence_level,
            periods=computation.periods,
            summary=computation.summary,
            rationale=outcome.text,
            rationale_source=outcome.source,
        )
        logger.info(
            "Rationale attached | request_id=%s source=%s", context.request_id, outcome.source,
            extra=context.log_extra,
        )
