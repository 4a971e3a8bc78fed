"""
PersistResultStage - hand the result to the Result Store, period by period.

Outcomes are aggregated, never retried. Periods written before a failure stay
written: predictions are append-only, so a failed run can leave a partial set
and auditors compare the stored period count with the horizon.
"""

from __future__ import annotations

import logging

from demand_forecaster.config import AppConfig
from demand_forecaster.models.forecast import PeriodWriteOutcome
from demand_forecaster.pipeline.base import PipelineStage, PipelineState, RunContext
from demand_forecaster.pipeline.interfaces import ResultStore

logger = logging.getLogger(__name__)


class PersistResultStage(PipelineStage):
    stage_name = "persist_result"
    state = PipelineState.PERSISTING

    def __init__(self, config: AppConfig, result_store: ResultStore) -> None:
        super().__init__(config)
        self.result_store = result_store

    def _execute(self, context: RunContext) -> None:
        result = context.result
        if result is None:
            raise RuntimeError("PersistResultStage requires an assembled result.")

        try:
            outcomes = self.result_store.persist(result)
        except Exception as exc:
            # The store as a whole was unusable: every period counts as failed.
            logger.error(
                "Result store raised: %s | request_id=%s", exc, context.request_id,
                extra=context.log_extra,
            )
            outcomes = [
                PeriodWriteOutcome(period_date=p.period_date, success=False, error=str(exc))
                for p in result.periods
            ]

        reported = {o.period_date for o in outcomes}
        for period in result.periods:
            if period.period_date not in reported:
                outcomes.append(
                    PeriodWriteOutcome(
                        period_date=period.period_date,
                        success=False,
                        error="Result store reported no outcome for this period.",
                    )
                )

        context.period_outcomes = sorted(outcomes, key=lambda o: o.period_date)
        failed = [o for o in context.period_outcomes if not o.success]
        for o in failed:
            context.errors.append(f"Period {o.period_date.isoformat()}: {o.error}")

        logger.info(
            "Persisted %d/%d period(s) | request_id=%s",
            len(context.period_outcomes) - len(failed), len(context.period_outcomes),
            context.request_id,
            extra=context.log_extra,
        )
