"""
Forecast pipeline orchestration.

``ForecastPipeline`` drives one request through the four stages:

  Step 1 - Load facts:          LoadFactsStage         (LOADING_FACTS)
  Step 2 - Compute forecast:    ComputeForecastStage   (COMPUTING)
  Step 3 - Generate rationale:  GenerateRationaleStage (GENERATING_RATIONALE)
  Step 4 - Persist result:      PersistResultStage     (PERSISTING)

Failure handling
----------------
- Input errors (empty, unsorted or too-short series, bad time range):
  the run ends FAILED from LOADING_FACTS. Reported, not raised.
- Rationale failures: never surface; the fallback template is used.
- Period write failures: other periods still attempted; the run ends FAILED
  from PERSISTING with periods already written left in place.
- Anything else (a broken engine, a Fact Store that cannot be read):
  propagates to the caller after the run is audited as failed.

No stage is retried. A rerun with a fresh request id is the recovery path.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Optional, Sequence

from demand_forecaster.config import AppConfig
from demand_forecaster.db.stores import SqliteFactStore, SqliteResultStore, SqliteRunLog
from demand_forecaster.exceptions import InputError
from demand_forecaster.forecasting.engine import ForecastEngine, ForecastParameters
from demand_forecaster.models.forecast import (
    ForecastRequest,
    ForecastResult,
    PeriodWriteOutcome,
    RunStatus,
)
from demand_forecaster.models.meta import RunMetadata
from demand_forecaster.pipeline.base import PipelineState, RunContext
from demand_forecaster.pipeline.compute_forecast import ComputeForecastStage
from demand_forecaster.pipeline.generate_rationale import GenerateRationaleStage
from demand_forecaster.pipeline.interfaces import FactStore, ResultStore, RunLog
from demand_forecaster.pipeline.load_facts import LoadFactsStage
from demand_forecaster.pipeline.persist_result import PersistResultStage
from demand_forecaster.rationale.client import build_text_generator
from demand_forecaster.rationale.generator import RationaleGenerator
from demand_forecaster.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


# ── Result type ───────────────────────────────────────────────────────────────

@dataclass
class PipelineRunResult:
    """Outcome of one pipeline run.

    Attributes:
        request_id:       Correlation id of the run.
        status:           "completed" or "failed".
        final_state:      Terminal pipeline state.
        state_history:    Every state entered, in order.
        forecast_result:  Assembled result (None if the run failed before it).
        period_outcomes:  One outcome per period handed to the Result Store.
        errors:           Accumulated error messages.
        rationale_source: "generated" or "fallback" once the rationale exists.
        run_id:           ``run_metadata`` PK when a run log recorded the run.
    """

    request_id:       str
    status:           RunStatus                 = "failed"
    final_state:      PipelineState             = PipelineState.FAILED
    state_history:    list[PipelineState]       = field(default_factory=list)
    forecast_result:  Optional[ForecastResult]  = None
    period_outcomes:  list[PeriodWriteOutcome]  = field(default_factory=list)
    errors:           list[str]                 = field(default_factory=list)
    rationale_source: Optional[str]             = None
    run_id:           Optional[int]             = None

    @property
    def succeeded(self) -> bool:
        return self.status == "completed"

    @property
    def periods_written(self) -> int:
        return sum(1 for o in self.period_outcomes if o.success)

    @property
    def periods_failed(self) -> int:
        return sum(1 for o in self.period_outcomes if not o.success)


# ── Pipeline ──────────────────────────────────────────────────────────────────

class ForecastPipeline:
    """Runs forecast requests through the four-stage state machine.

    Args:
        config:              AppConfig for every run.
        fact_store:          Source of historical facts.
        result_store:        Sink for prediction records.
        rationale_generator: Defaults to a fallback-only generator.
        engine:              Defaults to an engine built from ``config.forecast``.
        run_log:             Optional audit sink for ``RunMetadata``.
        clock:               Source of ``generated_at`` timestamps.
    """

    def __init__(
        self,
        config: AppConfig,
        fact_store: FactStore,
        result_store: ResultStore,
        rationale_generator: Optional[RationaleGenerator] = None,
        engine: Optional[ForecastEngine] = None,
        run_log: Optional[RunLog] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config
        self.fact_store = fact_store
        self.result_store = result_store
        self.rationale_generator = rationale_generator or RationaleGenerator(
            timeout_ms=config.rationale.timeout_ms
        )
        self.engine = engine or ForecastEngine(ForecastParameters.from_config(config.forecast))
        self.run_log = run_log
        self.clock = clock

        self.load_stage = LoadFactsStage(config, fact_store, self.engine)
        self.compute_stage = ComputeForecastStage(config, self.engine)
        self.rationale_stage = GenerateRationaleStage(config, self.rationale_generator, clock)
        self.persist_stage = PersistResultStage(config, result_store)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        db_path: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> "ForecastPipeline":
        """Wire the SQLite stores and the configured text generator."""
        return cls(
            config=config,
            fact_store=SqliteFactStore(config.database, db_path),
            result_store=SqliteResultStore(
                config.database, db_path, max_workers=config.pipeline.persist_workers
            ),
            rationale_generator=RationaleGenerator(
                build_text_generator(config.rationale),
                timeout_ms=config.rationale.timeout_ms,
            ),
            run_log=SqliteRunLog(config.database, db_path),
            clock=clock,
        )

    def run(self, request: ForecastRequest, as_of: Optional[date] = None) -> PipelineRunResult:
        """Execute the pipeline for one request.

        Args:
            request: Trigger payload.
            as_of:   Reference date for the time range (None = today UTC).

        Returns:
            PipelineRunResult; input errors and write failures are reported
            here rather than raised.
        """
        context = RunContext(request=request, as_of=as_of)
        meta = RunMetadata(
            request_id=request.request_id,
            product_id=request.product_id,
            config_snapshot=self.config.snapshot(),
            started_at=self.clock(),
        )
        logger.info(
            "Pipeline run starting | request_id=%s product_id=%s time_range=%s",
            request.request_id, request.product_id, request.time_range,
            extra=context.log_extra,
        )

        try:
            self._drive(context)
        except Exception as exc:
            context.errors.append(f"Unexpected error in {context.state.value}: {exc}")
            self._finish(context, meta)
            raise

        return self._finish(context, meta)

    def run_many(
        self,
        requests: Sequence[ForecastRequest],
        max_workers: Optional[int] = None,
        as_of: Optional[date] = None,
    ) -> list[PipelineRunResult]:
        """Run independent requests concurrently, results in request order.

        Raises:
            ValueError: If two requests share a request id.
        """
        seen: set[str] = set()
        for request in requests:
            if request.request_id in seen:
                raise ValueError(f"Duplicate request_id in batch: '{request.request_id}'.")
            seen.add(request.request_id)

        if not requests:
            return []

        workers = min(max_workers or self.config.pipeline.max_parallel_runs, len(requests))
        logger.info("Running %d request(s) on %d worker(s).", len(requests), workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="forecast") as pool:
            return list(pool.map(lambda r: self.run(r, as_of=as_of), requests))

    # ── Internals ─────────────────────────────────────────────────────────────

    def _drive(self, context: RunContext) -> None:
        rid = context.request_id

        logger.info("[1/4] Loading facts | request_id=%s", rid, extra=context.log_extra)
        try:
            self.load_stage.run(context)
        except InputError as exc:
            context.errors.append(str(exc))
            context.transition(PipelineState.FAILED)
            return

        logger.info("[2/4] Computing forecast | request_id=%s", rid, extra=context.log_extra)
        self.compute_stage.run(context)

        logger.info("[3/4] Generating rationale | request_id=%s", rid, extra=context.log_extra)
        self.rationale_stage.run(context)

        logger.info("[4/4] Persisting result | request_id=%s", rid, extra=context.log_extra)
        self.persist_stage.run(context)

        if all(o.success for o in context.period_outcomes):
            context.transition(PipelineState.COMPLETED)
        else:
            context.transition(PipelineState.FAILED)

    def _finish(self, context: RunContext, meta: RunMetadata) -> PipelineRunResult:
        result = PipelineRunResult(
            request_id=context.request_id,
            status="completed" if context.state == PipelineState.COMPLETED else "failed",
            final_state=context.state,
            state_history=list(context.state_history),
            forecast_result=context.result,
            period_outcomes=list(context.period_outcomes),
            errors=list(context.errors),
            rationale_source=context.rationale.source if context.rationale else None,
        )

        meta.status = result.status
        meta.final_state = context.state.value
        meta.periods_written = result.periods_written
        meta.periods_failed = result.periods_failed
        meta.rationale_source = result.rationale_source
        meta.error_message = "; ".join(result.errors) if result.errors else None
        meta.finished_at = self.clock()
        result.run_id = self._persist_run(meta)

        log = logger.info if result.succeeded else logger.warning
        log(
            "Pipeline run %s | request_id=%s final_state=%s periods_written=%d periods_failed=%d",
            result.status.upper(), result.request_id, context.state.value,
            result.periods_written, result.periods_failed,
            extra=context.log_extra,
        )
        return result

    def _persist_run(self, meta: RunMetadata) -> Optional[int]:
        if self.run_log is None:
            return None
        try:
            self.run_log.record(meta)
        except Exception as exc:
            logger.error(
                "Failed to record run metadata | request_id=%s: %s", meta.request_id, exc,
                extra={"request_id": meta.request_id},
            )
            return None
        return meta.run_id
