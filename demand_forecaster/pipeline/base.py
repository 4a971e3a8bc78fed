"""
Pipeline state machine and the abstract base class for pipeline stages.

States::

    LOADING_FACTS → COMPUTING → GENERATING_RATIONALE → PERSISTING → COMPLETED
          │                                                 │
          └────────────────────→ FAILED ←───────────────────┘

``FAILED`` is reachable only from LOADING_FACTS (no usable facts) and
PERSISTING (a period could not be written). GENERATING_RATIONALE cannot fail:
the rationale generator always returns text.

Every stage follows the same contract:
  1. Receive ``AppConfig`` (and its collaborators) at construction.
  2. ``run(context)`` is the sole public API. It moves the context into the
     stage's state, calls ``_execute()``, and logs start, completion and
     failure with the request id and elapsed time.
  3. ``_execute()`` reads and fills the shared ``RunContext``.

Stages never swallow exceptions; ``ForecastPipeline`` decides which ones
end the run as ``FAILED``.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import TYPE_CHECKING, Optional

from demand_forecaster.exceptions import IllegalStateTransition
from demand_forecaster.models.fact import Fact
from demand_forecaster.models.forecast import (
    ForecastComputation,
    ForecastRequest,
    ForecastResult,
    PeriodWriteOutcome,
)

if TYPE_CHECKING:
    from demand_forecaster.config import AppConfig
    from demand_forecaster.forecasting.timeseries import TimeSeries
    from demand_forecaster.rationale.generator import RationaleOutcome

logger = logging.getLogger(__name__)


class PipelineState(StrEnum):
    PENDING = "pending"
    LOADING_FACTS = "loading_facts"
    COMPUTING = "computing"
    GENERATING_RATIONALE = "generating_rationale"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    PipelineState.PENDING: frozenset({PipelineState.LOADING_FACTS}),
    PipelineState.LOADING_FACTS: frozenset({PipelineState.COMPUTING, PipelineState.FAILED}),
    PipelineState.COMPUTING: frozenset({PipelineState.GENERATING_RATIONALE}),
    PipelineState.GENERATING_RATIONALE: frozenset({PipelineState.PERSISTING}),
    PipelineState.PERSISTING: frozenset({PipelineState.COMPLETED, PipelineState.FAILED}),
    PipelineState.COMPLETED: frozenset(),
    PipelineState.FAILED: frozenset(),
}

TERMINAL_STATES = frozenset({PipelineState.COMPLETED, PipelineState.FAILED})


@dataclass
class RunContext:
    """Mutable state of one pipeline run, owned by a single thread.

    Attributes:
        request:         Trigger payload; ``request.request_id`` is the correlation id.
        as_of:           Reference date for resolving the time range (None = today UTC).
        state:           Current pipeline state.
        state_history:   Every state entered, in order.
        since_date:      Resolved start of the history window.
        series:          Validated sales series.
        inventory:       Inventory facts for the same window (context only).
        computation:     Engine output.
        rationale:       Generated or fallback rationale outcome.
        result:          Assembled ``ForecastResult``.
        period_outcomes: One outcome per persisted period.
        errors:          Error messages accumulated during the run.
    """

    request: ForecastRequest
    as_of: Optional[date] = None
    state: PipelineState = PipelineState.PENDING
    state_history: list[PipelineState] = field(default_factory=list)
    since_date: Optional[date] = None
    series: Optional["TimeSeries"] = None
    inventory: list[Fact] = field(default_factory=list)
    computation: Optional[ForecastComputation] = None
    rationale: Optional["RationaleOutcome"] = None
    result: Optional[ForecastResult] = None
    period_outcomes: list[PeriodWriteOutcome] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def request_id(self) -> str:
        return self.request.request_id

    @property
    def log_extra(self) -> dict[str, str]:
        """Structured fields attached to every log record of this run."""
        return {"request_id": self.request_id}

    def transition(self, target: PipelineState) -> None:
        """Move to ``target``.

        Raises:
            IllegalStateTransition: If the state machine forbids the move.
        """
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise IllegalStateTransition(self.state.value, target.value)
        logger.debug(
            "State %s -> %s | request_id=%s", self.state.value, target.value, self.request_id,
            extra=self.log_extra,
        )
        self.state = target
        self.state_history.append(target)


class PipelineStage(ABC):
    """Abstract base for all pipeline stages.

    Subclasses must:
      1. Set ``stage_name`` and ``state`` class variables.
      2. Implement ``_execute(context) -> None``.

    Attributes:
        stage_name: Identifier used in log lines.
        state:      Pipeline state the context enters when this stage runs.
        config:     The application configuration for this run.
    """

    stage_name: str
    state: PipelineState

    def __init__(self, config: "AppConfig") -> None:
        self.config = config

    def run(self, context: RunContext) -> None:
        """Enter this stage's state and execute it.

        Raises:
            Exception: Re-raises anything ``_execute()`` raises, after logging.
        """
        context.transition(self.state)
        started = time.perf_counter()
        logger.info(
            "Stage [%s] starting | request_id=%s", self.stage_name, context.request_id,
            extra=context.log_extra,
        )

        try:
            self._execute(context)
        except Exception as exc:
            logger.error(
                "Stage [%s] FAILED after %.1fms: %s | request_id=%s",
                self.stage_name, _elapsed_ms(started), exc, context.request_id,
                extra=context.log_extra,
            )
            raise

        logger.info(
            "Stage [%s] completed in %.1fms | request_id=%s",
            self.stage_name, _elapsed_ms(started), context.request_id,
            extra=context.log_extra,
        )

    @abstractmethod
    def _execute(self, context: RunContext) -> None:
        """Stage-specific implementation."""
        ...


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000
