"""
Run metadata - the audit record of one pipeline run.

Every run records a ``config_snapshot`` (``AppConfig.snapshot()``, secrets
masked) so a forecast can be reproduced by restoring that config and
re-running against the same facts.

``RunMetadata`` is the **only** model in the system that is NOT frozen -
its ``status``, ``final_state`` and counters are filled in as the run ends.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

VALID_RUN_STATUSES = frozenset({"started", "completed", "failed"})


class RunMetadata(BaseModel):
    """Pipeline run audit record.

    Attributes:
        run_id:           Auto-assigned DB PK; ``None`` before insertion.
        request_id:       Correlation id of the run.
        product_id:       Forecasted product.
        status:           ``started``, ``completed`` or ``failed``.
        final_state:      Last pipeline state reached.
        periods_written:  Periods persisted successfully.
        periods_failed:   Periods whose write failed.
        rationale_source: ``generated`` / ``fallback`` once known.
        error_message:    Joined error messages when ``status == "failed"``.
        config_snapshot:  Masked ``AppConfig`` dump at run start.
        started_at:       UTC datetime when the run began.
        finished_at:      UTC datetime when the run ended.
    """

    model_config = ConfigDict(frozen=False)

    run_id: Optional[int] = None
    request_id: str
    product_id: str
    status: str = "started"
    final_state: Optional[str] = None
    periods_written: int = 0
    periods_failed: int = 0
    rationale_source: Optional[str] = None
    error_message: Optional[str] = None
    config_snapshot: dict[str, Any]
    started_at: datetime
    finished_at: Optional[datetime] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v not in VALID_RUN_STATUSES:
            raise ValueError(
                f"Unknown status '{v}'. Must be one of {sorted(VALID_RUN_STATUSES)}."
            )
        return v
