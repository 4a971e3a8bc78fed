"""
RationaleGenerator - explain a forecast, never fail.

The explanation is built strictly from numbers the engine already computed
(moving average, trend slope, history length, horizon, product). An external
text generator may phrase them; when it is missing, slow, refusing or
returns nothing usable, a fixed template phrases them instead.

Outcomes are a two-variant result so callers and tests can see which path
ran::

    outcome = generator.generate_outcome(inputs)
    if isinstance(outcome, FallbackRationale):
        ...  # outcome.reason says why

``generate()`` collapses the outcome to plain text for the persisted record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from demand_forecaster.models.forecast import ForecastComputation, RationaleSource
from demand_forecaster.rationale.client import TextGenerator

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 10_000


class RationaleInputs(BaseModel):
    """The only values a rationale may mention."""

    model_config = ConfigDict(frozen=True)

    product_id: str
    moving_average: float
    trend_slope: float
    historical_data_points: int
    forecast_horizon: int

    @classmethod
    def from_computation(
        cls, product_id: str, computation: ForecastComputation
    ) -> "RationaleInputs":
        return cls(
            product_id=product_id,
            moving_average=computation.summary.moving_average,
            trend_slope=computation.summary.trend_slope,
            historical_data_points=computation.historical_data_points,
            forecast_horizon=computation.horizon,
        )


@dataclass(frozen=True)
class GeneratedRationale:
    """Text returned by the external generator."""

    text: str
    source: RationaleSource = "generated"


@dataclass(frozen=True)
class FallbackRationale:
    """Deterministic template text, with the reason the generator was bypassed."""

    text: str
    reason: str
    source: RationaleSource = "fallback"


RationaleOutcome = Union[GeneratedRationale, FallbackRationale]


def trend_direction(trend_slope: float) -> str:
    if trend_slope > 0:
        return "positive"
    if trend_slope < 0:
        return "negative"
    return "stable"


def fallback_rationale(inputs: RationaleInputs) -> str:
    """Deterministic explanation from the summary statistics alone."""
    return (
        "Forecast based on deterministic analysis: "
        f"{inputs.moving_average:.2f} moving average with "
        f"{trend_direction(inputs.trend_slope)} trend "
        f"(slope: {inputs.trend_slope:.4f}). "
        f"Generated from {inputs.historical_data_points} historical data points "
        f"for {inputs.forecast_horizon}-day horizon."
    )


def build_prompt(inputs: RationaleInputs) -> str:
    """Prompt for the external generator; contains only ``inputs`` values."""
    return (
        "You are a business analytics assistant. Generate a concise, "
        "business-readable explanation for why this forecast makes sense.\n"
        "\n"
        "Use ONLY the provided deterministic values:\n"
        f"- Moving average: {inputs.moving_average:.2f}\n"
        f"- Trend slope: {inputs.trend_slope:.4f}\n"
        f"- Historical data points: {inputs.historical_data_points}\n"
        f"- Forecast horizon: {inputs.forecast_horizon} days\n"
        f"- Product ID: {inputs.product_id}\n"
        "\n"
        "Rules:\n"
        "1. Do NOT invent any numbers or make predictions.\n"
        "2. Refer only to the provided values.\n"
        "3. Explain how the moving average and trend slope justify the forecast.\n"
        "4. Keep it concise (2-3 sentences max).\n"
        "5. Use business-friendly language.\n"
        "\n"
        "Generate the explanation:\n"
    )


class RationaleGenerator:
    """Total function from ``RationaleInputs`` to non-empty text.

    Args:
        text_generator: External generator, or ``None`` to always use the
            fallback template.
        timeout_ms:     Timeout handed to every ``complete()`` call.
    """

    def __init__(
        self,
        text_generator: Optional[TextGenerator] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.text_generator = text_generator
        self.timeout_ms = timeout_ms

    def generate(self, inputs: RationaleInputs) -> str:
        return self.generate_outcome(inputs).text

    def generate_outcome(self, inputs: RationaleInputs) -> RationaleOutcome:
        """Try the external generator; fall back on any failure.

        Never raises.
        """
        if self.text_generator is None:
            return self._fallback(inputs, "text generator not configured")

        try:
            text = self.text_generator.complete(build_prompt(inputs), self.timeout_ms)
        except Exception as exc:
            # Every dependency failure, including unexpected ones, downgrades
            # to the template.
            return self._fallback(inputs, f"{type(exc).__name__}: {exc}")

        if not isinstance(text, str) or not text.strip():
            return self._fallback(inputs, "text generator returned empty text")

        logger.info(
            "Rationale generated | product_id=%s chars=%d",
            inputs.product_id, len(text),
        )
        return GeneratedRationale(text=text)

    def _fallback(self, inputs: RationaleInputs, reason: str) -> FallbackRationale:
        logger.warning(
            "Using fallback rationale | product_id=%s reason=%s",
            inputs.product_id, reason,
        )
        return FallbackRationale(text=fallback_rationale(inputs), reason=reason)
