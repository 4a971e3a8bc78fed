"""
ASCII terminal formatters for CLI reporting commands.

All formatters accept result objects and return plain multi-line strings
suitable for ``typer.echo()``.

No third-party dependencies (no ``rich``, no ``colorama``).

Rationale source tags
---------------------
Every forecast output carries a tag saying where its explanation came from::

  [GENERATED] text from the external text generator
  [FALLBACK]  deterministic template (generator disabled or failed)
"""

from __future__ import annotations

from demand_forecaster.evaluation.metrics import EvaluationSummary
from demand_forecaster.models.forecast import ForecastResult
from demand_forecaster.pipeline.orchestrator import PipelineRunResult


def format_rationale_tag(source: str | None) -> str:
    if source is None:
        return "[NO RATIONALE]"
    return f"[{source.upper()}]"


# ── Forecast ──────────────────────────────────────────────────────────────────


def format_forecast_table(result: ForecastResult) -> str:
    """Format a forecast result as an ASCII table with its summary.

    Example::

        Date          Forecast     Lower     Upper
        ------------------------------------------
        2023-01-08      111.71    105.94    117.48

    Args:
        result: Assembled or reloaded ``ForecastResult``.

    Returns:
        Multi-line string.
    """
    s = result.summary
    lines: list[str] = []
    lines.append("")
    lines.append("=== Demand Forecast ===")
    lines.append(f"  Request:      {result.request_id}")
    lines.append(f"  Product:      {result.product_id}")
    lines.append(f"  Generated at: {result.generated_at.isoformat()}")
    lines.append(
        f"  Method:       {result.method} ({result.model_version}), "
        f"confidence {result.confidence_level:g}"
    )
    lines.append("")

    header = f"    {'Date':<10}  {'Forecast':>10}  {'Lower':>8}  {'Upper':>8}"
    lines.append(header)
    lines.append("    " + "-" * (len(header) - 4))
    for p in result.periods:
        ci = p.confidence_interval
        lines.append(
            f"    {p.period_date.isoformat():<10}  {p.forecast_value:>10.2f}  "
            f"{ci.lower:>8.2f}  {ci.upper:>8.2f}"
        )

    lines.append("")
    lines.append(f"  Average:        {s.average_forecast:.2f}")
    lines.append(f"  Min / Max:      {s.min_forecast:.2f} / {s.max_forecast:.2f}")
    lines.append(f"  Trend:          {s.trend:+.2f}")
    lines.append(f"  Moving average: {s.moving_average:.2f}")
    lines.append(f"  Trend slope:    {s.trend_slope:+.4f}")
    lines.append("")
    lines.append(f"  Rationale {format_rationale_tag(result.rationale_source)}")
    lines.append(f"    {result.rationale}")
    return "\n".join(lines)


# ── Pipeline run ──────────────────────────────────────────────────────────────


def format_run_summary(run: PipelineRunResult) -> str:
    """One status block for a finished pipeline run."""
    tag = "[OK]" if run.succeeded else "[FAILED]"
    states = " -> ".join(s.value for s in run.state_history) or "(none)"

    lines = [
        f"{tag} Pipeline run {run.status}",
        f"  Request:  {run.request_id}",
        f"  States:   {states}",
        f"  Periods:  {run.periods_written} written, {run.periods_failed} failed",
    ]
    if run.run_id is not None:
        lines.append(f"  Run id:   {run.run_id}")
    for err in run.errors:
        lines.append(f"  Error:    {err}")
    return "\n".join(lines)


# ── Evaluation ────────────────────────────────────────────────────────────────


def format_evaluation_summary(summary: EvaluationSummary) -> str:
    lines = [
        "",
        "=== Forecast Evaluation ===",
        f"  Request:   {summary.request_id}",
        f"  Evaluated: {summary.n_evaluated}/{summary.n_periods} period(s) "
        f"({summary.n_new} new)",
    ]
    if summary.n_evaluated == 0:
        lines.append("")
        lines.append("  (no actuals recorded yet for the forecast dates - import facts first)")
        return "\n".join(lines)

    lines.append(f"  MAE:       {summary.mae:.3f}")
    lines.append(f"  RMSE:      {summary.rmse:.3f}")
    mape = f"{summary.mape:.2%}" if summary.mape is not None else "n/a (zero-sales days only)"
    lines.append(f"  MAPE:      {mape}")
    lines.append(f"  Bias:      {summary.bias:+.3f}")
    return "\n".join(lines)
