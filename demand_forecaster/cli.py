"""
Demand Forecaster - CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute action (DB init, fact import, forecast run, evaluation).
  5. Report result to stdout.

Install and run::

    pip install -e .
    demand-forecaster --help
    demand-forecaster init-db
    demand-forecaster validate-config
    demand-forecaster import-facts --file data/sample_facts.csv
    demand-forecaster forecast --product-id PROD-001 --as-of 2023-01-07
    demand-forecaster show-forecast --request-id <id>
    demand-forecaster evaluate --request-id <id>
"""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Optional
from uuid import uuid4

import typer

app = typer.Typer(
    name="demand-forecaster",
    help="Product demand forecaster - deterministic forecasts with explanations.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from demand_forecaster.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from demand_forecaster.utils.logging import configure_logging
    configure_logging(config.logging)


def _parse_date_or_exit(value: Optional[str], option: str) -> Optional[date]:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        typer.echo(f"[ERROR] {option} must be YYYY-MM-DD, got '{value}'.", err=True)
        raise typer.Exit(code=1)


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config (e.g. data/db/test.db).",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Initialize the SQLite database and apply the full schema.

    Safe to run multiple times - all DDL uses IF NOT EXISTS.
    """
    from demand_forecaster.db.connection import connect
    from demand_forecaster.db.schema import ALL_TABLE_NAMES, apply_schema, get_existing_triggers

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with connect(config.database, target_path) as conn:
        apply_schema(conn)
        triggers = get_existing_triggers(conn)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo(f"  Append-only triggers: {len(triggers)}")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields (API key masked).",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)
    fc = config.forecast

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:      {config.database.db_path}")
    typer.echo(f"  Forecast method:    {fc.method} ({fc.model_version})")
    typer.echo(f"  Horizon / window:   {fc.horizon} / {fc.window_size}")
    typer.echo(f"  Confidence level:   {fc.confidence_level}")
    typer.echo(f"  Short series:       {fc.short_series_policy}")
    typer.echo(
        f"  Rationale:          "
        f"{'enabled' if config.rationale.enabled else 'disabled'} "
        f"({config.rationale.model_name}, "
        f"api key {'set' if config.rationale.is_configured else 'missing'})"
    )
    typer.echo(f"  Default time range: {config.pipeline.default_time_range}")
    typer.echo(f"  Log level:          {config.logging.level}")
    typer.echo(f"  Debug mode:         {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.snapshot(), indent=2))

    typer.echo("")
    typer.echo("[OK] Config is valid.")


@app.command("import-facts")
def import_facts(
    facts_file: str = typer.Option(
        ...,
        "--file",
        "-f",
        help="Path to facts file (.csv or .json).",
    ),
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Validate rows but do not write to the database.",
    ),
) -> None:
    """Import historical sales (and inventory) facts into the database.

    \b
    Columns: product_id, date, quantity[, inventory_level, product_name]
      .csv  - comma-separated with header row.
      .json - array of objects with the same keys.

    Facts are append-only: a day already recorded for a product is skipped,
    never overwritten.
    """
    from demand_forecaster.db.connection import connect
    from demand_forecaster.db.repositories.fact_repo import FactRepository
    from demand_forecaster.ingestion.fact_import import import_facts_file

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    path = Path(facts_file)
    typer.echo(f"Loading facts from: {path}")
    try:
        rows = import_facts_file(path)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"[ERROR] Fact import failed:\n{exc}", err=True)
        raise typer.Exit(code=1)

    products = sorted({r.product_id for r in rows})
    typer.echo(f"  Validated {len(rows)} row(s) for {len(products)} product(s).")

    if dry_run:
        typer.echo("[DRY RUN] No facts written to database.")
        return

    with connect(config.database, db_path) as conn:
        sales, inventory = FactRepository(conn).import_rows(rows)

    skipped = len(rows) - sales
    typer.echo(f"  Sales facts inserted:     {sales} ({skipped} already recorded)")
    typer.echo(f"  Inventory facts inserted: {inventory}")
    typer.echo("[OK] Facts imported.")


@app.command("forecast")
def forecast(
    product_ids: list[str] = typer.Option(
        ...,
        "--product-id",
        "-p",
        help="Product to forecast. Repeat to forecast several products in parallel.",
    ),
    time_range: Optional[str] = typer.Option(
        None,
        "--time-range",
        help="History window: last-N-days|weeks|months, since-YYYY-MM-DD, or all.",
    ),
    as_of: Optional[str] = typer.Option(
        None,
        "--as-of",
        help="Reference date for the time range (YYYY-MM-DD, default: today UTC).",
    ),
    request_id: Optional[str] = typer.Option(
        None,
        "--request-id",
        help="Correlation id (single product only; default: random UUID).",
    ),
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Run the forecast pipeline and persist the predictions.

    Exits with code 1 if any run fails (no usable history, or a period
    could not be written).
    """
    from pydantic import ValidationError

    from demand_forecaster.models.forecast import ForecastRequest
    from demand_forecaster.pipeline.orchestrator import ForecastPipeline
    from demand_forecaster.reporting.formatters import format_forecast_table, format_run_summary

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    reference = _parse_date_or_exit(as_of, "--as-of")
    if request_id and len(product_ids) > 1:
        typer.echo("[ERROR] --request-id can only be used with a single --product-id.", err=True)
        raise typer.Exit(code=1)

    try:
        requests = [
            ForecastRequest(
                request_id=request_id or str(uuid4()),
                product_id=pid,
                time_range=time_range or config.pipeline.default_time_range,
            )
            for pid in product_ids
        ]
    except ValidationError as exc:
        typer.echo(f"[ERROR] Invalid forecast request: {exc}", err=True)
        raise typer.Exit(code=1)

    pipeline = ForecastPipeline.from_config(config, db_path)
    if len(requests) == 1:
        runs = [pipeline.run(requests[0], as_of=reference)]
    else:
        runs = pipeline.run_many(requests, as_of=reference)

    for run in runs:
        if run.forecast_result is not None:
            typer.echo(format_forecast_table(run.forecast_result))
            typer.echo("")
        typer.echo(format_run_summary(run))

    failed = [r for r in runs if not r.succeeded]
    if failed:
        typer.echo(f"[ERROR] {len(failed)} of {len(runs)} run(s) failed.", err=True)
        raise typer.Exit(code=1)


@app.command("show-forecast")
def show_forecast(
    request_id: Optional[str] = typer.Option(
        None,
        "--request-id",
        help="Forecast to display.",
    ),
    product_id: Optional[str] = typer.Option(
        None,
        "--product-id",
        help="List recent forecasts for this product instead.",
    ),
    limit: int = typer.Option(10, "--limit", help="Max forecasts to list."),
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Display a stored forecast, or list a product's recent forecasts."""
    from demand_forecaster.db.connection import connect
    from demand_forecaster.db.repositories.forecast_repo import ForecastResultRepository
    from demand_forecaster.reporting.formatters import format_forecast_table

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    if not request_id and not product_id:
        typer.echo("[ERROR] Provide --request-id or --product-id.", err=True)
        raise typer.Exit(code=1)

    with connect(config.database, db_path) as conn:
        repo = ForecastResultRepository(conn)
        if request_id:
            result = repo.get_result(request_id)
            if result is None:
                typer.echo(f"[ERROR] No forecast stored for request_id={request_id}.", err=True)
                raise typer.Exit(code=1)
            typer.echo(format_forecast_table(result))
            return

        listed = repo.list_requests(product_id, limit=limit)

    if not listed:
        typer.echo(f"  (no forecasts stored for {product_id} - run 'forecast' first)")
        return
    typer.echo(f"Recent forecasts for {product_id}:")
    for row in listed:
        typer.echo(f"  {row['request_id']}  {row['generated_at']}  {row['periods']} period(s)")


@app.command("evaluate")
def evaluate(
    request_id: str = typer.Option(
        ...,
        "--request-id",
        help="Forecast to score against recorded sales.",
    ),
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Compare a stored forecast with the sales facts recorded since.

    Safe to re-run; each period is evaluated once.
    """
    from demand_forecaster.evaluation.evaluator import ForecastEvaluator
    from demand_forecaster.reporting.formatters import format_evaluation_summary

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        summary = ForecastEvaluator(config, db_path).evaluate(request_id)
    except LookupError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(format_evaluation_summary(summary))
    typer.echo("")
    typer.echo("[OK] Evaluation complete.")


if __name__ == "__main__":
    app()
