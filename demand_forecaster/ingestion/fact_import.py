"""
Import parser for historical sales and inventory facts.

Two formats are accepted, chosen by file extension:

  .csv   - comma delimited, with a header row.
  .json  - an array of objects with the same keys.

Required columns:
  product_id, date, quantity

Optional columns (empty string → None):
  inventory_level, product_name

Dates are YYYY-MM-DD. Quantities and inventory levels are non-negative
integers. See ``data/sample_facts.csv`` for an example.
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from demand_forecaster.models.fact import FactImportRow

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = frozenset({"product_id", "date", "quantity"})
OPTIONAL_COLUMNS = frozenset({"inventory_level", "product_name"})

_MAX_ERRORS_SHOWN = 10


def import_facts_file(path: Path) -> list[FactImportRow]:
    """Parse a fact file into validated :class:`FactImportRow` objects.

    All rows are validated before any are returned. If **any** row fails,
    a single :class:`ValueError` is raised listing the first 10 failures.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: On an unsupported extension, missing required columns,
            malformed JSON, or any row failing validation.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Fact file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        records = _read_csv(path)
        first_line = 2  # header is line 1
    elif suffix == ".json":
        records = _read_json(path)
        first_line = 1
    else:
        raise ValueError(f"Unsupported fact file type '{suffix}'. Expected .csv or .json.")

    if not records:
        logger.warning("Fact file has no rows: %s", path)
        return []

    rows: list[FactImportRow] = []
    errors: list[tuple[int, str]] = []
    for i, record in enumerate(records):
        try:
            rows.append(_record_to_row(record))
        except (ValueError, ValidationError) as exc:
            errors.append((i + first_line, str(exc)))

    if errors:
        detail = "\n".join(f"  Row {n}: {msg}" for n, msg in errors[:_MAX_ERRORS_SHOWN])
        more = len(errors) - _MAX_ERRORS_SHOWN
        suffix_msg = f"\n  … and {more} more" if more > 0 else ""
        raise ValueError(
            f"{len(errors)} row(s) failed validation in {path.name}:\n{detail}{suffix_msg}"
        )

    logger.info("Parsed %d fact row(s) from %s", len(rows), path.name)
    return rows


# ── Private helpers ────────────────────────────────────────────────────────────

def _read_csv(path: Path) -> list[dict[str, Any]]:
    with open(path, encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            raise ValueError(f"CSV file is empty or has no header row: {path}")
        _check_columns(set(reader.fieldnames))
        return list(reader)


def _read_json(path: Path) -> list[dict[str, Any]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path.name}: {exc}") from exc

    if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
        raise ValueError(f"{path.name} must contain a JSON array of objects.")
    if data:
        _check_columns(set().union(*(r.keys() for r in data)))
    return data


def _check_columns(actual: set[str]) -> None:
    missing = REQUIRED_COLUMNS - actual
    if missing:
        raise ValueError(
            f"Fact file missing required columns: {sorted(missing)}\n"
            f"Found columns: {sorted(actual)}"
        )


def _record_to_row(record: dict[str, Any]) -> FactImportRow:
    """Drop blank optional values and unknown keys, then validate."""
    cleaned: dict[str, Any] = {}
    for key in REQUIRED_COLUMNS | OPTIONAL_COLUMNS:
        value = record.get(key)
        if isinstance(value, str):
            value = value.strip()
            if not value:
                value = None
        if value is None:
            if key in REQUIRED_COLUMNS:
                raise ValueError(f"Required field '{key}' is empty.")
            continue
        cleaned[key] = value
    return FactImportRow.model_validate(cleaned)
