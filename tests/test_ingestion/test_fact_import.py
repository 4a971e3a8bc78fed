"""
Tests for demand_forecaster.ingestion.fact_import - CSV/JSON fact files.

Covers:
  - import_facts_file(): valid CSV and JSON, optional columns, missing
    columns, invalid rows, empty files, unsupported extensions
  - The bundled sample file
"""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest

from demand_forecaster.ingestion.fact_import import REQUIRED_COLUMNS, import_facts_file

PROJECT_ROOT = Path(__file__).parents[2]


def _write(tmp_path: Path, name: str, content: str) -> Path:
    p = tmp_path / name
    p.write_text(content, encoding="utf-8")
    return p


VALID_CSV = (
    "product_id,date,quantity,inventory_level\n"
    "PROD-001,2023-01-01,100,500\n"
    "PROD-001,2023-01-02,110,\n"
)


def test_required_columns():
    assert REQUIRED_COLUMNS == {"product_id", "date", "quantity"}


class TestCsv:
    def test_valid_rows(self, tmp_path):
        rows = import_facts_file(_write(tmp_path, "facts.csv", VALID_CSV))
        assert len(rows) == 2
        assert rows[0].product_id == "PROD-001"
        assert rows[0].fact_date == date(2023, 1, 1)
        assert rows[0].quantity == 100
        assert rows[0].inventory_level == 500

    def test_blank_optional_is_none(self, tmp_path):
        rows = import_facts_file(_write(tmp_path, "facts.csv", VALID_CSV))
        assert rows[1].inventory_level is None
        assert rows[1].inventory_fact() is None

    def test_minimal_columns(self, tmp_path):
        rows = import_facts_file(
            _write(tmp_path, "facts.csv", "product_id,date,quantity\nP1,2023-01-01,3\n")
        )
        assert rows[0].sales_fact().value == 3.0

    def test_missing_required_column(self, tmp_path):
        with pytest.raises(ValueError, match="missing required columns"):
            import_facts_file(_write(tmp_path, "facts.csv", "product_id,date\nP1,2023-01-01\n"))

    def test_header_only(self, tmp_path):
        assert import_facts_file(_write(tmp_path, "facts.csv", "product_id,date,quantity\n")) == []

    def test_empty_file(self, tmp_path):
        with pytest.raises(ValueError, match="no header row"):
            import_facts_file(_write(tmp_path, "facts.csv", ""))

    @pytest.mark.parametrize("bad_row", [
        "P1,2023-13-01,5",
        "P1,2023-01-01,-5",
        "P1,2023-01-01,lots",
        " ,2023-01-01,5",
        "P1,,5",
    ])
    def test_invalid_row_reported_with_line_number(self, tmp_path, bad_row):
        content = "product_id,date,quantity\nP1,2023-01-01,1\n" + bad_row + "\n"
        with pytest.raises(ValueError, match="Row 3"):
            import_facts_file(_write(tmp_path, "facts.csv", content))

    def test_all_rows_validated_before_failing(self, tmp_path):
        content = "product_id,date,quantity\n" + "".join(
            f"P1,2023-01-{d:02d},-1\n" for d in range(1, 13)
        )
        with pytest.raises(ValueError, match="12 row\\(s\\) failed") as exc_info:
            import_facts_file(_write(tmp_path, "facts.csv", content))
        assert "and 2 more" in str(exc_info.value)


class TestJson:
    def test_valid_array(self, tmp_path):
        payload = [
            {"product_id": "P1", "date": "2023-01-01", "quantity": 4, "product_name": "Gadget"},
            {"product_id": "P1", "date": "2023-01-02", "quantity": 6, "inventory_level": 20},
        ]
        rows = import_facts_file(_write(tmp_path, "facts.json", json.dumps(payload)))
        assert [r.quantity for r in rows] == [4, 6]
        assert rows[0].product_name == "Gadget"
        assert rows[1].inventory_level == 20

    def test_not_an_array(self, tmp_path):
        with pytest.raises(ValueError, match="JSON array"):
            import_facts_file(_write(tmp_path, "facts.json", '{"product_id": "P1"}'))

    def test_malformed_json(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid JSON"):
            import_facts_file(_write(tmp_path, "facts.json", "[{"))

    def test_missing_key(self, tmp_path):
        payload = [{"product_id": "P1", "date": "2023-01-01"}]
        with pytest.raises(ValueError, match="quantity"):
            import_facts_file(_write(tmp_path, "facts.json", json.dumps(payload)))

    def test_empty_array(self, tmp_path):
        assert import_facts_file(_write(tmp_path, "facts.json", "[]")) == []


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        import_facts_file(tmp_path / "nope.csv")


def test_unsupported_extension(tmp_path):
    with pytest.raises(ValueError, match="Unsupported"):
        import_facts_file(_write(tmp_path, "facts.xlsx", "x"))


def test_bundled_sample_file():
    rows = import_facts_file(PROJECT_ROOT / "data" / "sample_facts.csv")
    assert [r.quantity for r in rows] == [100, 110, 105, 120, 115, 108, 112]
    assert {r.product_id for r in rows} == {"PROD-001"}
