"""Tests for repository CRUD operations using the in-memory DB fixture."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from demand_forecaster.db.repositories.evaluation_repo import EvaluationRepository
from demand_forecaster.db.repositories.fact_repo import FactRepository
from demand_forecaster.db.repositories.forecast_repo import (
    ForecastResultRepository,
    RunMetadataRepository,
)
from demand_forecaster.forecasting.engine import ForecastEngine
from demand_forecaster.models.fact import Fact, FactImportRow
from demand_forecaster.models.forecast import ForecastResult
from demand_forecaster.models.meta import RunMetadata

NOW = datetime(2023, 1, 7, 18, 0, tzinfo=timezone.utc)


def _result(sample_series, request_id: str = "req-1") -> ForecastResult:
    computation = ForecastEngine().compute(sample_series)
    return ForecastResult(
        request_id=request_id,
        product_id="PROD-001",
        generated_at=NOW,
        method="moving-average-trend",
        model_version="v1-moving-average",
        confidence_level=0.95,
        periods=computation.periods,
        summary=computation.summary,
        rationale="Because.",
        rationale_source="fallback",
    )


@pytest.fixture
def seeded(in_memory_db, sample_import_rows):
    FactRepository(in_memory_db).import_rows(sample_import_rows)
    return in_memory_db


# ── Facts ─────────────────────────────────────────────────────────────────────

class TestFactRepository:
    def test_import_rows_counts(self, in_memory_db, sample_import_rows):
        sales, inventory = FactRepository(in_memory_db).import_rows(sample_import_rows)
        assert (sales, inventory) == (7, 7)

    def test_reimport_is_noop(self, seeded, sample_import_rows):
        assert FactRepository(seeded).import_rows(sample_import_rows) == (0, 0)

    def test_existing_fact_not_overwritten(self, seeded):
        repo = FactRepository(seeded)
        inserted = repo.insert_sales("PROD-001", Fact(fact_date=date(2023, 1, 1), value=999.0))
        assert inserted is False
        assert repo.get_sales("PROD-001")[0].value == 100.0

    def test_get_sales_ascending(self, seeded, sample_facts):
        assert FactRepository(seeded).get_sales("PROD-001") == sample_facts

    def test_get_sales_since(self, seeded):
        facts = FactRepository(seeded).get_sales("PROD-001", since_date=date(2023, 1, 5))
        assert [f.fact_date for f in facts] == [
            date(2023, 1, 5), date(2023, 1, 6), date(2023, 1, 7),
        ]

    def test_get_sales_unknown_product(self, seeded):
        assert FactRepository(seeded).get_sales("NOPE") == []

    def test_get_inventory(self, seeded):
        inventory = FactRepository(seeded).get_inventory("PROD-001", since_date=date(2023, 1, 7))
        assert inventory == [Fact(fact_date=date(2023, 1, 7), value=380.0)]

    def test_rows_without_inventory(self, in_memory_db):
        rows = [FactImportRow(product_id="P2", date=date(2023, 2, 1), quantity=3)]
        assert FactRepository(in_memory_db).import_rows(rows) == (1, 0)

    def test_ensure_product_uses_id_as_default_name(self, in_memory_db):
        repo = FactRepository(in_memory_db)
        assert repo.ensure_product("P9") is True
        assert repo.ensure_product("P9", "Renamed") is False
        row = repo.fetchone("SELECT product_name FROM products WHERE product_id = 'P9';")
        assert row["product_name"] == "P9"


# ── Forecast results ──────────────────────────────────────────────────────────

class TestForecastResultRepository:
    def test_insert_and_rebuild(self, seeded, sample_series):
        result = _result(sample_series)
        repo = ForecastResultRepository(seeded)
        ids = [repo.insert_period(result, p) for p in result.periods]

        assert all(i > 0 for i in ids)
        assert repo.count_periods("req-1") == 5
        assert repo.get_result("req-1") == result

    def test_get_result_missing(self, seeded):
        assert ForecastResultRepository(seeded).get_result("nope") is None

    def test_partial_result_returns_written_periods(self, seeded, sample_series):
        result = _result(sample_series)
        repo = ForecastResultRepository(seeded)
        for p in result.periods[:2]:
            repo.insert_period(result, p)
        assert len(repo.get_result("req-1").periods) == 2

    def test_list_requests(self, seeded, sample_series):
        repo = ForecastResultRepository(seeded)
        for rid in ("req-a", "req-b"):
            result = _result(sample_series, rid)
            for p in result.periods:
                repo.insert_period(result, p)

        listed = repo.list_requests("PROD-001")
        assert {r["request_id"] for r in listed} == {"req-a", "req-b"}
        assert all(r["periods"] == 5 for r in listed)


# ── Run metadata ──────────────────────────────────────────────────────────────

class TestRunMetadataRepository:
    def test_insert_and_read_back(self, in_memory_db):
        repo = RunMetadataRepository(in_memory_db)
        run = RunMetadata(
            request_id="req-1",
            product_id="PROD-001",
            status="completed",
            final_state="completed",
            periods_written=5,
            config_snapshot={"forecast": {"horizon": 5}},
            started_at=NOW,
            finished_at=NOW,
        )
        run_id = repo.insert_run(run)

        stored = repo.get_runs_for_request("req-1")
        assert len(stored) == 1
        assert stored[0].run_id == run_id
        assert stored[0].config_snapshot == {"forecast": {"horizon": 5}}
        assert stored[0].finished_at == NOW
        assert repo.get_recent_runs(limit=1)[0].run_id == run_id

    def test_invalid_status_rejected(self):
        with pytest.raises(ValueError, match="Unknown status"):
            RunMetadata(
                request_id="r", product_id="p", status="exploded",
                config_snapshot={}, started_at=NOW,
            )


# ── Evaluations ───────────────────────────────────────────────────────────────

class TestEvaluationRepository:
    def test_pending_requires_actual(self, seeded, sample_series):
        result = _result(sample_series)
        ForecastResultRepository(seeded).insert_period(result, result.periods[0])
        repo = EvaluationRepository(seeded)
        assert repo.get_pending("req-1") == []

        FactRepository(seeded).insert_sales("PROD-001", Fact(fact_date=date(2023, 1, 8), value=115.0))
        pending = repo.get_pending("req-1")
        assert len(pending) == 1
        assert pending[0].error == pytest.approx(115.0 - 111.71)

    def test_evaluated_rows_no_longer_pending(self, seeded, sample_series):
        result = _result(sample_series)
        ForecastResultRepository(seeded).insert_period(result, result.periods[0])
        FactRepository(seeded).insert_sales("PROD-001", Fact(fact_date=date(2023, 1, 8), value=115.0))

        repo = EvaluationRepository(seeded)
        repo.insert_evaluation(repo.get_pending("req-1")[0])

        assert repo.get_pending("req-1") == []
        assert len(repo.get_evaluations("req-1")) == 1
