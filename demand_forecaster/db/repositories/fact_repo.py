"""
Repositories for products and the two fact tables.

Fact rows are inserted with ``INSERT OR IGNORE``: the first recorded value
for a (product, date) is the fact, and a later import of the same day is a
no-op rather than an overwrite.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from demand_forecaster.db.repositories.base import BaseRepository
from demand_forecaster.models.fact import Fact, FactImportRow

logger = logging.getLogger(__name__)


class FactRepository(BaseRepository):
    """Read/write access to ``products``, ``daily_sales`` and ``inventory_snapshots``."""

    def ensure_product(self, product_id: str, product_name: Optional[str] = None) -> bool:
        """Create the product if it is unknown. Returns ``True`` if inserted."""
        return bool(
            self.insert(
                "INSERT OR IGNORE INTO products (product_id, product_name) VALUES (?, ?);",
                (product_id, product_name or product_id),
            )
        )

    def insert_sales(self, product_id: str, fact: Fact) -> bool:
        """Record a sales fact. Returns ``False`` if the day was already recorded."""
        return bool(
            self.insert(
                """
                INSERT OR IGNORE INTO daily_sales (product_id, sales_date, quantity)
                VALUES (?, ?, ?);
                """,
                (product_id, fact.fact_date.isoformat(), int(fact.value)),
            )
        )

    def insert_inventory(self, product_id: str, fact: Fact) -> bool:
        """Record an inventory fact. Returns ``False`` if the day was already recorded."""
        return bool(
            self.insert(
                """
                INSERT OR IGNORE INTO inventory_snapshots
                    (product_id, snapshot_date, inventory_level)
                VALUES (?, ?, ?);
                """,
                (product_id, fact.fact_date.isoformat(), int(fact.value)),
            )
        )

    def import_rows(self, rows: list[FactImportRow]) -> tuple[int, int]:
        """Insert products and facts from validated import rows.

        Returns:
            ``(sales_inserted, inventory_inserted)``.
        """
        sales_inserted = 0
        inventory_inserted = 0
        for row in rows:
            self.ensure_product(row.product_id, row.product_name)
            if self.insert_sales(row.product_id, row.sales_fact()):
                sales_inserted += 1
            inventory = row.inventory_fact()
            if inventory is not None and self.insert_inventory(row.product_id, inventory):
                inventory_inserted += 1
        logger.info(
            "Imported %d sales fact(s), %d inventory fact(s) from %d row(s).",
            sales_inserted, inventory_inserted, len(rows),
        )
        return sales_inserted, inventory_inserted

    def get_sales(self, product_id: str, since_date: Optional[date] = None) -> list[Fact]:
        """Sales facts for a product in ascending date order."""
        rows = self.fetchall(
            """
            SELECT sales_date, quantity FROM daily_sales
            WHERE product_id = ? AND (? IS NULL OR sales_date >= ?)
            ORDER BY sales_date ASC;
            """,
            (product_id, *_since_params(since_date)),
        )
        return [
            Fact(fact_date=date.fromisoformat(r["sales_date"]), value=float(r["quantity"]))
            for r in rows
        ]

    def get_inventory(self, product_id: str, since_date: Optional[date] = None) -> list[Fact]:
        """Inventory facts for a product in ascending date order."""
        rows = self.fetchall(
            """
            SELECT snapshot_date, inventory_level FROM inventory_snapshots
            WHERE product_id = ? AND (? IS NULL OR snapshot_date >= ?)
            ORDER BY snapshot_date ASC;
            """,
            (product_id, *_since_params(since_date)),
        )
        return [
            Fact(
                fact_date=date.fromisoformat(r["snapshot_date"]),
                value=float(r["inventory_level"]),
            )
            for r in rows
        ]


def _since_params(since_date: Optional[date]) -> tuple[Optional[str], Optional[str]]:
    iso = since_date.isoformat() if since_date else None
    return iso, iso
