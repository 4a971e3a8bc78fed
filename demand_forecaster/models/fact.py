"""
Historical fact models.

A ``Fact`` is a confirmed, dated observation (sales quantity or inventory
level). Facts are never modified after they are recorded; the SQLite fact
tables reject UPDATE and DELETE outright.

``FactImportRow`` is the validated shape of one row in an operator-supplied
CSV/JSON fact file. It is the only place untrusted fact data enters the
system; everything downstream trusts the ``Fact`` it produces.
"""

from __future__ import annotations

import math
from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

FactKind = Literal["sales", "inventory"]

# Largest magnitude a fact may carry; keeps variance and rounding finite.
MAX_FACT_VALUE = 1e12


class Fact(BaseModel):
    """A single dated observation.

    Attributes:
        fact_date: Calendar date of the observation.
        value:     Observed quantity (units sold, or units on hand).
    """

    model_config = ConfigDict(frozen=True)

    fact_date: date
    value: float

    @field_validator("value")
    @classmethod
    def validate_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError(f"value must be finite, got {v}.")
        if abs(v) > MAX_FACT_VALUE:
            raise ValueError(f"value must be within +/-{MAX_FACT_VALUE:g}, got {v}.")
        return v


class FactImportRow(BaseModel):
    """One row of a fact import file.

    Attributes:
        product_id:      Product identifier (SKU-like string).
        fact_date:       Observation date; accepts ``date`` as the column name.
        quantity:        Units sold on ``fact_date``.
        inventory_level: Units on hand at end of day, if recorded.
        product_name:    Display name used when the product is first seen.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    product_id: str
    fact_date: date = Field(alias="date")
    quantity: int
    inventory_level: Optional[int] = None
    product_name: Optional[str] = None

    @field_validator("product_id")
    @classmethod
    def validate_product_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("product_id must not be empty.")
        return v

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"quantity must be non-negative, got {v}.")
        if v > MAX_FACT_VALUE:
            raise ValueError(f"quantity must be <= {MAX_FACT_VALUE:g}, got {v}.")
        return v

    @field_validator("inventory_level")
    @classmethod
    def validate_inventory(cls, v: Optional[int]) -> Optional[int]:
        if v is None:
            return v
        if v < 0:
            raise ValueError(f"inventory_level must be non-negative, got {v}.")
        if v > MAX_FACT_VALUE:
            raise ValueError(f"inventory_level must be <= {MAX_FACT_VALUE:g}, got {v}.")
        return v

    def sales_fact(self) -> Fact:
        return Fact(fact_date=self.fact_date, value=float(self.quantity))

    def inventory_fact(self) -> Optional[Fact]:
        if self.inventory_level is None:
            return None
        return Fact(fact_date=self.fact_date, value=float(self.inventory_level))
