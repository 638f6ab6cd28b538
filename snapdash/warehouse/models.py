"""Warehouse row models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

DAILY_SOURCE = "daily"
MONTHLY_SOURCE = "monthly"


@dataclass(slots=True)
class StockRow:
    sesn: str
    prdt_cd: str
    tag_stock_amt: float


@dataclass(slots=True)
class SalesRow:
    sesn: str
    prdt_cd: str
    sale_dt: date
    tag_sale_amt: float
    act_sale_amt: float


@dataclass(slots=True)
class StockSnapshot:
    source: str
    effective_date: date
    rows: list[StockRow] = field(default_factory=list)
