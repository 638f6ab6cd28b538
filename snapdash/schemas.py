"""Report payload schemas stored inside snapshots."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel


class AgingFigures(BaseModel):
    base_stock_amt: float = 0.0
    curr_stock_amt: float = 0.0
    stagnant_stock_amt: float = 0.0
    depleted_stock_amt: float = 0.0
    period_tag_sales: float = 0.0
    period_act_sales: float = 0.0
    discount_rate: float = 0.0
    inv_days_raw: int | None = None
    inv_days: int | None = None
    inv_days_label: str = "no sales"
    no_sales: bool = True
    is_over_1y: bool = True


class YearBucketRecord(AgingFigures):
    year_bucket: str
    season_code: str
    sesn: str | None = None


class CategoryRecord(AgingFigures):
    year_bucket: str
    cat2: str


class ProductRecord(BaseModel):
    year_bucket: str
    sesn: str
    cat2: str | None = None
    prdt_cd: str
    base_stock_amt: float = 0.0
    curr_stock_amt: float = 0.0
    stagnant_stock_amt: float = 0.0
    depleted_stock_amt: float = 0.0
    period_tag_sales: float = 0.0
    period_act_sales: float = 0.0


class AgingHeader(AgingFigures):
    year_bucket: str = "ALL"
    stagnant_ratio: float = 0.0
    # month-over-month enrichment
    prev_month_curr_stock_amt: float | None = None
    curr_stock_change: float | None = None
    prev_month_stagnant_stock_amt: float | None = None
    prev_month_stagnant_ratio: float | None = None
    current_month_depleted: float | None = None
    # year-over-year enrichment
    ly_curr_stock_amt: float | None = None
    curr_stock_yoy_pct: float | None = None


class OldSeasonInventory(BaseModel):
    asof_date: date
    region: str
    brand: str
    season_code: str
    season_type: str
    base_stock_date: date | None = None
    period_start_date: date | None = None
    period_days: int = 0
    category_filter: list[str] | None = None
    base_stock_dt_used: date | None = None
    curr_stock_dt_used: date | None = None
    header: AgingHeader | None = None
    years: list[YearBucketRecord] = []
    categories: list[CategoryRecord] = []
    skus: list[ProductRecord] = []
    warnings: list[str] = []


OLD_SEASON_RESOURCE = "old-season-inventory"
OLD_SEASON_CLOTHES_RESOURCE = "old-season-inventory-clothes"

RESOURCE_SCHEMAS: dict[str, type[BaseModel]] = {
    OLD_SEASON_RESOURCE: OldSeasonInventory,
    OLD_SEASON_CLOTHES_RESOURCE: OldSeasonInventory,
}


def schema_for(resource: str) -> type[BaseModel] | None:
    return RESOURCE_SCHEMAS.get(resource.strip().lower())
