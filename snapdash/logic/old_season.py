"""Old-season inventory report for one region, brand and as-of date."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Collection, Iterable, Mapping, Protocol

import pandas as pd

from snapdash.logic import aging
from snapdash.logic.currency import RegionCurrency
from snapdash.logic.seasons import base_stock_date, period_days, season_code, season_start_date, season_type
from snapdash.schemas import AgingHeader, CategoryRecord, OldSeasonInventory, ProductRecord, YearBucketRecord
from snapdash.utils.dates import days_before, month_start, one_year_before, previous_month_end
from snapdash.warehouse.models import SalesRow, StockSnapshot
from snapdash.warehouse.stores import normalize_brand

logger = logging.getLogger(__name__)

SCALED_COLUMNS = [*aging.AMOUNT_COLUMNS, "trailing_tag_sales"]


class StockSource(Protocol):
    def has_stores(self, region: str, brand: str) -> bool: ...

    def daily_stock(self, region: str, brand: str, target: date) -> StockSnapshot | None: ...

    def monthly_stock(self, region: str, brand: str, target: date) -> StockSnapshot | None: ...

    def sales(self, region: str, brand: str, start: date, end: date) -> list[SalesRow]: ...


@dataclass(slots=True)
class StockPoint:
    effective_date: date | None
    records: list[dict[str, Any]]
    skipped: int = 0


class InventoryAgingClassifier:
    """Buckets old-season stock by age and derives stagnant stock and inventory days."""

    def __init__(
        self,
        reader: StockSource,
        *,
        legacy_cutover: date,
        currency: RegionCurrency | None = None,
        stock_offset_days: int = 1,
        trailing_days: int = 30,
    ) -> None:
        self.reader = reader
        self.legacy_cutover = legacy_cutover
        self.currency = currency
        self.stock_offset_days = stock_offset_days
        self.trailing_days = trailing_days

    def stock_at(self, region: str, brand: str, target: date, *, source_date: date | None = None) -> StockPoint:
        """Latest stock at or before ``target``.

        ``source_date`` is the report date the figure belongs to, ``target`` by
        default. When it predates the cutover the monthly aggregate for that
        date's month is read instead of the daily snapshot.
        """
        source_date = source_date or target
        if source_date < self.legacy_cutover:
            snapshot = self.reader.monthly_stock(region, brand, source_date)
        else:
            snapshot = self.reader.daily_stock(region, brand, target)
        if snapshot is None:
            return StockPoint(None, [])
        records, skipped = aging.check_rows(snapshot.rows, aging.STOCK_FIELDS)
        return StockPoint(snapshot.effective_date, records, skipped)

    def current_stock_target(self, as_of: date) -> date:
        return as_of + timedelta(days=self.stock_offset_days)

    def classify(
        self,
        region: str,
        brand: str,
        as_of: date,
        *,
        categories: Collection[str] | None = None,
        include_mom: bool = True,
        include_yoy: bool = True,
    ) -> OldSeasonInventory:
        region = region.strip().upper()
        brand = normalize_brand(brand)
        start = season_start_date(as_of)
        days = period_days(as_of)
        report = OldSeasonInventory(
            asof_date=as_of,
            region=region,
            brand=brand,
            season_code=str(season_code(as_of)),
            season_type=season_type(as_of),
            base_stock_date=base_stock_date(as_of),
            period_start_date=start,
            period_days=days,
            category_filter=sorted(categories) if categories is not None else None,
        )
        if not self.reader.has_stores(region, brand):
            logger.warning("No stores configured for %s/%s", region, brand)
            report.warnings.append("no stores configured")
            return report

        rate = self.currency.rate_for(region, as_of) if self.currency else 1.0
        trailing_start = days_before(as_of, self.trailing_days)
        prev_end = previous_month_end(as_of)
        window_start = min(start, trailing_start, days_before(prev_end, self.trailing_days))
        sales, skipped_sales = aging.check_rows(
            self.reader.sales(region, brand, window_start, as_of), aging.SALES_FIELDS, extra_fields=("sale_dt",)
        )

        base = self.stock_at(region, brand, base_stock_date(as_of))
        curr = self.stock_at(region, brand, self.current_stock_target(as_of), source_date=as_of)
        report.base_stock_dt_used = base.effective_date
        report.curr_stock_dt_used = curr.effective_date
        skipped = skipped_sales + base.skipped + curr.skipped
        if skipped:
            report.warnings.append(f"skipped {skipped} malformed rows")
        if base.effective_date is None:
            report.warnings.append("base stock unavailable")
        if curr.effective_date is None:
            report.warnings.append("current stock unavailable")

        frame = self._product_frame(
            as_of,
            base.records,
            curr.records,
            _between(sales, start, as_of),
            _between(sales, trailing_start, as_of),
            categories=categories,
            rate=rate,
        )

        header = aging.figures(aging.totals(frame), days)
        header["stagnant_ratio"] = _ratio(header["stagnant_stock_amt"], header["curr_stock_amt"])
        report.header = AgingHeader(**header)
        report.years = [
            YearBucketRecord(
                **row, season_code=aging.bucket_season_label(aging.YearBucket(row["year_bucket"]), as_of)
            )
            for row in aging.rollup(frame, ["year_bucket"], days)
        ]
        report.categories = [
            CategoryRecord(**{k: v for k, v in row.items() if k != "sesn"})
            for row in aging.rollup(frame, ["year_bucket", "cat2"], days)
        ]
        report.skus = [_product_record(row) for row in frame.to_dict("records")]

        if include_mom:
            try:
                self._month_over_month(report, region, brand, as_of, sales, categories, rate)
            except Exception as exc:
                logger.error("Month-over-month failed for %s/%s %s: %s", region, brand, as_of, exc)
                _zero(report.header, "prev_month_curr_stock_amt", "curr_stock_change", "prev_month_stagnant_stock_amt",
                      "prev_month_stagnant_ratio", "current_month_depleted")
                report.warnings.append("month-over-month unavailable")
        if include_yoy:
            try:
                self._year_over_year(report, region, brand, as_of, categories)
            except Exception as exc:
                logger.error("Year-over-year failed for %s/%s %s: %s", region, brand, as_of, exc)
                _zero(report.header, "ly_curr_stock_amt", "curr_stock_yoy_pct")
                report.warnings.append("year-over-year unavailable")
        return report

    def _product_frame(
        self,
        as_of: date,
        base: list[dict[str, Any]],
        curr: list[dict[str, Any]],
        period: list[dict[str, Any]],
        trailing: list[dict[str, Any]],
        *,
        categories: Collection[str] | None,
        rate: float,
    ) -> pd.DataFrame:
        buckets = aging.bucket_season_codes(aging.observed_seasons(base, curr, period, trailing), as_of)
        frame = aging.build_product_frame(
            buckets,
            aging.records_frame(base, aging.STOCK_FIELDS),
            aging.records_frame(curr, aging.STOCK_FIELDS),
            aging.records_frame(period, aging.SALES_FIELDS),
            aging.records_frame(trailing, aging.SALES_FIELDS),
            categories=categories,
        )
        if rate != 1.0:
            frame[SCALED_COLUMNS] = frame[SCALED_COLUMNS] * rate
        return frame

    def _month_over_month(
        self,
        report: OldSeasonInventory,
        region: str,
        brand: str,
        as_of: date,
        sales: list[dict[str, Any]],
        categories: Collection[str] | None,
        rate: float,
    ) -> None:
        header = report.header
        prev_end = previous_month_end(as_of)
        prev = self.stock_at(region, brand, self.current_stock_target(prev_end), source_date=prev_end)
        prev_trailing = _between(sales, days_before(prev_end, self.trailing_days), prev_end)
        prev_frame = self._product_frame(
            as_of, [], prev.records, [], prev_trailing, categories=categories, rate=rate
        )
        month_frame = self._product_frame(
            as_of, [], [], _between(sales, month_start(as_of), as_of), [], categories=categories, rate=rate
        )
        prev_totals = aging.totals(prev_frame)
        header.prev_month_curr_stock_amt = prev_totals["curr_stock_amt"]
        header.prev_month_stagnant_stock_amt = prev_totals["stagnant_stock_amt"]
        header.prev_month_stagnant_ratio = _ratio(prev_totals["stagnant_stock_amt"], prev_totals["curr_stock_amt"])
        header.curr_stock_change = prev_totals["curr_stock_amt"] - header.curr_stock_amt
        header.current_month_depleted = aging.totals(month_frame)["period_tag_sales"]

    def _year_over_year(
        self,
        report: OldSeasonInventory,
        region: str,
        brand: str,
        as_of: date,
        categories: Collection[str] | None,
    ) -> None:
        header = report.header
        ly_as_of = one_year_before(as_of)
        ly = self.stock_at(region, brand, self.current_stock_target(ly_as_of), source_date=ly_as_of)
        ly_rate = self.currency.rate_for(region, ly_as_of) if self.currency else 1.0
        ly_frame = self._product_frame(ly_as_of, [], ly.records, [], [], categories=categories, rate=ly_rate)
        ly_stock = aging.totals(ly_frame)["curr_stock_amt"]
        header.ly_curr_stock_amt = ly_stock
        header.curr_stock_yoy_pct = round(header.curr_stock_amt / ly_stock * 100, 2) if ly_stock > 0 else 0.0


def _between(records: Iterable[Mapping[str, Any]], start: date, end: date) -> list[dict[str, Any]]:
    return [dict(record) for record in records if start <= record["sale_dt"] <= end]


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def _zero(header: AgingHeader, *fields: str) -> None:
    for name in fields:
        setattr(header, name, 0.0)


def _product_record(row: Mapping[str, Any]) -> ProductRecord:
    cat2 = row.get("cat2")
    return ProductRecord(
        year_bucket=row["year_bucket"],
        sesn=row["sesn"],
        cat2=cat2 if isinstance(cat2, str) else None,
        prdt_cd=row["prdt_cd"],
        **{column: float(row[column]) for column in aging.AMOUNT_COLUMNS},
    )
