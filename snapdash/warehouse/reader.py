"""Stock and sales queries against the warehouse."""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.engine import Engine

from snapdash.utils.dates import parse_iso_date
from snapdash.warehouse.models import DAILY_SOURCE, MONTHLY_SOURCE, SalesRow, StockRow, StockSnapshot
from snapdash.warehouse.stores import StoreDirectory, brand_codes
from snapdash.warehouse.tables import sale_daily, stock_daily, stock_monthly

logger = logging.getLogger(__name__)


class WarehouseReader:
    """Reads region/brand scoped stock points and sales from the warehouse."""

    def __init__(self, engine: Engine, stores: StoreDirectory) -> None:
        self.engine = engine
        self.stores = stores

    def has_stores(self, region: str, brand: str) -> bool:
        return self.stores.has_stores(region, brand)

    def daily_stock(self, region: str, brand: str, target: date) -> StockSnapshot | None:
        """Daily snapshot at the latest ``stock_dt`` on or before ``target``."""
        scope = self._scope(stock_daily, region, brand)
        latest = select(func.max(stock_daily.c.stock_dt)).where(stock_daily.c.stock_dt <= target, *scope)
        with self.engine.connect() as conn:
            effective = conn.execute(latest).scalar()
            if effective is None:
                logger.info("No daily stock for %s/%s on or before %s", region, brand, target)
                return None
            effective = _as_date(effective)
            query = (
                select(
                    stock_daily.c.sesn,
                    stock_daily.c.prdt_cd,
                    func.sum(stock_daily.c.tag_stock_amt).label("tag_stock_amt"),
                )
                .where(stock_daily.c.stock_dt == effective, *scope)
                .group_by(stock_daily.c.sesn, stock_daily.c.prdt_cd)
            )
            rows = [StockRow(row.sesn, row.prdt_cd, row.tag_stock_amt) for row in conn.execute(query)]
        return StockSnapshot(DAILY_SOURCE, effective, rows)

    def monthly_stock(self, region: str, brand: str, target: date) -> StockSnapshot | None:
        """Monthly aggregate for the latest month on or before ``target``'s month."""
        scope = self._scope(stock_monthly, region, brand)
        period = f"{target.year:04d}{target.month:02d}"
        latest = select(func.max(stock_monthly.c.yyyymm)).where(stock_monthly.c.yyyymm <= period, *scope)
        with self.engine.connect() as conn:
            yyyymm = conn.execute(latest).scalar()
            if yyyymm is None:
                logger.info("No monthly stock for %s/%s on or before %s", region, brand, period)
                return None
            query = (
                select(
                    stock_monthly.c.sesn,
                    stock_monthly.c.prdt_cd,
                    func.sum(stock_monthly.c.tag_stock_amt).label("tag_stock_amt"),
                )
                .where(stock_monthly.c.yyyymm == yyyymm, *scope)
                .group_by(stock_monthly.c.sesn, stock_monthly.c.prdt_cd)
            )
            rows = [StockRow(row.sesn, row.prdt_cd, row.tag_stock_amt) for row in conn.execute(query)]
        yyyymm = str(yyyymm)
        return StockSnapshot(MONTHLY_SOURCE, date(int(yyyymm[:4]), int(yyyymm[4:6]), 1), rows)

    def sales(self, region: str, brand: str, start: date, end: date) -> list[SalesRow]:
        """Daily sales per product between ``start`` and ``end`` inclusive."""
        if start > end:
            return []
        query = (
            select(
                sale_daily.c.sesn,
                sale_daily.c.prdt_cd,
                sale_daily.c.sale_dt,
                func.sum(sale_daily.c.tag_sale_amt).label("tag_sale_amt"),
                func.sum(sale_daily.c.act_sale_amt).label("act_sale_amt"),
            )
            .where(sale_daily.c.sale_dt >= start, sale_daily.c.sale_dt <= end, *self._scope(sale_daily, region, brand))
            .group_by(sale_daily.c.sesn, sale_daily.c.prdt_cd, sale_daily.c.sale_dt)
        )
        with self.engine.connect() as conn:
            return [
                SalesRow(row.sesn, row.prdt_cd, _as_date(row.sale_dt), row.tag_sale_amt, row.act_sale_amt)
                for row in conn.execute(query)
            ]

    def _scope(self, table, region: str, brand: str) -> list:
        return [
            table.c.brd_cd.in_(brand_codes(brand)),
            table.c.local_shop_cd.in_(self.stores.shops(region, brand)),
        ]


def _as_date(value) -> date:
    if isinstance(value, str):
        return parse_iso_date(value)
    return date(value.year, value.month, value.day)
