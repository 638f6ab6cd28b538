"""SQLAlchemy Core definitions for the warehouse tables the reports read."""

from __future__ import annotations

import os

from sqlalchemy import Column, Date, Float, MetaData, String, Table

metadata = MetaData(schema=os.environ.get("WAREHOUSE_SCHEMA") or None)

# Daily sales per shop and product.
sale_daily = Table(
    "dw_hmd_sale_d",
    metadata,
    Column("sale_dt", Date, nullable=False, index=True),
    Column("brd_cd", String(4), nullable=False),
    Column("local_shop_cd", String(16), nullable=False),
    Column("sesn", String(8)),
    Column("prdt_cd", String(32)),
    Column("tag_sale_amt", Float),
    Column("act_sale_amt", Float),
)

# Stock snapshot taken each morning for the previous day's close.
stock_daily = Table(
    "dw_hmd_stock_snap_d",
    metadata,
    Column("stock_dt", Date, nullable=False, index=True),
    Column("brd_cd", String(4), nullable=False),
    Column("local_shop_cd", String(16), nullable=False),
    Column("sesn", String(8)),
    Column("prdt_cd", String(32)),
    Column("tag_stock_amt", Float),
)

# Month-end stock aggregated before the daily snapshot existed.
stock_monthly = Table(
    "prep_hmd_stock",
    metadata,
    Column("yyyymm", String(6), nullable=False, index=True),
    Column("brd_cd", String(4), nullable=False),
    Column("local_shop_cd", String(16), nullable=False),
    Column("sesn", String(8)),
    Column("prdt_cd", String(32)),
    Column("tag_stock_amt", Float),
)
