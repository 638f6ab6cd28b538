"""Old-season inventory aging: year buckets, stagnant stock and inventory days."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from enum import Enum
from functools import reduce
from typing import Any, Collection, Iterable, Mapping, Sequence

import numpy as np
import pandas as pd

from snapdash.logic.seasons import SeasonCode, season_code

logger = logging.getLogger(__name__)

STAGNANT_THRESHOLD = 0.001
INV_DAYS_CAP = 999
ONE_YEAR_DAYS = 365

PRODUCT_KEYS = ["sesn", "prdt_cd"]
STOCK_FIELDS = ("tag_stock_amt",)
SALES_FIELDS = ("tag_sale_amt", "act_sale_amt")
AMOUNT_COLUMNS = [
    "base_stock_amt",
    "curr_stock_amt",
    "stagnant_stock_amt",
    "depleted_stock_amt",
    "period_tag_sales",
    "period_act_sales",
]


class ClassificationInputError(ValueError):
    pass


class YearBucket(str, Enum):
    ONE = "1y"
    TWO = "2y"
    THREE_PLUS = "3y+"

    @property
    def gap(self) -> int:
        return {"1y": 1, "2y": 2, "3y+": 3}[self.value]


BUCKET_ORDER = {bucket.value: idx for idx, bucket in enumerate(YearBucket)}


def year_bucket(code: SeasonCode, as_of: date) -> YearBucket | None:
    """Age of ``code`` relative to the as-of season; ``None`` means not old stock."""
    current = season_code(as_of)
    if code.half != current.half:
        return None
    gap = (current.generation - code.generation) // 2
    if gap <= 0:
        return None
    if gap == 1:
        return YearBucket.ONE
    if gap == 2:
        return YearBucket.TWO
    return YearBucket.THREE_PLUS


def bucket_season_codes(codes: Iterable[SeasonCode], as_of: date) -> dict[SeasonCode, YearBucket]:
    buckets: dict[SeasonCode, YearBucket] = {}
    for code in set(codes):
        bucket = year_bucket(code, as_of)
        if bucket is not None:
            buckets[code] = bucket
    return buckets


def bucket_season_label(bucket: YearBucket, as_of: date) -> str:
    """Season shown for a bucket: ``24F`` for one year old, ``~22F`` for three and older."""
    current = season_code(as_of)
    label = str(SeasonCode((current.year - bucket.gap) % 100, current.half))
    return f"~{label}" if bucket is YearBucket.THREE_PLUS else label


def round_half_up(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


@dataclass(frozen=True, slots=True)
class InventoryDays:
    raw: int | None

    @classmethod
    def compute(cls, curr_stock: float, period_tag_sales: float, period_days: int) -> InventoryDays:
        if period_tag_sales <= 0:
            return cls(None)
        return cls(round_half_up(curr_stock * period_days / period_tag_sales))

    @property
    def no_sales(self) -> bool:
        return self.raw is None

    @property
    def display(self) -> int | None:
        if self.raw is None:
            return None
        return min(self.raw, INV_DAYS_CAP)

    @property
    def over_one_year(self) -> bool:
        return self.raw is None or self.raw > ONE_YEAR_DAYS

    @property
    def label(self) -> str:
        if self.raw is None:
            return "no sales"
        if self.raw > INV_DAYS_CAP:
            return f"{INV_DAYS_CAP}+"
        return str(self.raw)


def discount_rate(period_tag_sales: float, period_act_sales: float) -> float:
    if period_tag_sales <= 0:
        return 0.0
    return 1 - period_act_sales / period_tag_sales


def is_stagnant(curr_stock: Any, trailing_sales: Any) -> Any:
    """Elementwise for pandas series, a plain bool for scalars."""
    return (curr_stock > 0) & ((trailing_sales == 0) | (trailing_sales < curr_stock * STAGNANT_THRESHOLD))


def stagnant_amount(curr_stock: float, trailing_sales: float) -> float:
    return float(curr_stock) if is_stagnant(curr_stock, trailing_sales) else 0.0


def check_rows(
    rows: Iterable[Any], amount_fields: Sequence[str], extra_fields: Sequence[str] = ()
) -> tuple[list[dict[str, Any]], int]:
    """Validate warehouse rows, skipping malformed ones with a warning."""
    records: list[dict[str, Any]] = []
    skipped = 0
    for row in rows:
        try:
            record = _check_row(row, amount_fields)
        except ClassificationInputError as exc:
            skipped += 1
            logger.warning("Skipping row: %s", exc)
            continue
        for name in extra_fields:
            record[name] = getattr(row, name)
        records.append(record)
    return records, skipped


def _check_row(row: Any, amount_fields: Sequence[str]) -> dict[str, Any]:
    try:
        code = SeasonCode.parse(row.sesn)
    except ValueError as exc:
        raise ClassificationInputError(str(exc)) from exc
    product = row.prdt_cd.strip() if isinstance(row.prdt_cd, str) else ""
    if not product:
        raise ClassificationInputError(f"Missing product code for season {code}")
    record: dict[str, Any] = {"sesn": str(code), "prdt_cd": product}
    for name in amount_fields:
        value = getattr(row, name)
        try:
            amount = float(value)
        except (TypeError, ValueError) as exc:
            raise ClassificationInputError(f"Non-numeric {name}={value!r} for {product}") from exc
        if not math.isfinite(amount):
            raise ClassificationInputError(f"Non-finite {name} for {product}")
        record[name] = amount
    return record


def observed_seasons(*record_sets: Iterable[Mapping[str, Any]]) -> set[SeasonCode]:
    return {SeasonCode.parse(record["sesn"]) for records in record_sets for record in records}


def records_frame(records: Sequence[Mapping[str, Any]], amount_fields: Sequence[str]) -> pd.DataFrame:
    columns = [*PRODUCT_KEYS, *amount_fields]
    return pd.DataFrame([{name: record[name] for name in columns} for record in records], columns=columns)


def _sum_by_product(frame: pd.DataFrame, renames: Mapping[str, str]) -> pd.DataFrame:
    columns = list(renames)
    if frame.empty:
        return pd.DataFrame(columns=[*PRODUCT_KEYS, *renames.values()])
    summed = frame.groupby(PRODUCT_KEYS, as_index=False)[columns].sum()
    return summed.rename(columns=dict(renames))


def build_product_frame(
    buckets: Mapping[SeasonCode, YearBucket],
    base_stock: pd.DataFrame,
    curr_stock: pd.DataFrame,
    period_sales: pd.DataFrame,
    trailing_sales: pd.DataFrame,
    *,
    categories: Collection[str] | None = None,
) -> pd.DataFrame:
    """One row per bucketed (season, product) with stock, sales and stagnant amounts."""
    joined = reduce(
        lambda left, right: left.merge(right, on=PRODUCT_KEYS, how="outer"),
        [
            _sum_by_product(base_stock, {"tag_stock_amt": "base_stock_amt"}),
            _sum_by_product(curr_stock, {"tag_stock_amt": "curr_stock_amt"}),
            _sum_by_product(period_sales, {"tag_sale_amt": "period_tag_sales", "act_sale_amt": "period_act_sales"}),
        ],
    )
    frame = joined.merge(
        _sum_by_product(trailing_sales, {"tag_sale_amt": "trailing_tag_sales"}), on=PRODUCT_KEYS, how="left"
    )
    for column in ["base_stock_amt", "curr_stock_amt", "period_tag_sales", "period_act_sales", "trailing_tag_sales"]:
        frame[column] = pd.to_numeric(frame[column]).fillna(0.0).astype(float)

    bucket_by_sesn = {str(code): bucket.value for code, bucket in buckets.items()}
    frame["year_bucket"] = frame["sesn"].map(bucket_by_sesn)
    frame = frame[frame["year_bucket"].notna()].copy()

    cat2 = frame["prdt_cd"].astype(str).str.slice(6, 8)
    frame["cat2"] = cat2.where(cat2.str.len() == 2, None)
    if categories is not None:
        frame = frame[frame["cat2"].isin(set(categories))].copy()

    active = (
        (frame["base_stock_amt"] > 0)
        | (frame["curr_stock_amt"] > 0)
        | (frame["period_tag_sales"] > 0)
        | (frame["period_act_sales"] > 0)
    )
    frame = frame[active].copy()

    curr = frame["curr_stock_amt"]
    frame["stagnant_stock_amt"] = np.where(is_stagnant(curr, frame["trailing_tag_sales"]), curr, 0.0)
    frame["depleted_stock_amt"] = frame["period_tag_sales"]

    frame["bucket_order"] = frame["year_bucket"].map(BUCKET_ORDER)
    frame = frame.sort_values(["bucket_order", "cat2", "prdt_cd"], na_position="first")
    return frame.drop(columns=["bucket_order"]).reset_index(drop=True)


def totals(frame: pd.DataFrame) -> dict[str, float]:
    return {column: float(frame[column].sum()) if not frame.empty else 0.0 for column in AMOUNT_COLUMNS}


def figures(sums: Mapping[str, float], period_days: int) -> dict[str, Any]:
    """Attach ratios recomputed from summed amounts."""
    result = {column: float(sums[column]) for column in AMOUNT_COLUMNS}
    inv_days = InventoryDays.compute(result["curr_stock_amt"], result["period_tag_sales"], period_days)
    result.update(
        discount_rate=discount_rate(result["period_tag_sales"], result["period_act_sales"]),
        inv_days_raw=inv_days.raw,
        inv_days=inv_days.display,
        inv_days_label=inv_days.label,
        no_sales=inv_days.no_sales,
        is_over_1y=inv_days.over_one_year,
    )
    return result


def rollup(frame: pd.DataFrame, by: Sequence[str], period_days: int) -> list[dict[str, Any]]:
    """Sum child rows per group and recompute ratios from the group totals."""
    subset = frame.dropna(subset=list(by))
    if subset.empty:
        return []
    aggregations = {column: (column, "sum") for column in AMOUNT_COLUMNS}
    aggregations["sesn"] = ("sesn", "max")
    grouped = subset.groupby(list(by), as_index=False).agg(**aggregations)
    rows = []
    for group in grouped.to_dict("records"):
        row = figures(group, period_days)
        row.update({key: group[key] for key in by})
        row["sesn"] = group["sesn"]
        rows.append(row)
    rows.sort(key=lambda row: (BUCKET_ORDER.get(row.get("year_bucket"), 99), *(str(row[key]) for key in by)))
    return rows
