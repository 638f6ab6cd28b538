"""Runtime settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date

from snapdash.utils.dates import parse_iso_date

DEFAULT_LEGACY_STOCK_CUTOVER = "2025-10-01"
MIN_SNAPSHOT_DAYS = 1
MAX_SNAPSHOT_DAYS = 30

# Two-letter category codes counted as apparel.
DEFAULT_APPAREL_CATEGORIES = (
    "DP", "LG", "PT", "SK", "SM", "SP", "TP", "WP",
    "BS", "HD", "KP", "MT", "OP", "PQ", "TK", "TR", "TS", "WS",
    "DJ", "DK", "FD", "JP", "KC", "WJ", "S6",
    "DS", "DD", "DR", "RS", "SW", "TO", "DV", "JK", "KT", "PD", "VT",
    "DT", "S2", "S1", "BV", "ZT", "CT", "LE", "S5", "RL", "SS", "TL", "BR",
)


def _csv(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if not value:
        return default
    items = tuple(item.strip().upper() for item in value.split(",") if item.strip())
    return items or default


def clamp_days(value: str | int | None, default: int = 1) -> int:
    try:
        days = int(value) if value is not None and str(value).strip() else default
    except ValueError:
        days = default
    return max(MIN_SNAPSHOT_DAYS, min(MAX_SNAPSHOT_DAYS, days))


@dataclass(slots=True)
class Settings:
    legacy_stock_cutover: date = field(default_factory=lambda: parse_iso_date(DEFAULT_LEGACY_STOCK_CUTOVER))
    snapshot_days: int = 1
    snapshot_parallel: bool = False
    snapshot_regions: tuple[str, ...] = ("HKMC", "TW")
    snapshot_brands: tuple[str, ...] = ("M", "X")
    converted_regions: tuple[str, ...] = ("TW",)
    apparel_categories: tuple[str, ...] = DEFAULT_APPAREL_CATEGORIES

    @classmethod
    def from_env(cls) -> Settings:
        env = os.environ
        return cls(
            legacy_stock_cutover=parse_iso_date(env.get("LEGACY_STOCK_CUTOVER", DEFAULT_LEGACY_STOCK_CUTOVER)),
            snapshot_days=clamp_days(env.get("SNAPSHOT_DAYS")),
            snapshot_parallel=env.get("SNAPSHOT_PARALLEL", "0").strip() == "1",
            snapshot_regions=_csv(env.get("SNAPSHOT_REGIONS"), ("HKMC", "TW")),
            snapshot_brands=_csv(env.get("SNAPSHOT_BRANDS"), ("M", "X")),
            converted_regions=_csv(env.get("CONVERTED_REGIONS"), ("TW",)),
            apparel_categories=_csv(env.get("APPAREL_CATEGORIES"), DEFAULT_APPAREL_CATEGORIES),
        )
