"""Exchange-period lookup for regions reported in a foreign currency."""

from __future__ import annotations

import logging
import os
import pathlib
from datetime import date
from typing import Iterable, Mapping

import yaml

logger = logging.getLogger(__name__)

RATES_PATH = pathlib.Path(os.environ.get("EXCHANGE_RATES_PATH", pathlib.Path(__file__).with_name("exchange_rates.yml")))
DEFAULT_RATE = 0.25


def period_for(value: date) -> str:
    """``YYMM`` period key, e.g. ``2602`` for any day of February 2026."""
    return f"{value.year % 100:02d}{value.month:02d}"


class ExchangeRateTable:
    def __init__(self, rates: Mapping[str, float], *, default_rate: float = DEFAULT_RATE) -> None:
        self._rates = {str(period): float(rate) for period, rate in rates.items()}
        self.default_rate = default_rate

    def rate(self, period: str) -> float:
        if period in self._rates:
            return self._rates[period]
        if self._rates:
            latest = max(self._rates)
            logger.warning("No exchange rate for %s, using latest %s = %s", period, latest, self._rates[latest])
            return self._rates[latest]
        logger.error("Exchange rate table is empty, using default %s", self.default_rate)
        return self.default_rate


class RegionCurrency:
    """Multiplier that brings a region's amounts into the reporting currency."""

    def __init__(self, table: ExchangeRateTable, converted_regions: Iterable[str] = ("TW",)) -> None:
        self.table = table
        self.converted_regions = {region.strip().upper() for region in converted_regions}

    def rate_for(self, region: str, value: date) -> float:
        if region.strip().upper() not in self.converted_regions:
            return 1.0
        return self.table.rate(period_for(value))


def load_exchange_rates(path: pathlib.Path = RATES_PATH) -> ExchangeRateTable:
    data = yaml.safe_load(path.read_text()) or {}
    return ExchangeRateTable({str(period): rate for period, rate in data.items()})
