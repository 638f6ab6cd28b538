"""Datetime helpers."""

from __future__ import annotations

import os
from datetime import date, datetime, timezone

import pendulum

DEFAULT_TZ = "Asia/Hong_Kong"


def timezone_name() -> str:
    return os.environ.get("TIMEZONE", DEFAULT_TZ)


def now_in_tz() -> pendulum.DateTime:
    tz = pendulum.timezone(timezone_name())
    return pendulum.now(tz)


def yesterday_in_tz() -> date:
    return _plain(now_in_tz().subtract(days=1).date())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_iso_date(value: str) -> date:
    return _plain(pendulum.parse(value, strict=True).date())


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def days_before(value: date, days: int) -> date:
    return _plain(pendulum.date(value.year, value.month, value.day).subtract(days=days))


def months_before(value: date, months: int) -> date:
    return _plain(pendulum.date(value.year, value.month, value.day).subtract(months=months))


def one_year_before(value: date) -> date:
    """Same calendar day a year earlier; Feb 29 falls back to Feb 28."""
    return _plain(pendulum.date(value.year, value.month, value.day).subtract(years=1))


def month_start(value: date) -> date:
    return value.replace(day=1)


def previous_month_end(value: date) -> date:
    return days_before(month_start(value), 1)


def _plain(value: date) -> date:
    return date(value.year, value.month, value.day)
