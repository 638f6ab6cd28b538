"""Season code arithmetic.

A season code is a two-digit year followed by the half: ``S`` for
spring/summer (March to August) and ``F`` for fall/winter (September to
February). January and February belong to the previous year's ``F`` season.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from enum import IntEnum

from snapdash.utils.dates import days_before, months_before

SEASON_CODE_RE = re.compile(r"^(\d{2})([SF])$")


class Half(IntEnum):
    S = 0
    F = 1


@dataclass(frozen=True, slots=True, order=True)
class SeasonCode:
    """Two-digit year and half as the warehouse stores them.

    Ordering and ``generation`` compare the two-digit year, so they do not
    hold across a century boundary: ``next_season_code`` of ``99F`` is ``00S``
    yet sorts before it.
    """

    year: int
    half: Half

    @classmethod
    def parse(cls, value: str) -> SeasonCode:
        match = SEASON_CODE_RE.match(value.strip().upper()) if isinstance(value, str) else None
        if match is None:
            raise ValueError(f"Invalid season code: {value!r}")
        return cls(int(match.group(1)), Half[match.group(2)])

    @property
    def generation(self) -> int:
        """Position in the half-year sequence; consecutive seasons differ by one."""
        return self.year * 2 + int(self.half)

    def __str__(self) -> str:
        return f"{self.year % 100:02d}{self.half.name}"


def season_code(value: date) -> SeasonCode:
    if value.month >= 9:
        return SeasonCode(value.year % 100, Half.F)
    if value.month <= 2:
        return SeasonCode((value.year - 1) % 100, Half.F)
    return SeasonCode(value.year % 100, Half.S)


def season_start_date(value: date) -> date:
    if value.month >= 9:
        return date(value.year, 9, 1)
    if value.month <= 2:
        return date(value.year - 1, 9, 1)
    return date(value.year, 3, 1)


def base_stock_date(value: date) -> date:
    """Reference date for the season's opening stock (Aug 31 or end of February)."""
    return days_before(season_start_date(value), 1)


def period_days(value: date) -> int:
    """Days from the season start to ``value``, both inclusive."""
    return (value - season_start_date(value)).days + 1


def season_type(value: date) -> str:
    return "FW" if season_code(value).half is Half.F else "SS"


def sellthrough_start_date(value: date) -> date:
    """Start of the sell-through window: six months before the season start."""
    return months_before(season_start_date(value), 6)


def next_season_code(code: SeasonCode) -> SeasonCode:
    if code.half is Half.S:
        return SeasonCode(code.year, Half.F)
    return SeasonCode((code.year + 1) % 100, Half.S)


def previous_season_code(code: SeasonCode) -> SeasonCode:
    if code.half is Half.F:
        return SeasonCode(code.year, Half.S)
    return SeasonCode((code.year - 1) % 100, Half.F)


def past_cutoff_season_code(code: SeasonCode) -> SeasonCode:
    """Same half, one full year earlier."""
    return SeasonCode((code.year - 1) % 100, code.half)
