"""Scheduled snapshot refresh."""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Iterable, Sequence

from dotenv import load_dotenv

from snapdash.cache.client import create_cache_client_from_env
from snapdash.cache.store import MULTI_DAY_SNAPSHOT_TTL_SECONDS, SNAPSHOT_TTL_SECONDS, SnapshotStore
from snapdash.config import Settings
from snapdash.logic.currency import RegionCurrency, load_exchange_rates
from snapdash.logic.old_season import InventoryAgingClassifier
from snapdash.schemas import OLD_SEASON_CLOTHES_RESOURCE, OLD_SEASON_RESOURCE
from snapdash.utils.dates import days_before, format_date, yesterday_in_tz
from snapdash.warehouse.reader import WarehouseReader
from snapdash.warehouse.session import create_engine_from_env
from snapdash.warehouse.stores import load_stores

logger = logging.getLogger(__name__)

OLD_SEASON_SECTION = "SECTION3"

Fetch = Callable[[str, str, date], Awaitable[Any]]


class FetchFailure(RuntimeError):
    pass


@dataclass(slots=True)
class SnapshotResource:
    section: str
    name: str
    fetch: Fetch


@dataclass(slots=True)
class RefreshItem:
    resource: SnapshotResource
    region: str
    brand: str
    as_of: date

    @property
    def label(self) -> str:
        return f"{self.resource.section}:{self.resource.name}:{self.region}:{self.brand}:{format_date(self.as_of)}"


@dataclass(slots=True)
class SavedSnapshot:
    key: str
    bytes: int
    section: str
    resource: str
    region: str
    brand: str
    date: date


@dataclass(slots=True)
class FailedSnapshot:
    section: str
    resource: str
    region: str
    brand: str
    date: date
    error: str


@dataclass(slots=True)
class RefreshSummary:
    dates: list[date]
    total_targets: int
    saved: list[SavedSnapshot] = field(default_factory=list)
    errors: list[FailedSnapshot] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def total_bytes(self) -> int:
        return sum(item.bytes for item in self.saved)

    def stats(self) -> dict[str, Any]:
        return {
            "total_targets": self.total_targets,
            "success_count": len(self.saved),
            "error_count": len(self.errors),
            "total_bytes": self.total_bytes,
            "total_kb": f"{self.total_bytes / 1024:.2f}",
            "duration_ms": self.duration_ms,
        }


def target_dates(end: date, days: int) -> list[date]:
    """``end`` and the ``days - 1`` days before it, newest first."""
    return [days_before(end, offset) for offset in range(days)]


def ttl_for(days: int) -> int:
    return SNAPSHOT_TTL_SECONDS if days == 1 else MULTI_DAY_SNAPSHOT_TTL_SECONDS


class SnapshotRefreshOrchestrator:
    """Regenerates snapshots for every date, region, brand and resource combination."""

    def __init__(self, store: SnapshotStore, resources: Sequence[SnapshotResource]) -> None:
        self.store = store
        self.resources = list(resources)

    def items(self, dates: Iterable[date], regions: Iterable[str], brands: Iterable[str]) -> list[RefreshItem]:
        return [
            RefreshItem(resource, region, brand, as_of)
            for as_of in dates
            for region in regions
            for brand in brands
            for resource in self.resources
        ]

    async def run(
        self,
        dates: Sequence[date],
        regions: Sequence[str],
        brands: Sequence[str],
        *,
        parallel: bool = False,
        ttl_seconds: int = SNAPSHOT_TTL_SECONDS,
    ) -> RefreshSummary:
        started = time.monotonic()
        items = self.items(dates, regions, brands)
        summary = RefreshSummary(dates=list(dates), total_targets=len(items))
        logger.info(
            "Snapshot refresh start: %d targets (dates=%s regions=%s brands=%s parallel=%s ttl=%ss)",
            len(items),
            ",".join(format_date(d) for d in dates),
            ",".join(regions),
            ",".join(brands),
            parallel,
            ttl_seconds,
        )
        if parallel:
            await asyncio.gather(*(self._refresh(item, summary, ttl_seconds) for item in items))
        else:
            for item in items:
                await self._refresh(item, summary, ttl_seconds)
        summary.duration_ms = int((time.monotonic() - started) * 1000)
        if summary.ok:
            logger.info("Snapshot refresh finished: %s", summary.stats())
        else:
            logger.error(
                "Snapshot refresh finished with errors: %s failed=%s",
                summary.stats(),
                [f"{e.section}:{e.resource}:{e.region}:{e.brand}:{format_date(e.date)}" for e in summary.errors],
            )
        return summary

    async def _refresh(self, item: RefreshItem, summary: RefreshSummary, ttl_seconds: int) -> None:
        resource = item.resource
        try:
            try:
                payload = await resource.fetch(item.region, item.brand, item.as_of)
            except Exception as exc:
                raise FetchFailure(str(exc) or exc.__class__.__name__) from exc
            written = await self.store.set(
                resource.section, resource.name, item.region, item.brand, item.as_of, payload, ttl_seconds
            )
            if written is None:
                raise RuntimeError("snapshot was not written to the cache")
        except Exception as exc:
            logger.error("Snapshot failed for %s: %s", item.label, exc)
            summary.errors.append(
                FailedSnapshot(resource.section, resource.name, item.region, item.brand, item.as_of, str(exc))
            )
            return
        key = self.store.key(resource.section, resource.name, item.region, item.brand, item.as_of)
        summary.saved.append(
            SavedSnapshot(key, written, resource.section, resource.name, item.region, item.brand, item.as_of)
        )


def old_season_resources(
    classifier: InventoryAgingClassifier, apparel_categories: Sequence[str]
) -> list[SnapshotResource]:
    """Old-season inventory snapshots for all categories and for apparel only."""

    def fetcher(categories: Sequence[str] | None) -> Fetch:
        async def fetch(region: str, brand: str, as_of: date):
            loop = asyncio.get_running_loop()
            call = functools.partial(classifier.classify, region, brand, as_of, categories=categories)
            return await loop.run_in_executor(None, call)

        return fetch

    return [
        SnapshotResource(OLD_SEASON_SECTION, OLD_SEASON_RESOURCE, fetcher(None)),
        SnapshotResource(OLD_SEASON_SECTION, OLD_SEASON_CLOTHES_RESOURCE, fetcher(tuple(apparel_categories))),
    ]


def build_classifier(settings: Settings) -> InventoryAgingClassifier:
    reader = WarehouseReader(create_engine_from_env(), load_stores())
    currency = RegionCurrency(load_exchange_rates(), settings.converted_regions)
    return InventoryAgingClassifier(reader, legacy_cutover=settings.legacy_stock_cutover, currency=currency)


async def run_snapshot_refresh(as_of: date | None = None) -> RefreshSummary:
    load_dotenv()
    settings = Settings.from_env()
    client = create_cache_client_from_env()
    try:
        classifier = build_classifier(settings)
        orchestrator = SnapshotRefreshOrchestrator(
            SnapshotStore(client), old_season_resources(classifier, settings.apparel_categories)
        )
        dates = target_dates(as_of or yesterday_in_tz(), settings.snapshot_days)
        return await orchestrator.run(
            dates,
            settings.snapshot_regions,
            settings.snapshot_brands,
            parallel=settings.snapshot_parallel,
            ttl_seconds=ttl_for(settings.snapshot_days),
        )
    finally:
        await client.aclose()


if __name__ == "__main__":
    asyncio.run(run_snapshot_refresh())
