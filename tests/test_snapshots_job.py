from datetime import date

import pytest

from snapdash.cache.client import CacheConfigError
from snapdash.cache.store import MULTI_DAY_SNAPSHOT_TTL_SECONDS, SNAPSHOT_TTL_SECONDS
from snapdash.config import Settings, clamp_days
from snapdash.jobs import snapshots
from snapdash.jobs.snapshots import SnapshotRefreshOrchestrator, SnapshotResource, target_dates, ttl_for
from snapdash.logic.old_season import InventoryAgingClassifier
from snapdash.schemas import OldSeasonInventory

from conftest import AS_OF


def _resource(name, failing=()):
    async def fetch(region, brand, as_of):
        if (region, brand) in failing:
            raise RuntimeError(f"query failed for {region}/{brand}")
        return {"region": region, "brand": brand, "date": as_of.isoformat()}

    return SnapshotResource("SECTION3", name, fetch)


@pytest.mark.asyncio
@pytest.mark.parametrize("parallel", [False, True])
async def test_one_failing_item_does_not_stop_the_rest(store, parallel):
    orchestrator = SnapshotRefreshOrchestrator(store, [_resource("stock", failing={("HKMC", "X")})])
    summary = await orchestrator.run([AS_OF], ["HKMC", "TW"], ["M", "X"], parallel=parallel)

    assert summary.total_targets == 4
    assert len(summary.saved) == 3
    assert len(summary.errors) == 1
    assert not summary.ok
    failed = summary.errors[0]
    assert (failed.region, failed.brand) == ("HKMC", "X")
    assert "query failed" in failed.error
    for region, brand in [("HKMC", "M"), ("TW", "M"), ("TW", "X")]:
        snapshot = await store.get("SECTION3", "stock", region, brand, AS_OF)
        assert snapshot.payload["region"] == region
    assert await store.get("SECTION3", "stock", "HKMC", "X", AS_OF) is None
    assert summary.stats()["success_count"] == 3
    assert summary.stats()["total_bytes"] == sum(item.bytes for item in summary.saved)


@pytest.mark.asyncio
async def test_unwritten_snapshot_counts_as_failure(store, fake_redis):
    fake_redis.fail("set")
    summary = await SnapshotRefreshOrchestrator(store, [_resource("stock")]).run([AS_OF], ["HKMC"], ["M"])
    assert summary.saved == []
    assert summary.errors[0].error == "snapshot was not written to the cache"


@pytest.mark.asyncio
async def test_items_cover_every_combination(store, fake_redis):
    orchestrator = SnapshotRefreshOrchestrator(store, [_resource("a"), _resource("b")])
    dates = target_dates(AS_OF, 2)
    summary = await orchestrator.run(dates, ["HKMC"], ["M", "X"], ttl_seconds=ttl_for(2))
    assert summary.total_targets == 8
    assert summary.ok
    assert {item.date for item in summary.saved} == {date(2025, 11, 14), date(2025, 11, 13)}
    assert set(fake_redis.ttls.values()) >= {MULTI_DAY_SNAPSHOT_TTL_SECONDS}


def test_target_dates_and_ttl():
    assert target_dates(date(2026, 3, 1), 3) == [date(2026, 3, 1), date(2026, 2, 28), date(2026, 2, 27)]
    assert ttl_for(1) == SNAPSHOT_TTL_SECONDS
    assert ttl_for(7) == MULTI_DAY_SNAPSHOT_TTL_SECONDS


def test_snapshot_days_are_clamped():
    assert clamp_days(None) == 1
    assert clamp_days("0") == 1
    assert clamp_days("45") == 30
    assert clamp_days("abc") == 1
    assert clamp_days("7") == 7


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("SNAPSHOT_DAYS", "3")
    monkeypatch.setenv("SNAPSHOT_PARALLEL", "1")
    monkeypatch.setenv("SNAPSHOT_REGIONS", "hkmc")
    monkeypatch.setenv("LEGACY_STOCK_CUTOVER", "2025-09-01")
    monkeypatch.delenv("SNAPSHOT_BRANDS", raising=False)
    settings = Settings.from_env()
    assert settings.snapshot_days == 3
    assert settings.snapshot_parallel is True
    assert settings.snapshot_regions == ("HKMC",)
    assert settings.snapshot_brands == ("M", "X")
    assert settings.legacy_stock_cutover == date(2025, 9, 1)


@pytest.mark.asyncio
async def test_old_season_resources_run_classifier(store, reader):
    classifier = InventoryAgingClassifier(reader, legacy_cutover=date(2024, 1, 1))
    resources = snapshots.old_season_resources(classifier, ["TS", "JP"])
    summary = await SnapshotRefreshOrchestrator(store, resources).run([AS_OF], ["HKMC"], ["M"])
    assert summary.ok
    everything = await store.get("SECTION3", "old-season-inventory", "HKMC", "M", AS_OF)
    clothes = await store.get("SECTION3", "old-season-inventory-clothes", "HKMC", "M", AS_OF)
    assert isinstance(everything.payload, OldSeasonInventory)
    assert everything.payload.header.curr_stock_amt == 2400
    assert clothes.payload.header.curr_stock_amt == 1400


@pytest.mark.asyncio
async def test_refresh_requires_cache_url(monkeypatch):
    monkeypatch.setattr(snapshots, "load_dotenv", lambda: None)
    monkeypatch.delenv("SNAPSHOT_REDIS_URL", raising=False)
    monkeypatch.delenv("REDIS_URL", raising=False)
    with pytest.raises(CacheConfigError):
        await snapshots.run_snapshot_refresh(AS_OF)


@pytest.mark.asyncio
async def test_run_snapshot_refresh_wires_settings(monkeypatch, fake_redis, reader):
    monkeypatch.setattr(snapshots, "load_dotenv", lambda: None)
    monkeypatch.setattr(snapshots, "create_cache_client_from_env", lambda: fake_redis)
    monkeypatch.setattr(
        snapshots, "build_classifier", lambda settings: InventoryAgingClassifier(reader, legacy_cutover=date(2024, 1, 1))
    )
    monkeypatch.setenv("SNAPSHOT_REGIONS", "HKMC,TW")
    monkeypatch.setenv("SNAPSHOT_BRANDS", "M")
    monkeypatch.setenv("SNAPSHOT_DAYS", "2")
    monkeypatch.delenv("SNAPSHOT_PARALLEL", raising=False)
    monkeypatch.delenv("SNAPSHOT_KEY_NAMESPACE", raising=False)

    summary = await snapshots.run_snapshot_refresh(AS_OF)

    assert summary.dates == [date(2025, 11, 14), date(2025, 11, 13)]
    assert summary.total_targets == 8
    assert summary.ok
    key = "snapdash:SECTION3:OLD-SEASON-INVENTORY:HKMC:M:2025-11-14"
    assert fake_redis.ttls[key] == MULTI_DAY_SNAPSHOT_TTL_SECONDS


@pytest.mark.asyncio
async def test_cache_client_closed_when_setup_fails(monkeypatch, fake_redis):
    closed = []

    async def aclose():
        closed.append(True)

    def broken_classifier(settings):
        raise FileNotFoundError("stores.yml")

    fake_redis.aclose = aclose
    monkeypatch.setattr(snapshots, "load_dotenv", lambda: None)
    monkeypatch.setattr(snapshots, "create_cache_client_from_env", lambda: fake_redis)
    monkeypatch.setattr(snapshots, "build_classifier", broken_classifier)

    with pytest.raises(FileNotFoundError):
        await snapshots.run_snapshot_refresh(AS_OF)
    assert closed == [True]
