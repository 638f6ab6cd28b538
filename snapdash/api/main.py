"""FastAPI application serving cached dashboard reports."""

from __future__ import annotations

import asyncio
import functools
import logging
from datetime import date
from typing import Any

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel

from snapdash.cache.client import CacheConfigError, create_cache_client_from_env
from snapdash.cache.store import CacheUnavailable, FALLBACK_TTL_SECONDS, SnapshotStore
from snapdash.config import Settings
from snapdash.jobs.snapshots import OLD_SEASON_SECTION, build_classifier
from snapdash.logic.old_season import InventoryAgingClassifier
from snapdash.schemas import OLD_SEASON_CLOTHES_RESOURCE, OLD_SEASON_RESOURCE, OldSeasonInventory
from snapdash.utils.dates import yesterday_in_tz

logger = logging.getLogger(__name__)

load_dotenv()

app = FastAPI(title="Snapdash Reports API")

CATEGORY_RESOURCES = {"all": OLD_SEASON_RESOURCE, "clothes": OLD_SEASON_CLOTHES_RESOURCE}


class OldSeasonResponse(BaseModel):
    cache: str
    data: OldSeasonInventory


class InvalidateRequest(BaseModel):
    region: str
    brand: str


class InvalidateResponse(BaseModel):
    region: str
    brand: str
    deleted: int


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


@functools.lru_cache(maxsize=1)
def get_store() -> SnapshotStore | None:
    try:
        return SnapshotStore(create_cache_client_from_env())
    except CacheConfigError as exc:
        logger.warning("Snapshot cache disabled: %s", exc)
        return None


@functools.lru_cache(maxsize=1)
def get_classifier() -> InventoryAgingClassifier:
    return build_classifier(get_settings())


@app.get("/section3/old-season-inventory", response_model=OldSeasonResponse)
async def old_season_inventory(
    region: str = Query(...),
    brand: str = Query(...),
    as_of: date | None = Query(None, alias="date"),
    category: str = Query("all"),
    store: SnapshotStore | None = Depends(get_store),
    classifier: InventoryAgingClassifier = Depends(get_classifier),
    settings: Settings = Depends(get_settings),
) -> OldSeasonResponse:
    resource = CATEGORY_RESOURCES.get(category.strip().lower())
    if resource is None:
        raise HTTPException(status_code=400, detail="category must be 'all' or 'clothes'")
    categories = settings.apparel_categories if resource == OLD_SEASON_CLOTHES_RESOURCE else None
    target = as_of or yesterday_in_tz()

    async def fetch(region: str, brand: str, as_of: date) -> OldSeasonInventory:
        loop = asyncio.get_running_loop()
        call = functools.partial(classifier.classify, region, brand, as_of, categories=categories)
        return await loop.run_in_executor(None, call)

    if store is None:
        return OldSeasonResponse(cache="bypass", data=await fetch(region, brand, target))
    payload, hit = await store.get_or_fill(
        OLD_SEASON_SECTION, resource, region, brand, target, fetch, ttl_seconds=FALLBACK_TTL_SECONDS
    )
    return OldSeasonResponse(cache="hit" if hit else "miss", data=_report(payload))


@app.post("/cache/invalidate", response_model=InvalidateResponse)
async def invalidate(
    payload: InvalidateRequest, store: SnapshotStore | None = Depends(get_store)
) -> InvalidateResponse:
    if store is None:
        raise HTTPException(status_code=503, detail="Snapshot cache is not configured")
    try:
        deleted = await store.invalidate_by_region_brand(payload.region, payload.brand)
    except CacheUnavailable as exc:
        logger.error("Invalidation failed: %s", exc)
        raise HTTPException(status_code=503, detail="Snapshot cache unavailable") from exc
    return InvalidateResponse(region=payload.region.strip().upper(), brand=payload.brand.strip().upper(), deleted=deleted)


def _report(payload: Any) -> OldSeasonInventory:
    if isinstance(payload, OldSeasonInventory):
        return payload
    return OldSeasonInventory.model_validate(payload)
