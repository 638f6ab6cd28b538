"""Redis client construction for the snapshot cache."""

from __future__ import annotations

import os

from redis.asyncio import Redis, from_url


class CacheConfigError(RuntimeError):
    pass


def cache_url_from_env() -> str:
    url = os.environ.get("SNAPSHOT_REDIS_URL") or os.environ.get("REDIS_URL")
    if not url:
        raise CacheConfigError("Set SNAPSHOT_REDIS_URL or REDIS_URL to enable the snapshot cache")
    return url


def create_cache_client(url: str) -> Redis:
    return from_url(url, decode_responses=True)


def create_cache_client_from_env() -> Redis:
    return create_cache_client(cache_url_from_env())
