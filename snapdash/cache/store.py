"""Redis-backed snapshot store with a per region/brand invalidation index."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Awaitable, Callable

from pydantic import BaseModel
from redis.asyncio import Redis
from redis.exceptions import RedisError

from snapdash.cache import codec
from snapdash.cache.keys import DATE_PART_RE, InvalidKeyPart, index_key, namespace, normalize_part, snapshot_key
from snapdash.schemas import schema_for
from snapdash.utils.dates import utc_now

logger = logging.getLogger(__name__)

FALLBACK_TTL_SECONDS = 60 * 60 * 24
SNAPSHOT_TTL_SECONDS = 60 * 60 * 72
MULTI_DAY_SNAPSHOT_TTL_SECONDS = 60 * 60 * 24 * 14
INDEX_BUFFER_SECONDS = 60 * 60

Fetch = Callable[[str, str, date], Awaitable[Any]]


class CacheUnavailable(RuntimeError):
    pass


@dataclass(slots=True)
class Snapshot:
    envelope: codec.SnapshotEnvelope[Any]
    compressed_bytes: int

    @property
    def payload(self) -> Any:
        return self.envelope.payload


class SnapshotStore:
    def __init__(self, client: Redis, *, prefix: str | None = None) -> None:
        self.client = client
        self.prefix = prefix or namespace()

    def key(self, section: str, resource: str, region: str, brand: str, as_of: date | str) -> str:
        return snapshot_key(section, resource, region, brand, _as_date(as_of), prefix=self.prefix)

    def index_key(self, region: str, brand: str) -> str:
        return index_key(region, brand, prefix=self.prefix)

    async def get(
        self,
        section: str,
        resource: str,
        region: str,
        brand: str,
        as_of: date | str,
        payload_type: Any = None,
    ) -> Snapshot | None:
        key = self.key(section, resource, region, brand, as_of)
        try:
            raw = await self.client.get(key)
        except RedisError as exc:
            logger.error("Snapshot read failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None
        if payload_type is None:
            payload_type = schema_for(resource) or Any
        try:
            envelope = codec.decode(raw, payload_type)
        except codec.CorruptSnapshot as exc:
            logger.warning("Discarding corrupt snapshot %s: %s", key, exc)
            return None
        return Snapshot(envelope, len(raw))

    async def set(
        self,
        section: str,
        resource: str,
        region: str,
        brand: str,
        as_of: date | str,
        payload: Any,
        ttl_seconds: int = FALLBACK_TTL_SECONDS,
    ) -> int | None:
        """Write a snapshot and register it in the region/brand index.

        Returns the number of encoded bytes written, or ``None`` when the
        cache could not be reached. Index failures are logged only.
        """
        as_of = _as_date(as_of)
        key = self.key(section, resource, region, brand, as_of)
        envelope = codec.SnapshotEnvelope[Any](
            section=section.strip().upper(),
            resource=resource.strip(),
            region=region.strip().upper(),
            brand=brand.strip().upper(),
            date=as_of,
            generated_at=utc_now(),
            payload=payload.model_dump(mode="json") if isinstance(payload, BaseModel) else payload,
        )
        encoded = codec.encode(envelope)
        try:
            await self.client.set(key, encoded, ex=ttl_seconds)
        except RedisError as exc:
            logger.error("Snapshot write failed for %s: %s", key, exc)
            return None
        logger.info("Saved snapshot %s (%.2f KB, ttl=%ss)", key, len(encoded) / 1024, ttl_seconds)

        index = self.index_key(region, brand)
        try:
            await self.client.sadd(index, key)
            # The index must outlive its longest-lived member, so its TTL is only extended.
            index_ttl = ttl_seconds + INDEX_BUFFER_SECONDS
            if await self.client.ttl(index) < index_ttl:
                await self.client.expire(index, index_ttl)
        except RedisError as exc:
            logger.warning("Index update failed for %s -> %s: %s", index, key, exc)
        return len(encoded)

    async def invalidate_by_region_brand(self, region: str, brand: str) -> int:
        index = self.index_key(region, brand)
        try:
            members = await self.client.smembers(index)
            if not members:
                logger.info("No cached keys indexed under %s", index)
                return 0
            keys = sorted(_text(member) for member in members)
            await self.client.delete(*keys)
            await self.client.delete(index)
        except RedisError as exc:
            raise CacheUnavailable(f"Could not invalidate {index}: {exc}") from exc
        logger.info("Invalidated %d keys under %s", len(keys), index)
        return len(keys)

    async def get_or_fill(
        self,
        section: str,
        resource: str,
        region: str,
        brand: str,
        as_of: date | str,
        fetch: Fetch,
        *,
        ttl_seconds: int = FALLBACK_TTL_SECONDS,
        payload_type: Any = None,
    ) -> tuple[Any, bool]:
        """Return ``(payload, hit)``; a miss runs ``fetch`` and stores the result."""
        as_of = _as_date(as_of)
        snapshot = await self.get(section, resource, region, brand, as_of, payload_type)
        if snapshot is not None:
            return snapshot.payload, True
        payload = await fetch(region, brand, as_of)
        await self.set(section, resource, region, brand, as_of, payload, ttl_seconds)
        return payload, False


def _as_date(value: date | str) -> date:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DATE_PART_RE.match(value.strip()):
        raise InvalidKeyPart(f"Expected a YYYY-MM-DD date, got {value!r}")
    return date.fromisoformat(normalize_part(value))


def _text(value: bytes | str) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value
