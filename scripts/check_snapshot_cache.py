"""Report which old-season snapshots are cached for a date."""

from __future__ import annotations

import asyncio
import sys

from dotenv import load_dotenv

from snapdash.cache.client import create_cache_client_from_env
from snapdash.cache.store import SnapshotStore
from snapdash.config import Settings
from snapdash.jobs.snapshots import OLD_SEASON_SECTION
from snapdash.schemas import OLD_SEASON_CLOTHES_RESOURCE, OLD_SEASON_RESOURCE
from snapdash.utils.dates import format_date, parse_iso_date, yesterday_in_tz


async def main() -> None:
    load_dotenv()
    settings = Settings.from_env()
    as_of = parse_iso_date(sys.argv[1]) if len(sys.argv) > 1 else yesterday_in_tz()
    client = create_cache_client_from_env()
    store = SnapshotStore(client)
    missing = 0
    try:
        for region in settings.snapshot_regions:
            for brand in settings.snapshot_brands:
                for resource in (OLD_SEASON_RESOURCE, OLD_SEASON_CLOTHES_RESOURCE):
                    key = store.key(OLD_SEASON_SECTION, resource, region, brand, as_of)
                    snapshot = await store.get(OLD_SEASON_SECTION, resource, region, brand, as_of)
                    if snapshot is None:
                        missing += 1
                        print(f"MISS {key}")
                        continue
                    ttl = await client.ttl(key)
                    print(
                        f"HIT  {key} {snapshot.compressed_bytes / 1024:.2f} KB "
                        f"generated {snapshot.envelope.generated_at.isoformat()} ttl {ttl}s"
                    )
    finally:
        await client.aclose()
    print(f"{format_date(as_of)}: {missing} missing")
    if missing:
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
