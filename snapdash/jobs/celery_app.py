"""Celery configuration for the scheduled snapshot refresh."""

from __future__ import annotations

import os

from celery import Celery
from celery.schedules import crontab

from snapdash.utils.dates import timezone_name

broker_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")
backend_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")

celery_app = Celery("snapdash", broker=broker_url, backend=backend_url, include=["snapdash.jobs.snapshots"])
celery_app.conf.timezone = timezone_name()
celery_app.conf.beat_schedule = {
    "snapshot-refresh": {
        "task": "snapdash.jobs.snapshots.run_snapshot_refresh",
        "schedule": crontab(hour=int(os.environ.get("SNAPSHOT_HOUR", "5")), minute=int(os.environ.get("SNAPSHOT_MINUTE", "0"))),
    },
}


@celery_app.task(name="snapdash.jobs.snapshots.run_snapshot_refresh")
def run_snapshot_refresh_task():  # pragma: no cover - executed by worker
    import asyncio

    from snapdash.jobs.snapshots import run_snapshot_refresh

    summary = asyncio.run(run_snapshot_refresh())
    return {"ok": summary.ok, "stats": summary.stats()}
