"""Celery configuration for the scheduled snapshot."""

from __future__ import annotations

import logging
import os

from celery import Celery
from celery.schedules import crontab

from instock.utils.dates import timezone_name

logger = logging.getLogger(__name__)

broker_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")
backend_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")

celery_app = Celery("instock", broker=broker_url, backend=backend_url, include=["instock.jobs.snapshot"])
celery_app.conf.timezone = timezone_name()
celery_app.conf.beat_schedule = {
    "daily-inventory-snapshot": {
        "task": "instock.jobs.snapshot.run_snapshot",
        "schedule": crontab(
            hour=int(os.environ.get("SNAPSHOT_HOUR", "6")),
            minute=int(os.environ.get("SNAPSHOT_MINUTE", "0")),
        ),
    },
}


@celery_app.task(name="instock.jobs.snapshot.run_snapshot")
def run_snapshot_task() -> dict[str, object]:
    import asyncio

    from instock.config import Settings
    from instock.errors import SnapshotError
    from instock.jobs.snapshot import error_summary, run_snapshot

    try:
        summary = asyncio.run(run_snapshot(Settings.from_env()))
    except SnapshotError as exc:
        logger.error("Snapshot run failed: %s", exc)
        summary = error_summary(exc)
    except Exception as exc:
        logger.exception("Snapshot run crashed")
        summary = error_summary(exc)
    return summary.to_dict()
