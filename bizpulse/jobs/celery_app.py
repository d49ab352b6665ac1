"""Celery configuration for scheduled jobs."""

from __future__ import annotations

import os

from celery import Celery
from celery.schedules import crontab

from bizpulse.utils.dates import timezone_name

broker_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")
backend_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")

celery_app = Celery(
    "bizpulse",
    broker=broker_url,
    backend=backend_url,
    include=["bizpulse.jobs.daily", "bizpulse.jobs.weekly"],
)
celery_app.conf.timezone = timezone_name()
celery_app.conf.beat_schedule = {
    "daily-snapshots": {
        "task": "bizpulse.jobs.daily.run_daily_snapshots",
        "schedule": crontab(hour=int(os.environ.get("SNAPSHOT_HOUR", "2")), minute=0),
    },
    "weekly-snapshot-cleanup": {
        "task": "bizpulse.jobs.weekly.run_cleanup",
        "schedule": crontab(day_of_week="sun", hour=int(os.environ.get("SNAPSHOT_HOUR", "2")), minute=30),
    },
    "weekly-reports": {
        "task": "bizpulse.jobs.weekly.run_weekly_reports",
        "schedule": crontab(day_of_week="mon", hour=int(os.environ.get("REPORT_HOUR", "7")), minute=0),
    },
}


@celery_app.task(name="bizpulse.jobs.daily.run_daily_snapshots")
def run_daily_snapshots_task():  # pragma: no cover - executed by worker
    import asyncio

    from bizpulse.jobs.daily import run_daily_snapshots

    return asyncio.run(run_daily_snapshots())


@celery_app.task(name="bizpulse.jobs.weekly.run_weekly_reports")
def run_weekly_reports_task():  # pragma: no cover - executed by worker
    import asyncio

    from bizpulse.jobs.weekly import run_weekly_reports

    return asyncio.run(run_weekly_reports())


@celery_app.task(name="bizpulse.jobs.weekly.run_cleanup")
def run_cleanup_task():  # pragma: no cover - executed by worker
    import asyncio

    from bizpulse.jobs.weekly import run_cleanup

    return asyncio.run(run_cleanup())
