"""Daily snapshot job."""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from dotenv import load_dotenv

from bizpulse.db.repository import AnalyticsRepository
from bizpulse.db.session import create_engine_from_env
from bizpulse.logic.snapshots import SnapshotService
from bizpulse.utils.dates import yesterday_utc

logger = logging.getLogger(__name__)


async def run_daily_snapshots(as_of: date | None = None, stop_event: asyncio.Event | None = None) -> int:
    load_dotenv()
    engine = create_engine_from_env()
    target_date = as_of or yesterday_utc()
    service = SnapshotService(AnalyticsRepository(engine))
    created = await service.create_daily_snapshots(target_date, stop_event=stop_event)
    logger.info("Daily snapshot job finished for %s: %s created", target_date, created)
    return created


if __name__ == "__main__":
    from bizpulse.utils.logs import configure_logging

    configure_logging()
    asyncio.run(run_daily_snapshots())
