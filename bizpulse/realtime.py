"""Push channel for live dashboard updates."""

from __future__ import annotations

import asyncio
import logging
import os
from collections import defaultdict
from datetime import date
from typing import Any

from fastapi.encoders import jsonable_encoder

from bizpulse.logic.analytics import AnalyticsService
from bizpulse.logic.results import Invalid

logger = logging.getLogger(__name__)

REFRESH_INTERVAL = float(os.environ.get("REALTIME_INTERVAL", 60))
QUEUE_SIZE = 10


class AnalyticsBroadcaster:
    """Fan-out of analytics payloads to per-user subscriber queues."""

    def __init__(self, queue_size: int = QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)

    def subscribe(self, user_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers[user_id].add(queue)
        logger.info("Realtime subscriber added for %s", user_id)
        return queue

    def unsubscribe(self, user_id: str, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(user_id)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[user_id]

    def users(self) -> list[str]:
        return sorted(self._subscribers)

    async def publish(self, user_id: str, payload: dict[str, Any]) -> int:
        """Queue ``payload`` for every subscriber of ``user_id``; slow consumers lose their oldest item."""
        delivered = 0
        for queue in list(self._subscribers.get(user_id, ())):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(payload)
            delivered += 1
        return delivered


async def refresh_subscribers(
    broadcaster: AnalyticsBroadcaster, service: AnalyticsService, today: date | None = None
) -> int:
    published = 0
    for user_id in broadcaster.users():
        result = await service.get_overview(user_id, today=today)
        if isinstance(result, Invalid):
            logger.info("No realtime update for %s: %s", user_id, result.code)
            continue
        published += await broadcaster.publish(
            user_id, {"type": "overview", "data": jsonable_encoder(result.value)}
        )
    return published


async def run_refresh_loop(
    broadcaster: AnalyticsBroadcaster,
    service: AnalyticsService,
    stop_event: asyncio.Event,
    interval: float = REFRESH_INTERVAL,
) -> None:
    while not stop_event.is_set():
        try:
            await refresh_subscribers(broadcaster, service)
        except Exception:
            logger.exception("Realtime refresh failed")
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            continue
