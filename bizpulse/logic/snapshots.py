"""Daily analytics snapshots and the growth rates derived from them."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Sequence

from sqlalchemy.exc import IntegrityError

from bizpulse.db.repository import AnalyticsRepository, DailyCounts
from bizpulse.logic import constants
from bizpulse.logic.signals import percent_change
from bizpulse.logic.timeseries import TrendBucket, aggregate_snapshots
from bizpulse.models import AnalyticsSnapshot
from bizpulse.utils.dates import today_utc, utc_now, yesterday_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GrowthRateData:
    business_id: int
    current_start: date
    current_end: date
    previous_start: date
    previous_end: date
    current_views: int
    previous_views: int
    current_reviews: int
    previous_reviews: int
    current_favorites: int
    previous_favorites: int
    current_average_rating: float
    previous_average_rating: float
    current_engagement: float
    previous_engagement: float
    views_growth_rate: float
    reviews_growth_rate: float
    favorites_growth_rate: float
    rating_growth_rate: float
    engagement_growth_rate: float


def snapshot_engagement(views: int, reviews: int, favorites: int) -> float | None:
    if views == 0:
        return None
    return (reviews + favorites) * 100.0 / views


def _mean_present(values: Sequence[float | None]) -> float:
    present = [v for v in values if v is not None]
    return sum(present) / len(present) if present else 0.0


def _build_snapshot(counts: DailyCounts, business_id: int, snapshot_date: date) -> AnalyticsSnapshot:
    views = counts.views.get(business_id, 0)
    reviews = counts.reviews.get(business_id, 0)
    favorites = counts.favorites.get(business_id, 0)
    return AnalyticsSnapshot(
        business_id=business_id,
        snapshot_date=snapshot_date,
        total_views=views,
        total_reviews=reviews,
        total_favorites=favorites,
        average_rating=counts.ratings.get(business_id),
        engagement_score=snapshot_engagement(views, reviews, favorites),
        created_at=utc_now(),
    )


class SnapshotService:
    def __init__(self, repo: AnalyticsRepository) -> None:
        self.repo = repo

    async def create_daily_snapshots(
        self,
        snapshot_date: date | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> int:
        """Snapshot every active business for ``snapshot_date`` (default yesterday).

        Businesses that already have a snapshot for the date are skipped, so
        reruns are harmless. Returns the number of snapshots created.
        """
        snapshot_date = snapshot_date or yesterday_utc()
        counts = await self.repo.get_daily_counts(snapshot_date)
        existing = await self.repo.get_snapshot_business_ids(snapshot_date)
        pending = [business_id for business_id in counts.business_ids if business_id not in existing]
        logger.info(
            "Creating snapshots for %s: %s active, %s already present",
            snapshot_date,
            len(counts.business_ids),
            len(existing),
        )

        created = 0
        for business_id in pending:
            if stop_event is not None and stop_event.is_set():
                logger.warning("Snapshot run for %s cancelled after %s snapshots", snapshot_date, created)
                break
            try:
                await self.repo.insert_snapshot(_build_snapshot(counts, business_id, snapshot_date))
            except IntegrityError:
                logger.info("Snapshot for business %s on %s written concurrently; skipping", business_id, snapshot_date)
                continue
            except Exception:
                logger.exception("Failed to create snapshot for business %s on %s", business_id, snapshot_date)
                continue
            created += 1

        logger.info("Created %s snapshots for %s", created, snapshot_date)
        return created

    async def create_business_snapshot(self, business_id: int, snapshot_date: date) -> AnalyticsSnapshot | None:
        existing = await self.repo.get_snapshot(business_id, snapshot_date)
        if existing is not None:
            return existing
        business = await self.repo.get_business(business_id)
        if business is None:
            logger.warning("Cannot snapshot unknown business %s", business_id)
            return None
        totals = (await self.repo.get_window_totals([business_id], snapshot_date, snapshot_date))[business_id]
        snapshot = AnalyticsSnapshot(
            business_id=business_id,
            snapshot_date=snapshot_date,
            total_views=totals.views,
            total_reviews=totals.reviews,
            total_favorites=totals.favorites,
            average_rating=totals.average_rating,
            engagement_score=snapshot_engagement(totals.views, totals.reviews, totals.favorites),
            created_at=utc_now(),
        )
        try:
            return await self.repo.insert_snapshot(snapshot)
        except IntegrityError:
            return await self.repo.get_snapshot(business_id, snapshot_date)

    async def calculate_growth_rates(
        self,
        business_id: int,
        current_days: int = constants.DEFAULT_GROWTH_RATE_DAYS,
        previous_days: int = constants.DEFAULT_GROWTH_RATE_DAYS,
        today: date | None = None,
    ) -> GrowthRateData:
        """Compare snapshot sums over two back-to-back windows ending today."""
        current_end = today or today_utc()
        current_start = current_end - timedelta(days=current_days - 1)
        previous_end = current_start - timedelta(days=1)
        previous_start = previous_end - timedelta(days=previous_days - 1)

        snapshots = await self.repo.get_snapshots(business_id, previous_start, current_end)
        current = [s for s in snapshots if s.snapshot_date >= current_start]
        previous = [s for s in snapshots if s.snapshot_date <= previous_end]

        current_views = sum(s.total_views for s in current)
        previous_views = sum(s.total_views for s in previous)
        current_reviews = sum(s.total_reviews for s in current)
        previous_reviews = sum(s.total_reviews for s in previous)
        current_favorites = sum(s.total_favorites for s in current)
        previous_favorites = sum(s.total_favorites for s in previous)
        current_rating = _mean_present([s.average_rating for s in current])
        previous_rating = _mean_present([s.average_rating for s in previous])
        current_engagement = _mean_present([s.engagement_score for s in current])
        previous_engagement = _mean_present([s.engagement_score for s in previous])

        return GrowthRateData(
            business_id=business_id,
            current_start=current_start,
            current_end=current_end,
            previous_start=previous_start,
            previous_end=previous_end,
            current_views=current_views,
            previous_views=previous_views,
            current_reviews=current_reviews,
            previous_reviews=previous_reviews,
            current_favorites=current_favorites,
            previous_favorites=previous_favorites,
            current_average_rating=current_rating,
            previous_average_rating=previous_rating,
            current_engagement=current_engagement,
            previous_engagement=previous_engagement,
            views_growth_rate=percent_change(current_views, previous_views),
            reviews_growth_rate=percent_change(current_reviews, previous_reviews),
            favorites_growth_rate=percent_change(current_favorites, previous_favorites),
            rating_growth_rate=percent_change(current_rating, previous_rating),
            engagement_growth_rate=percent_change(current_engagement, previous_engagement),
        )

    async def cleanup_old_snapshots(
        self, retention_days: int = constants.SNAPSHOT_RETENTION_DAYS, today: date | None = None
    ) -> int:
        cutoff = (today or today_utc()) - timedelta(days=retention_days)
        deleted = await self.repo.delete_snapshots_before(cutoff)
        logger.info("Deleted %s snapshots older than %s", deleted, cutoff)
        return deleted

    async def get_business_snapshots(self, business_id: int, start: date, end: date) -> list[AnalyticsSnapshot]:
        return await self.repo.get_snapshots(business_id, start, end)

    async def get_aggregated_trends(
        self, business_id: int, aggregation: str = "weekly", months: int = 12, today: date | None = None
    ) -> list[TrendBucket]:
        end = today or today_utc()
        start = end - timedelta(days=months * 30)
        snapshots = await self.repo.get_snapshots(business_id, start, end)
        return aggregate_snapshots(snapshots, aggregation)
