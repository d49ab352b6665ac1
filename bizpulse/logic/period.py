"""Period aggregation over raw view, review and favorite events."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Iterable

from bizpulse.logic.signals import engagement_score, mean_rating
from bizpulse.models import FavoriteEvent, ReviewEvent, ViewEvent
from bizpulse.utils.dates import as_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PeriodData:
    start: date
    end: date
    total_views: int = 0
    total_reviews: int = 0
    total_favorites: int = 0
    average_rating: float | None = None
    engagement_score: float = 0.0
    average_views_per_day: float = 0.0
    average_reviews_per_day: float = 0.0
    average_favorites_per_day: float = 0.0
    peak_day_views: int = 0
    peak_day_date: date | None = None
    low_day_views: int = 0
    low_day_date: date | None = None
    period_days: int = 1

    @property
    def rating_or_zero(self) -> float:
        return self.average_rating if self.average_rating is not None else 0.0

    @classmethod
    def empty(cls, start: date, end: date) -> PeriodData:
        return cls(start=start, end=end, period_days=period_days(start, end))


def period_days(start: date, end: date) -> int:
    return max(1, (end - start).days)


def _within(value: date, start: date, end: date) -> bool:
    return start <= value <= end


def compute_period_data(
    views: Iterable[ViewEvent],
    reviews: Iterable[ReviewEvent],
    favorites: Iterable[FavoriteEvent],
    start: date,
    end: date,
) -> PeriodData:
    start, end = as_date(start), as_date(end)
    view_days = [v.viewed_at.date() for v in views if _within(v.viewed_at.date(), start, end)]
    ratings = [r.rating for r in reviews if r.is_active and _within(r.created_at.date(), start, end)]
    total_favorites = sum(1 for f in favorites if _within(f.created_at.date(), start, end))

    total_views = len(view_days)
    total_reviews = len(ratings)
    days = period_days(start, end)

    peak_views = low_views = 0
    peak_date = low_date = None
    if view_days:
        per_day = sorted(Counter(view_days).items())
        peak_date, peak_views = max(per_day, key=lambda item: item[1])
        low_date, low_views = min(per_day, key=lambda item: item[1])

    return PeriodData(
        start=start,
        end=end,
        total_views=total_views,
        total_reviews=total_reviews,
        total_favorites=total_favorites,
        average_rating=mean_rating(ratings),
        engagement_score=engagement_score(total_reviews, total_favorites, total_views),
        average_views_per_day=total_views / days,
        average_reviews_per_day=total_reviews / days,
        average_favorites_per_day=total_favorites / days,
        peak_day_views=peak_views,
        peak_day_date=peak_date,
        low_day_views=low_views,
        low_day_date=low_date,
        period_days=days,
    )


def safe_compute_period_data(
    views: Iterable[ViewEvent],
    reviews: Iterable[ReviewEvent],
    favorites: Iterable[FavoriteEvent],
    start: date,
    end: date,
    *,
    log: logging.Logger | logging.LoggerAdapter = logger,
) -> PeriodData:
    """Aggregate a period, degrading to an all-zero period on unexpected faults."""
    try:
        return compute_period_data(views, reviews, favorites, start, end)
    except Exception:
        log.exception("Period aggregation failed for %s..%s; returning zeros", start, end)
        return PeriodData.empty(as_date(start), as_date(end))
