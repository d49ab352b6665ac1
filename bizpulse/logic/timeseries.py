"""Gap-free daily series and snapshot roll-ups."""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Sequence

import pandas as pd

from bizpulse.models import AnalyticsSnapshot, ReviewEvent, ViewEvent
from bizpulse.utils.dates import as_date, iter_days


@dataclass(frozen=True, slots=True)
class ViewsPoint:
    date: date
    views: int


@dataclass(frozen=True, slots=True)
class ReviewsPoint:
    date: date
    reviews: int
    average_rating: float


@dataclass(frozen=True, slots=True)
class TrendBucket:
    period_start: date
    period_end: date
    label: str
    total_views: int
    total_reviews: int
    total_favorites: int
    average_rating: float
    average_engagement: float


def build_views_time_series(views: Iterable[ViewEvent], start: date, end: date) -> list[ViewsPoint]:
    start, end = as_date(start), as_date(end)
    counts = Counter(v.viewed_at.date() for v in views)
    return [ViewsPoint(date=day, views=counts.get(day, 0)) for day in iter_days(start, end)]


def build_reviews_time_series(reviews: Iterable[ReviewEvent], start: date, end: date) -> list[ReviewsPoint]:
    start, end = as_date(start), as_date(end)
    by_day: dict[date, list[int]] = defaultdict(list)
    for review in reviews:
        by_day[review.created_at.date()].append(review.rating)
    points = []
    for day in iter_days(start, end):
        ratings = by_day.get(day, [])
        average = sum(ratings) / len(ratings) if ratings else 0.0
        points.append(ReviewsPoint(date=day, reviews=len(ratings), average_rating=average))
    return points


def aggregate_snapshots(snapshots: Sequence[AnalyticsSnapshot], aggregation: str) -> list[TrendBucket]:
    """Roll daily snapshots up into weekly (Monday start) or monthly buckets."""
    aggregation = aggregation.lower()
    if aggregation not in {"weekly", "monthly"}:
        raise ValueError(f"Unsupported aggregation type: {aggregation}")
    if not snapshots:
        return []
    frame = pd.DataFrame(
        [
            {
                "snapshot_date": pd.Timestamp(s.snapshot_date),
                "total_views": s.total_views,
                "total_reviews": s.total_reviews,
                "total_favorites": s.total_favorites,
                "average_rating": s.average_rating,
                "engagement_score": s.engagement_score,
            }
            for s in snapshots
        ]
    )
    for column in ("average_rating", "engagement_score"):
        frame[column] = pd.to_numeric(frame[column], errors="coerce")
    if aggregation == "weekly":
        frame["bucket"] = frame["snapshot_date"].dt.to_period("W-SUN").dt.start_time
    else:
        frame["bucket"] = frame["snapshot_date"].dt.to_period("M").dt.start_time
    grouped = (
        frame.groupby("bucket")
        .agg(
            total_views=("total_views", "sum"),
            total_reviews=("total_reviews", "sum"),
            total_favorites=("total_favorites", "sum"),
            average_rating=("average_rating", "mean"),
            average_engagement=("engagement_score", "mean"),
        )
        .reset_index()
        .sort_values("bucket")
    )
    grouped[["average_rating", "average_engagement"]] = grouped[["average_rating", "average_engagement"]].fillna(0.0)

    buckets = []
    for row in grouped.itertuples(index=False):
        start = row.bucket.date()
        if aggregation == "weekly":
            end = start + timedelta(days=6)
            label = f"Week of {start.strftime('%b %d')}"
        else:
            end = (row.bucket + pd.offsets.MonthEnd(0)).date()
            label = start.strftime("%b %Y")
        buckets.append(
            TrendBucket(
                period_start=start,
                period_end=end,
                label=label,
                total_views=int(row.total_views),
                total_reviews=int(row.total_reviews),
                total_favorites=int(row.total_favorites),
                average_rating=float(row.average_rating),
                average_engagement=float(row.average_engagement),
            )
        )
    return buckets
