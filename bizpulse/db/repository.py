"""Data access for analytics.

Every public method is a coroutine that runs its synchronous SQLAlchemy work
in the default executor, so request handlers never block the event loop on
database I/O. Results come back as frozen model objects.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Iterable, Sequence, TypeVar

from sqlalchemy import and_, delete, func, insert, or_, select
from sqlalchemy.engine import Engine

from bizpulse.db.tables import (
    analytics_snapshots,
    business_reviews,
    business_view_logs,
    businesses,
    favorite_businesses,
    sends,
    users,
)
from bizpulse.models import (
    AnalyticsSnapshot,
    Business,
    BusinessStatus,
    FavoriteEvent,
    Platform,
    ReviewEvent,
    User,
    ViewEvent,
)
from bizpulse.utils.dates import day_start, next_day_start, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class DailyCounts:
    """Grouped per-business counts for a single calendar day."""

    business_ids: list[int] = field(default_factory=list)
    views: dict[int, int] = field(default_factory=dict)
    reviews: dict[int, int] = field(default_factory=dict)
    favorites: dict[int, int] = field(default_factory=dict)
    ratings: dict[int, float] = field(default_factory=dict)


@dataclass(slots=True)
class WindowTotals:
    views: int = 0
    reviews: int = 0
    favorites: int = 0
    average_rating: float | None = None


def _business(row: Any) -> Business:
    return Business(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        category=row.category,
        town=row.town,
        status=row.status,
    )


def _snapshot(row: Any) -> AnalyticsSnapshot:
    return AnalyticsSnapshot(
        id=row.id,
        business_id=row.business_id,
        snapshot_date=row.snapshot_date,
        total_views=row.total_views,
        total_reviews=row.total_reviews,
        total_favorites=row.total_favorites,
        average_rating=row.average_rating,
        engagement_score=row.engagement_score,
        created_at=row.created_at,
    )


def _window(column, start: date | None, end: date | None) -> list:
    clauses = []
    if start is not None:
        clauses.append(column >= day_start(start))
    if end is not None:
        clauses.append(column < next_day_start(end))
    return clauses


class AnalyticsRepository:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    async def _run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        call = functools.partial(fn, *args, **kwargs)
        return await asyncio.get_running_loop().run_in_executor(None, call)

    # users and businesses

    async def get_user(self, user_id: str) -> User | None:
        return await self._run(self._get_user, user_id)

    def _get_user(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(users).where(users.c.id == user_id)).first()
        if row is None:
            return None
        return User(id=row.id, email=row.email, tier=row.tier, email_reports=bool(row.email_reports))

    async def get_report_recipients(self) -> list[User]:
        return await self._run(self._get_report_recipients)

    def _get_report_recipients(self) -> list[User]:
        with self.engine.connect() as conn:
            rows = conn.execute(select(users).where(users.c.email_reports.is_(True)).order_by(users.c.id)).all()
        return [User(id=r.id, email=r.email, tier=r.tier, email_reports=True) for r in rows]

    async def get_business(self, business_id: int) -> Business | None:
        return await self._run(self._get_business, business_id)

    def _get_business(self, business_id: int) -> Business | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(businesses).where(businesses.c.id == business_id)).first()
        return _business(row) if row is not None else None

    async def get_user_businesses(self, user_id: str) -> list[Business]:
        """All of a user's businesses except soft-deleted ones."""
        return await self._run(self._get_user_businesses, user_id)

    def _get_user_businesses(self, user_id: str) -> list[Business]:
        stmt = (
            select(businesses)
            .where(businesses.c.user_id == user_id, businesses.c.status != BusinessStatus.DELETED.value)
            .order_by(businesses.c.id)
        )
        with self.engine.connect() as conn:
            return [_business(row) for row in conn.execute(stmt)]

    async def get_category_businesses(self, category: str) -> list[Business]:
        return await self._run(self._get_category_businesses, category)

    def _get_category_businesses(self, category: str) -> list[Business]:
        stmt = (
            select(businesses)
            .where(businesses.c.category == category, businesses.c.status == BusinessStatus.ACTIVE.value)
            .order_by(businesses.c.id)
        )
        with self.engine.connect() as conn:
            return [_business(row) for row in conn.execute(stmt)]

    async def get_competitor_candidates(self, owned: Sequence[Business]) -> list[Business]:
        """Active businesses sharing a (category, town) pair with any of ``owned``."""
        return await self._run(self._get_competitor_candidates, tuple(owned))

    def _get_competitor_candidates(self, owned: tuple[Business, ...]) -> list[Business]:
        pairs = {(b.category, b.town) for b in owned}
        if not pairs:
            return []
        stmt = (
            select(businesses)
            .where(
                businesses.c.status == BusinessStatus.ACTIVE.value,
                or_(*(and_(businesses.c.category == c, businesses.c.town == t) for c, t in sorted(pairs))),
            )
            .order_by(businesses.c.id)
        )
        with self.engine.connect() as conn:
            return [_business(row) for row in conn.execute(stmt)]

    # raw events

    async def get_business_view_logs(
        self,
        business_ids: Iterable[int],
        start: date | None = None,
        end: date | None = None,
        platform: str | None = None,
    ) -> tuple[ViewEvent, ...]:
        return await self._run(self._get_view_logs, tuple(business_ids), start, end, platform)

    def _get_view_logs(
        self, ids: tuple[int, ...], start: date | None, end: date | None, platform: str | None
    ) -> tuple[ViewEvent, ...]:
        if not ids:
            return ()
        col = business_view_logs.c
        stmt = select(business_view_logs).where(col.business_id.in_(ids), *_window(col.viewed_at, start, end))
        parsed = Platform.parse(platform)
        if parsed is not None and parsed is not Platform.ALL:
            stmt = stmt.where(col.platform == parsed.value)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt.order_by(col.viewed_at)).all()
        return tuple(
            ViewEvent(
                business_id=r.business_id,
                viewed_at=r.viewed_at,
                platform=r.platform,
                ip_address=r.ip_address,
                user_agent=r.user_agent,
            )
            for r in rows
        )

    async def get_business_reviews(
        self, business_ids: Iterable[int], start: date | None = None, end: date | None = None
    ) -> tuple[ReviewEvent, ...]:
        """Active reviews only."""
        return await self._run(self._get_reviews, tuple(business_ids), start, end)

    def _get_reviews(self, ids: tuple[int, ...], start: date | None, end: date | None) -> tuple[ReviewEvent, ...]:
        if not ids:
            return ()
        col = business_reviews.c
        stmt = select(business_reviews).where(
            col.business_id.in_(ids), col.is_active.is_(True), *_window(col.created_at, start, end)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt.order_by(col.created_at)).all()
        return tuple(
            ReviewEvent(business_id=r.business_id, created_at=r.created_at, rating=r.rating, is_active=True)
            for r in rows
        )

    async def get_business_favorites(
        self, business_ids: Iterable[int], start: date | None = None, end: date | None = None
    ) -> tuple[FavoriteEvent, ...]:
        return await self._run(self._get_favorites, tuple(business_ids), start, end)

    def _get_favorites(self, ids: tuple[int, ...], start: date | None, end: date | None) -> tuple[FavoriteEvent, ...]:
        if not ids:
            return ()
        col = favorite_businesses.c
        stmt = select(favorite_businesses).where(col.business_id.in_(ids), *_window(col.created_at, start, end))
        with self.engine.connect() as conn:
            rows = conn.execute(stmt.order_by(col.created_at)).all()
        return tuple(FavoriteEvent(business_id=r.business_id, created_at=r.created_at) for r in rows)

    # grouped counts

    async def get_window_totals(
        self, business_ids: Iterable[int], start: date | None = None, end: date | None = None
    ) -> dict[int, WindowTotals]:
        """Per-business totals over a window, one grouped query per metric."""
        return await self._run(self._get_window_totals, tuple(business_ids), start, end)

    def _get_window_totals(
        self, ids: tuple[int, ...], start: date | None, end: date | None
    ) -> dict[int, WindowTotals]:
        totals = {business_id: WindowTotals() for business_id in ids}
        if not ids:
            return totals
        views_col = business_view_logs.c
        reviews_col = business_reviews.c
        favorites_col = favorite_businesses.c
        with self.engine.connect() as conn:
            view_rows = conn.execute(
                select(views_col.business_id, func.count())
                .where(views_col.business_id.in_(ids), *_window(views_col.viewed_at, start, end))
                .group_by(views_col.business_id)
            ).all()
            review_rows = conn.execute(
                select(reviews_col.business_id, func.count(), func.avg(reviews_col.rating))
                .where(
                    reviews_col.business_id.in_(ids),
                    reviews_col.is_active.is_(True),
                    *_window(reviews_col.created_at, start, end),
                )
                .group_by(reviews_col.business_id)
            ).all()
            favorite_rows = conn.execute(
                select(favorites_col.business_id, func.count())
                .where(favorites_col.business_id.in_(ids), *_window(favorites_col.created_at, start, end))
                .group_by(favorites_col.business_id)
            ).all()
        for business_id, count in view_rows:
            totals[business_id].views = int(count)
        for business_id, count, average in review_rows:
            totals[business_id].reviews = int(count)
            totals[business_id].average_rating = float(average) if average is not None else None
        for business_id, count in favorite_rows:
            totals[business_id].favorites = int(count)
        return totals

    async def get_daily_counts(self, snapshot_date: date) -> DailyCounts:
        return await self._run(self._get_daily_counts, snapshot_date)

    def _get_daily_counts(self, snapshot_date: date) -> DailyCounts:
        with self.engine.connect() as conn:
            ids = [
                row.id
                for row in conn.execute(
                    select(businesses.c.id)
                    .where(businesses.c.status == BusinessStatus.ACTIVE.value)
                    .order_by(businesses.c.id)
                )
            ]
        totals = self._get_window_totals(tuple(ids), snapshot_date, snapshot_date)
        counts = DailyCounts(business_ids=ids)
        for business_id, window in totals.items():
            counts.views[business_id] = window.views
            counts.reviews[business_id] = window.reviews
            counts.favorites[business_id] = window.favorites
            if window.average_rating is not None:
                counts.ratings[business_id] = window.average_rating
        return counts

    # snapshots

    async def get_snapshot(self, business_id: int, snapshot_date: date) -> AnalyticsSnapshot | None:
        return await self._run(self._get_snapshot, business_id, snapshot_date)

    def _get_snapshot(self, business_id: int, snapshot_date: date) -> AnalyticsSnapshot | None:
        col = analytics_snapshots.c
        with self.engine.connect() as conn:
            row = conn.execute(
                select(analytics_snapshots).where(col.business_id == business_id, col.snapshot_date == snapshot_date)
            ).first()
        return _snapshot(row) if row is not None else None

    async def get_snapshot_business_ids(self, snapshot_date: date) -> set[int]:
        return await self._run(self._get_snapshot_business_ids, snapshot_date)

    def _get_snapshot_business_ids(self, snapshot_date: date) -> set[int]:
        col = analytics_snapshots.c
        with self.engine.connect() as conn:
            return set(conn.execute(select(col.business_id).where(col.snapshot_date == snapshot_date)).scalars())

    async def get_snapshots(self, business_id: int, start: date, end: date) -> list[AnalyticsSnapshot]:
        return await self._run(self._get_snapshots, business_id, start, end)

    def _get_snapshots(self, business_id: int, start: date, end: date) -> list[AnalyticsSnapshot]:
        col = analytics_snapshots.c
        stmt = (
            select(analytics_snapshots)
            .where(col.business_id == business_id, col.snapshot_date >= start, col.snapshot_date <= end)
            .order_by(col.snapshot_date)
        )
        with self.engine.connect() as conn:
            return [_snapshot(row) for row in conn.execute(stmt)]

    async def insert_snapshot(self, snapshot: AnalyticsSnapshot) -> AnalyticsSnapshot:
        """Insert one snapshot in its own transaction.

        Raises ``IntegrityError`` when a row for the same business and date
        already exists.
        """
        return await self._run(self._insert_snapshot, snapshot)

    def _insert_snapshot(self, snapshot: AnalyticsSnapshot) -> AnalyticsSnapshot:
        values = {
            "business_id": snapshot.business_id,
            "snapshot_date": snapshot.snapshot_date,
            "total_views": snapshot.total_views,
            "total_reviews": snapshot.total_reviews,
            "total_favorites": snapshot.total_favorites,
            "average_rating": snapshot.average_rating,
            "engagement_score": snapshot.engagement_score,
            "created_at": snapshot.created_at,
        }
        with self.engine.begin() as conn:
            result = conn.execute(insert(analytics_snapshots).values(**values))
            new_id = result.inserted_primary_key[0]
        return AnalyticsSnapshot(id=new_id, **values)

    async def delete_snapshots_before(self, cutoff: date) -> int:
        return await self._run(self._delete_snapshots_before, cutoff)

    def _delete_snapshots_before(self, cutoff: date) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(delete(analytics_snapshots).where(analytics_snapshots.c.snapshot_date < cutoff))
        return int(result.rowcount or 0)

    # report bookkeeping

    async def record_send(self, user_id: str, kind: str, status: str, ts: datetime | None = None) -> None:
        await self._run(self._record_send, user_id, kind, status, ts or utc_now())

    def _record_send(self, user_id: str, kind: str, status: str, ts: datetime) -> None:
        with self.engine.begin() as conn:
            conn.execute(insert(sends).values(ts=ts, kind=kind, user_id=user_id, status=status))
