"""Request orchestration for client analytics.

Each public coroutine validates its input, fetches everything it needs in
batches through the repository, then hands immutable event collections to the
pure aggregators. Expected failures (bad input, missing or foreign
businesses, tier restrictions) come back as ``Invalid`` values; only genuine
faults raise.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path
from typing import Any

from itsdangerous import BadSignature, SignatureExpired

from bizpulse.db.repository import AnalyticsRepository
from bizpulse.logic import constants, export_csv
from bizpulse.logic.benchmarks import (
    CategoryBenchmark,
    CompetitorInsight,
    LeaderboardEntry,
    build_stats,
    category_benchmark,
    competitor_insights,
    rank_businesses,
)
from bizpulse.logic.charts import reviews_chart_payload, views_chart_payload
from bizpulse.logic.comparison import (
    ComparativeAnalysis,
    build_comparative_analysis,
    comparison_windows,
)
from bizpulse.logic.period import PeriodData, safe_compute_period_data
from bizpulse.logic.results import ErrorKind, Invalid, Ok, Result, first_invalid
from bizpulse.logic.signals import percent_change, performance_rating
from bizpulse.logic.snapshots import GrowthRateData, SnapshotService
from bizpulse.logic.timeseries import (
    ReviewsPoint,
    TrendBucket,
    ViewsPoint,
    build_reviews_time_series,
    build_views_time_series,
)
from bizpulse.logic.validation import (
    validate_business_ownership,
    validate_chart_request,
    validate_comparison_type,
    validate_days,
    validate_platform,
    validate_user_id,
)
from bizpulse.models import Business, BusinessStats, EventBundle
from bizpulse.utils.dates import today_utc
from bizpulse.utils.logs import request_logger
from bizpulse.utils.urls import DASHBOARD_TYPES, generate_share_token, load_share_token

logger = logging.getLogger(__name__)

BASIC_TIERS = {"basic", "standard", "premium"}
ADVANCED_TIERS = {"premium"}
AGGREGATIONS = ("weekly", "monthly")
MAX_TREND_MONTHS = 24


class FeatureGate:
    """Subscription-tier check backed by ``users.tier``."""

    def __init__(self, repo: AnalyticsRepository) -> None:
        self.repo = repo

    async def can_access(self, user_id: str, feature: str) -> bool:
        user = await self.repo.get_user(user_id)
        if user is None:
            return False
        tier = (user.tier or "").lower()
        if feature == constants.BASIC_ANALYTICS:
            return tier in BASIC_TIERS
        if feature == constants.ADVANCED_ANALYTICS:
            return tier in ADVANCED_TIERS
        return False


@dataclass(slots=True)
class BusinessAnalytics:
    business_id: int
    business_name: str
    category: str
    town: str
    total_views: int
    total_reviews: int
    total_favorites: int
    average_rating: float | None
    engagement_score: float
    performance_rating: str
    views_change_percent: float
    reviews_change_percent: float
    favorites_change_percent: float
    current_period: PeriodData
    previous_period: PeriodData
    growth: GrowthRateData | None = None


@dataclass(slots=True)
class Overview:
    user_id: str
    period_start: date
    period_end: date
    total_views: int
    total_reviews: int
    total_favorites: int
    average_rating: float | None
    businesses: list[BusinessAnalytics] = field(default_factory=list)
    views_series: list[ViewsPoint] = field(default_factory=list)
    reviews_series: list[ReviewsPoint] = field(default_factory=list)
    leaderboard: list[LeaderboardEntry] = field(default_factory=list)
    has_advanced_analytics: bool = False
    category_benchmark: CategoryBenchmark | None = None
    competitor_insights: list[CompetitorInsight] = field(default_factory=list)


@dataclass(slots=True)
class SharedDashboard:
    dashboard_type: str
    user_id: str
    business_id: int | None
    data: Any


def _windows(days: int, today: date) -> tuple[date, date, date, date]:
    current_end = today
    current_start = today - timedelta(days=days - 1)
    previous_end = current_start - timedelta(days=1)
    previous_start = previous_end - timedelta(days=days - 1)
    return current_start, current_end, previous_start, previous_end


def _business_analytics(
    business: Business, bundle: EventBundle, windows: tuple[date, date, date, date], log
) -> BusinessAnalytics:
    current_start, current_end, previous_start, previous_end = windows
    events = bundle.for_business(business.id)
    current = safe_compute_period_data(
        events.views, events.reviews, events.favorites, current_start, current_end, log=log
    )
    previous = safe_compute_period_data(
        events.views, events.reviews, events.favorites, previous_start, previous_end, log=log
    )
    return BusinessAnalytics(
        business_id=business.id,
        business_name=business.name,
        category=business.category,
        town=business.town,
        total_views=current.total_views,
        total_reviews=current.total_reviews,
        total_favorites=current.total_favorites,
        average_rating=current.average_rating,
        engagement_score=current.engagement_score,
        performance_rating=performance_rating(current.engagement_score, current.average_rating),
        views_change_percent=percent_change(current.total_views, previous.total_views),
        reviews_change_percent=percent_change(current.total_reviews, previous.total_reviews),
        favorites_change_percent=percent_change(current.total_favorites, previous.total_favorites),
        current_period=current,
        previous_period=previous,
    )


def _empty_business_analytics(business: Business, windows: tuple[date, date, date, date]) -> BusinessAnalytics:
    current = PeriodData.empty(windows[0], windows[1])
    previous = PeriodData.empty(windows[2], windows[3])
    return BusinessAnalytics(
        business_id=business.id,
        business_name=business.name,
        category=business.category,
        town=business.town,
        total_views=0,
        total_reviews=0,
        total_favorites=0,
        average_rating=None,
        engagement_score=0.0,
        performance_rating=performance_rating(0.0, None),
        views_change_percent=0.0,
        reviews_change_percent=0.0,
        favorites_change_percent=0.0,
        current_period=current,
        previous_period=previous,
    )


def _stats_from(item: BusinessAnalytics) -> BusinessStats:
    return BusinessStats(
        business_id=item.business_id,
        name=item.business_name,
        category=item.category,
        town=item.town,
        total_views=item.total_views,
        total_reviews=item.total_reviews,
        total_favorites=item.total_favorites,
        average_rating=item.average_rating,
        engagement_score=item.engagement_score,
    )


def primary_category(businesses: list[Business]) -> str | None:
    if not businesses:
        return None
    return Counter(b.category for b in businesses).most_common(1)[0][0]


class AnalyticsService:
    def __init__(
        self,
        repo: AnalyticsRepository,
        gate: FeatureGate | None = None,
        snapshots: SnapshotService | None = None,
    ) -> None:
        self.repo = repo
        self.gate = gate or FeatureGate(repo)
        self.snapshots = snapshots or SnapshotService(repo)

    async def _authorize(self, user_id: str | None, feature: str) -> Invalid | None:
        user_check = await validate_user_id(self.repo, user_id)
        if isinstance(user_check, Invalid):
            return user_check
        if not await self.gate.can_access(user_id, feature):
            return Invalid(
                "user_id",
                "FEATURE_NOT_AVAILABLE",
                "Your subscription does not include this analytics feature",
                ErrorKind.FORBIDDEN,
            )
        return None

    async def _fetch_bundle(
        self, business_ids: list[int], start: date, end: date, platform: str | None = None
    ) -> EventBundle:
        views = await self.repo.get_business_view_logs(business_ids, start, end, platform)
        reviews = await self.repo.get_business_reviews(business_ids, start, end)
        favorites = await self.repo.get_business_favorites(business_ids, start, end)
        return EventBundle(views=views, reviews=reviews, favorites=favorites)

    async def get_overview(self, user_id: str, today: date | None = None) -> Result[Overview]:
        log = request_logger(logger, user_id=user_id, operation="overview")
        denied = await self._authorize(user_id, constants.BASIC_ANALYTICS)
        if denied is not None:
            log.warning("Overview rejected: %s", denied.code)
            return denied

        today = today or today_utc()
        windows = _windows(constants.DEFAULT_ANALYTICS_DAYS, today)
        current_start, current_end, previous_start, _ = windows
        businesses = await self.repo.get_user_businesses(user_id)
        ids = [b.id for b in businesses]
        bundle = await self._fetch_bundle(ids, previous_start, current_end)

        items = []
        for business in businesses:
            try:
                items.append(_business_analytics(business, bundle, windows, log))
            except Exception:
                log.exception("Analytics failed for business %s; reporting zeros", business.id)
                items.append(_empty_business_analytics(business, windows))

        overall = safe_compute_period_data(
            bundle.views, bundle.reviews, bundle.favorites, current_start, current_end, log=log
        )
        current_views = [v for v in bundle.views if v.viewed_at.date() >= current_start]
        current_reviews = [r for r in bundle.reviews if r.created_at.date() >= current_start]

        stats = [_stats_from(item) for item in items]
        overview = Overview(
            user_id=user_id,
            period_start=current_start,
            period_end=current_end,
            total_views=overall.total_views,
            total_reviews=overall.total_reviews,
            total_favorites=overall.total_favorites,
            average_rating=overall.average_rating,
            businesses=items,
            views_series=build_views_time_series(current_views, current_start, current_end),
            reviews_series=build_reviews_time_series(current_reviews, current_start, current_end),
            leaderboard=rank_businesses(stats),
        )

        if await self.gate.can_access(user_id, constants.ADVANCED_ANALYTICS):
            overview.has_advanced_analytics = True
            category = primary_category(businesses)
            if category is not None:
                overview.category_benchmark = await self._category_benchmark(
                    businesses, category, current_start, current_end
                )
            overview.competitor_insights = await self._competitor_insights(businesses, current_start, current_end)

        log.info("Built overview for %s businesses", len(businesses))
        return Ok(overview)

    async def get_views_series(
        self, user_id: str, days: int = constants.DEFAULT_ANALYTICS_DAYS, platform: str | None = None,
        today: date | None = None,
    ) -> Result[list[ViewsPoint]]:
        invalid = validate_chart_request(user_id, days, platform)
        if isinstance(invalid, Invalid):
            return invalid
        denied = await self._authorize(user_id, constants.BASIC_ANALYTICS)
        if denied is not None:
            return denied
        end = today or today_utc()
        start = end - timedelta(days=days - 1)
        ids = [b.id for b in await self.repo.get_user_businesses(user_id)]
        views = await self.repo.get_business_view_logs(ids, start, end, platform)
        return Ok(build_views_time_series(views, start, end))

    async def get_reviews_series(
        self, user_id: str, days: int = constants.DEFAULT_ANALYTICS_DAYS, today: date | None = None
    ) -> Result[list[ReviewsPoint]]:
        invalid = validate_chart_request(user_id, days)
        if isinstance(invalid, Invalid):
            return invalid
        denied = await self._authorize(user_id, constants.BASIC_ANALYTICS)
        if denied is not None:
            return denied
        end = today or today_utc()
        start = end - timedelta(days=days - 1)
        ids = [b.id for b in await self.repo.get_user_businesses(user_id)]
        reviews = await self.repo.get_business_reviews(ids, start, end)
        return Ok(build_reviews_time_series(reviews, start, end))

    async def get_views_chart(
        self, user_id: str, days: int = constants.DEFAULT_ANALYTICS_DAYS, platform: str | None = None,
        today: date | None = None,
    ) -> Result[dict[str, Any]]:
        result = await self.get_views_series(user_id, days, platform, today=today)
        if isinstance(result, Invalid):
            return result
        return Ok(views_chart_payload(result.value))

    async def get_reviews_chart(
        self, user_id: str, days: int = constants.DEFAULT_ANALYTICS_DAYS, today: date | None = None
    ) -> Result[dict[str, Any]]:
        result = await self.get_reviews_series(user_id, days, today=today)
        if isinstance(result, Invalid):
            return result
        return Ok(reviews_chart_payload(result.value))

    async def compare(
        self,
        user_id: str,
        comparison_type: str,
        *,
        business_id: int | None = None,
        current: tuple[date | None, date | None] | None = None,
        previous: tuple[date | None, date | None] | None = None,
        platform: str | None = None,
        today: date | None = None,
    ) -> Result[ComparativeAnalysis]:
        log = request_logger(logger, user_id=user_id, business_id=business_id, operation="compare")
        today = today or today_utc()
        invalid = first_invalid(
            validate_comparison_type(comparison_type, current, previous, today=today),
            validate_platform(platform),
        )
        if isinstance(invalid, Invalid):
            log.info("Comparison rejected: %s", invalid.code)
            return invalid
        denied = await self._authorize(user_id, constants.ADVANCED_ANALYTICS)
        if denied is not None:
            return denied

        if business_id is not None:
            ownership = await validate_business_ownership(self.repo, business_id, user_id)
            if isinstance(ownership, Invalid):
                return ownership
            ids = [business_id]
        else:
            ids = [b.id for b in await self.repo.get_user_businesses(user_id)]

        if comparison_type == constants.CUSTOM_RANGE:
            current_start, current_end = current
            previous_start, previous_end = previous
        else:
            windows = comparison_windows(comparison_type, today)
            current_start, current_end = windows.current_start, windows.current_end
            previous_start, previous_end = windows.previous_start, windows.previous_end

        if not ids:
            return Ok(
                ComparativeAnalysis(
                    comparison_type=comparison_type,
                    current_period=None,
                    previous_period=None,
                    metrics=None,
                    insights=["No businesses found to compare"],
                )
            )

        bundle = await self._fetch_bundle(
            ids, min(current_start, previous_start), max(current_end, previous_end), platform
        )
        current_data = safe_compute_period_data(
            bundle.views, bundle.reviews, bundle.favorites, current_start, current_end, log=log
        )
        previous_data = safe_compute_period_data(
            bundle.views, bundle.reviews, bundle.favorites, previous_start, previous_end, log=log
        )
        analysis = build_comparative_analysis(comparison_type, current_data, previous_data)
        log.info("Comparison %s trend=%s", comparison_type, analysis.metrics.overall_trend)
        return Ok(analysis)

    async def get_business_analytics(
        self, business_id: int, user_id: str, today: date | None = None
    ) -> Result[BusinessAnalytics]:
        log = request_logger(logger, user_id=user_id, business_id=business_id, operation="business")
        ownership = await validate_business_ownership(self.repo, business_id, user_id)
        if isinstance(ownership, Invalid):
            log.warning("Business analytics rejected: %s", ownership.code)
            return ownership
        denied = await self._authorize(user_id, constants.BASIC_ANALYTICS)
        if denied is not None:
            return denied

        today = today or today_utc()
        business = await self.repo.get_business(business_id)
        windows = _windows(constants.DEFAULT_GROWTH_RATE_DAYS, today)
        bundle = await self._fetch_bundle([business_id], windows[2], windows[1])
        try:
            item = _business_analytics(business, bundle, windows, log)
        except Exception:
            log.exception("Analytics failed; reporting zeros")
            item = _empty_business_analytics(business, windows)
        item.growth = await self.snapshots.calculate_growth_rates(business_id, today=today)
        return Ok(item)

    async def get_growth_rates(
        self,
        business_id: int,
        user_id: str,
        current_days: int = constants.DEFAULT_GROWTH_RATE_DAYS,
        previous_days: int = constants.DEFAULT_GROWTH_RATE_DAYS,
        today: date | None = None,
    ) -> Result[GrowthRateData]:
        invalid = first_invalid(
            await validate_business_ownership(self.repo, business_id, user_id),
            validate_days(current_days),
            validate_days(previous_days),
        )
        if isinstance(invalid, Invalid):
            return invalid
        growth = await self.snapshots.calculate_growth_rates(business_id, current_days, previous_days, today=today)
        return Ok(growth)

    async def get_trends(
        self,
        business_id: int,
        user_id: str,
        aggregation: str = "weekly",
        months: int = 12,
        today: date | None = None,
    ) -> Result[list[TrendBucket]]:
        ownership = await validate_business_ownership(self.repo, business_id, user_id)
        if isinstance(ownership, Invalid):
            return ownership
        if (aggregation or "").lower() not in AGGREGATIONS:
            return Invalid(
                "aggregation",
                "INVALID_AGGREGATION",
                f"Aggregation must be one of: {', '.join(AGGREGATIONS)}",
            )
        if not 1 <= months <= MAX_TREND_MONTHS:
            return Invalid("months", "INVALID_MONTHS", f"Months must be between 1 and {MAX_TREND_MONTHS}")
        trends = await self.snapshots.get_aggregated_trends(business_id, aggregation, months, today=today)
        return Ok(trends)

    async def get_benchmarks(
        self, user_id: str, category: str | None = None, today: date | None = None
    ) -> Result[CategoryBenchmark | None]:
        denied = await self._authorize(user_id, constants.ADVANCED_ANALYTICS)
        if denied is not None:
            return denied
        businesses = await self.repo.get_user_businesses(user_id)
        category = category or primary_category(businesses)
        if category is None:
            return Ok(None)
        end = today or today_utc()
        start = end - timedelta(days=constants.DEFAULT_ANALYTICS_DAYS - 1)
        return Ok(await self._category_benchmark(businesses, category, start, end))

    async def get_competitors(self, user_id: str, today: date | None = None) -> Result[list[CompetitorInsight]]:
        denied = await self._authorize(user_id, constants.ADVANCED_ANALYTICS)
        if denied is not None:
            return denied
        businesses = await self.repo.get_user_businesses(user_id)
        end = today or today_utc()
        start = end - timedelta(days=constants.DEFAULT_ANALYTICS_DAYS - 1)
        return Ok(await self._competitor_insights(businesses, start, end))

    async def _category_benchmark(
        self, businesses: list[Business], category: str, start: date, end: date
    ) -> CategoryBenchmark | None:
        category_businesses = await self.repo.get_category_businesses(category)
        everyone = {b.id: b for b in [*category_businesses, *businesses]}
        totals = await self.repo.get_window_totals(list(everyone), start, end)
        return category_benchmark(category, businesses, category_businesses, build_stats(everyone.values(), totals))

    async def _competitor_insights(
        self, businesses: list[Business], start: date, end: date
    ) -> list[CompetitorInsight]:
        if not businesses:
            return []
        candidates = await self.repo.get_competitor_candidates(businesses)
        everyone = {b.id: b for b in [*candidates, *businesses]}
        totals = await self.repo.get_window_totals(list(everyone), start, end)
        return competitor_insights(businesses, candidates, build_stats(everyone.values(), totals))

    async def export_overview_csv(self, user_id: str, *, upload: bool = False, today: date | None = None) -> Result[Path]:
        denied = await self._authorize(user_id, constants.ADVANCED_ANALYTICS)
        if denied is not None:
            return denied
        result = await self.get_overview(user_id, today=today)
        if isinstance(result, Invalid):
            return result
        return Ok(export_csv.write_overview_csv(result.value, upload=upload))

    async def create_share_link(
        self, user_id: str, dashboard_type: str, business_id: int | None = None
    ) -> Result[str]:
        if dashboard_type not in DASHBOARD_TYPES:
            return Invalid(
                "dashboard_type",
                "INVALID_DASHBOARD_TYPE",
                f"Dashboard type must be one of: {', '.join(DASHBOARD_TYPES)}",
            )
        denied = await self._authorize(user_id, constants.ADVANCED_ANALYTICS)
        if denied is not None:
            return denied
        if dashboard_type == "Business":
            if business_id is None:
                return Invalid("business_id", "BUSINESS_REQUIRED", "A business is required for this dashboard")
            ownership = await validate_business_ownership(self.repo, business_id, user_id)
            if isinstance(ownership, Invalid):
                return ownership
        return Ok(generate_share_token(user_id, dashboard_type, business_id))

    async def get_shared_dashboard(self, token: str) -> Result[SharedDashboard]:
        try:
            payload = load_share_token(token)
        except SignatureExpired:
            return Invalid("token", "TOKEN_EXPIRED", "This share link has expired", ErrorKind.FORBIDDEN)
        except (BadSignature, TypeError):
            return Invalid("token", "INVALID_TOKEN", "Invalid share link", ErrorKind.FORBIDDEN)

        user_id = str(payload.get("user_id"))
        dashboard_type = str(payload.get("dashboard_type"))
        business_id = payload.get("business_id")
        if dashboard_type == "Business":
            result = await self.get_business_analytics(int(business_id), user_id)
        elif dashboard_type == "Benchmarks":
            result = await self.get_benchmarks(user_id)
        elif dashboard_type == "Competitors":
            result = await self.get_competitors(user_id)
        else:
            result = await self.get_overview(user_id)
        if isinstance(result, Invalid):
            return result
        return Ok(SharedDashboard(dashboard_type, user_id, business_id, result.value))
