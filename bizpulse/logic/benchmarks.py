"""Category benchmarks, competitor positioning and leaderboards."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from bizpulse.db.repository import WindowTotals
from bizpulse.logic import constants
from bizpulse.logic.signals import engagement_score, normalized, percentile_rank
from bizpulse.models import Business, BusinessStats, BusinessStatus

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BenchmarkMetric:
    metric_name: str
    your_value: float
    category_average: float
    percentile_rank: float
    performance: str


@dataclass(slots=True)
class CategoryBenchmark:
    category: str
    user_business_count: int
    total_business_count: int
    average_views: float
    average_reviews: float
    average_rating: float
    user_average_views: float
    user_average_reviews: float
    user_average_rating: float
    performance_vs_average: str
    metrics: list[BenchmarkMetric] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)


@dataclass(slots=True)
class CompetitorInsight:
    business_id: int
    business_name: str
    category: str
    town: str
    competitor_count: int
    average_competitor_rating: float
    average_competitor_views: float
    average_competitor_reviews: float
    market_position: str
    your_rank: int
    total_competitors: int
    market_share_percentage: float
    key_insight: str
    opportunity_areas: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


@dataclass(slots=True)
class LeaderboardEntry:
    business_id: int
    business_name: str
    score: float
    rank: int


WEIGHTS = {
    "views": 0.4,
    "engagement": 0.3,
    "rating": 0.3,
}


def build_stats(businesses: Iterable[Business], totals: Mapping[int, WindowTotals]) -> dict[int, BusinessStats]:
    stats = {}
    for business in businesses:
        window = totals.get(business.id) or WindowTotals()
        stats[business.id] = BusinessStats(
            business_id=business.id,
            name=business.name,
            category=business.category,
            town=business.town,
            total_views=window.views,
            total_reviews=window.reviews,
            total_favorites=window.favorites,
            average_rating=window.average_rating,
            engagement_score=engagement_score(window.reviews, window.favorites, window.views),
        )
    return stats


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _mean_rating(stats: Iterable[BusinessStats]) -> float:
    return _mean([s.average_rating for s in stats if s.average_rating is not None])


def ratio_label(value: float, average: float) -> str:
    if average <= 0:
        return "excellent" if value > 0 else "average"
    ratio = value / average
    if ratio >= constants.EXCELLENT_PERFORMANCE_RATIO:
        return "excellent"
    if ratio >= constants.GOOD_PERFORMANCE_RATIO:
        return "good"
    if ratio >= constants.AVERAGE_PERFORMANCE_RATIO:
        return "average"
    if ratio >= constants.BELOW_AVERAGE_PERFORMANCE_RATIO:
        return "below_average"
    return "poor"


def _overall_label(pairs: Sequence[tuple[float, float]]) -> str:
    ratios = [value / average for value, average in pairs if average > 0]
    if not ratios:
        return "average"
    mean_ratio = _mean(ratios)
    if mean_ratio >= constants.GOOD_PERFORMANCE_RATIO:
        return "above"
    if mean_ratio < constants.AVERAGE_PERFORMANCE_RATIO:
        return "below"
    return "average"


def category_benchmark(
    category: str,
    user_businesses: Sequence[Business],
    category_businesses: Sequence[Business],
    stats: Mapping[int, BusinessStats],
) -> CategoryBenchmark | None:
    """Benchmark a user's businesses against the rest of their category.

    Returns ``None`` when the category is too small to be meaningful or the
    user has no business in it.
    """
    mine = [b for b in user_businesses if b.category == category]
    if not mine:
        return None
    if len(category_businesses) < constants.MIN_CATEGORY_BUSINESSES_FOR_BENCHMARK:
        logger.info(
            "Benchmark withheld for %s: %s businesses in category", category, len(category_businesses)
        )
        return None
    my_ids = {b.id for b in mine}
    my_stats = [stats[b.id] for b in mine if b.id in stats]
    competitor_stats = [stats[b.id] for b in category_businesses if b.id not in my_ids and b.id in stats]
    if not competitor_stats:
        return None
    everyone = my_stats + competitor_stats

    user_views = _mean([s.total_views for s in my_stats])
    user_reviews = _mean([s.total_reviews for s in my_stats])
    user_rating = _mean_rating(my_stats)
    avg_views = _mean([s.total_views for s in competitor_stats])
    avg_reviews = _mean([s.total_reviews for s in competitor_stats])
    avg_rating = _mean_rating(competitor_stats)

    metrics = [
        BenchmarkMetric(
            metric_name="Views",
            your_value=user_views,
            category_average=avg_views,
            percentile_rank=percentile_rank(user_views, [s.total_views for s in everyone]),
            performance=ratio_label(user_views, avg_views),
        ),
        BenchmarkMetric(
            metric_name="Reviews",
            your_value=user_reviews,
            category_average=avg_reviews,
            percentile_rank=percentile_rank(user_reviews, [s.total_reviews for s in everyone]),
            performance=ratio_label(user_reviews, avg_reviews),
        ),
        BenchmarkMetric(
            metric_name="Rating",
            your_value=user_rating,
            category_average=avg_rating,
            percentile_rank=percentile_rank(
                user_rating, [s.average_rating for s in everyone if s.average_rating is not None]
            ),
            performance=ratio_label(user_rating, avg_rating),
        ),
    ]

    insights = []
    if user_views < avg_views * constants.AVERAGE_PERFORMANCE_RATIO:
        insights.append("Your businesses are getting fewer views than competitors in this category")
    elif avg_views > 0 and user_views >= avg_views * constants.GOOD_PERFORMANCE_RATIO:
        insights.append("Your businesses attract more views than most competitors in this category")
    if user_rating < avg_rating:
        insights.append("Consider improving service quality to match competitor ratings")
    elif user_rating > avg_rating:
        insights.append("Your ratings are ahead of the category average")
    if not insights:
        insights.append("Your businesses are performing in line with the category average")

    return CategoryBenchmark(
        category=category,
        user_business_count=len(mine),
        total_business_count=len(category_businesses),
        average_views=avg_views,
        average_reviews=avg_reviews,
        average_rating=avg_rating,
        user_average_views=user_views,
        user_average_reviews=user_reviews,
        user_average_rating=user_rating,
        performance_vs_average=_overall_label(
            [(user_views, avg_views), (user_reviews, avg_reviews), (user_rating, avg_rating)]
        ),
        metrics=metrics,
        insights=insights,
    )


def market_position(rating: float, views: float, peer_rating: float, peer_views: float) -> str:
    if rating >= peer_rating + constants.LEADER_RATING_DIFFERENCE and views >= peer_views:
        return "leader"
    if rating <= peer_rating - constants.CHALLENGER_RATING_DIFFERENCE:
        return "challenger"
    if views < peer_views * constants.BELOW_AVERAGE_PERFORMANCE_RATIO:
        return "niche"
    return "competitive"


KEY_INSIGHTS = {
    "leader": "You lead your local market on both rating and visibility",
    "challenger": "Competitors nearby are rated noticeably higher",
    "niche": "You serve a smaller audience than nearby competitors",
    "competitive": "You are competing closely with nearby businesses",
}


def competitor_insights(
    user_businesses: Sequence[Business],
    candidates: Sequence[Business],
    stats: Mapping[int, BusinessStats],
) -> list[CompetitorInsight]:
    """Position each business against active peers in the same category and town."""
    insights = []
    for business in user_businesses:
        peers = [
            c
            for c in candidates
            if c.id != business.id
            and c.category == business.category
            and c.town == business.town
            and c.status == BusinessStatus.ACTIVE.value
            and c.id in stats
        ]
        own = stats.get(business.id)
        if not peers or own is None:
            continue
        peer_stats = [stats[p.id] for p in peers]
        peer_rating = _mean_rating(peer_stats)
        peer_views = _mean([s.total_views for s in peer_stats])
        peer_reviews = _mean([s.total_reviews for s in peer_stats])
        own_rating = own.average_rating or 0.0

        position = market_position(own_rating, own.total_views, peer_rating, peer_views)

        field_stats = [own, *peer_stats]
        ordered = sorted(field_stats, key=lambda s: (s.average_rating or 0.0, s.total_views), reverse=True)
        rank = next(idx for idx, s in enumerate(ordered, start=1) if s.business_id == own.business_id)
        total_views = sum(s.total_views for s in field_stats)
        share = own.total_views / total_views * 100.0 if total_views else 0.0

        opportunities = []
        recommendations = []
        if own.total_views < peer_views:
            opportunities.append("Visibility")
            recommendations.append("Focus on increasing visibility to match competitor view counts")
        if own_rating < peer_rating:
            opportunities.append("Customer satisfaction")
            recommendations.append("Work on improving customer satisfaction to match competitor ratings")
        if own.total_reviews < peer_reviews:
            opportunities.append("Review volume")
            recommendations.append("Encourage customers to leave reviews to build social proof")
        if not recommendations:
            recommendations.append("Maintain your current performance and keep engaging customers")

        insights.append(
            CompetitorInsight(
                business_id=business.id,
                business_name=business.name,
                category=business.category,
                town=business.town,
                competitor_count=len(peers),
                average_competitor_rating=peer_rating,
                average_competitor_views=peer_views,
                average_competitor_reviews=peer_reviews,
                market_position=position,
                your_rank=rank,
                total_competitors=len(field_stats),
                market_share_percentage=round(share, 2),
                key_insight=KEY_INSIGHTS[position],
                opportunity_areas=opportunities,
                recommendations=recommendations,
            )
        )
    return insights


def rank_businesses(stats: Sequence[BusinessStats], limit: int = 10) -> list[LeaderboardEntry]:
    if not stats:
        return []
    views_norm = normalized([s.total_views for s in stats])
    engagement_norm = normalized([s.engagement_score for s in stats])
    rating_norm = normalized([s.average_rating or 0.0 for s in stats])
    scores = []
    for idx, item in enumerate(stats):
        score = (
            WEIGHTS["views"] * views_norm[idx]
            + WEIGHTS["engagement"] * engagement_norm[idx]
            + WEIGHTS["rating"] * rating_norm[idx]
        )
        scores.append((item, score))
    sorted_scores = sorted(scores, key=lambda pair: pair[1], reverse=True)
    leaderboard: list[LeaderboardEntry] = []
    for rank, (item, score) in enumerate(sorted_scores, start=1):
        leaderboard.append(
            LeaderboardEntry(
                business_id=item.business_id,
                business_name=item.name,
                score=round(score, 4),
                rank=rank,
            )
        )
        if rank == limit:
            break
    return leaderboard
