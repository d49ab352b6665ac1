"""Period-over-period comparison."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from bizpulse.logic import constants
from bizpulse.logic.period import PeriodData
from bizpulse.logic.signals import direction, is_significant, percent_change, performance_rating
from bizpulse.utils.dates import today_utc

STABLE_MESSAGE = "Performance remained stable compared to the previous period."


@dataclass(frozen=True, slots=True)
class ComparisonWindows:
    current_start: date
    current_end: date
    previous_start: date
    previous_end: date


@dataclass(slots=True)
class ComparisonMetrics:
    views_change_percent: float
    reviews_change_percent: float
    favorites_change_percent: float
    rating_change_percent: float
    engagement_change_percent: float
    average_views_per_day_change_percent: float
    average_reviews_per_day_change_percent: float
    average_favorites_per_day_change_percent: float
    overall_trend: str
    overall_performance_change: str
    performance_rating: str
    key_changes: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ComparativeAnalysis:
    comparison_type: str
    current_period: PeriodData | None
    previous_period: PeriodData | None
    metrics: ComparisonMetrics | None
    insights: list[str]
    chart_data: dict[str, Any] | None = None


def comparison_windows(comparison_type: str, as_of: date | None = None) -> ComparisonWindows:
    """Back-to-back windows of equal length ending on ``as_of``."""
    days = constants.COMPARISON_PERIOD_DAYS[comparison_type]
    current_end = as_of or today_utc()
    current_start = current_end - timedelta(days=days - 1)
    return ComparisonWindows(
        current_start=current_start,
        current_end=current_end,
        previous_start=current_start - timedelta(days=days),
        previous_end=current_start - timedelta(days=1),
    )


def overall_trend(current: PeriodData, previous: PeriodData) -> str:
    votes = [
        direction(current.total_views, previous.total_views),
        direction(current.total_reviews, previous.total_reviews),
        direction(current.rating_or_zero, previous.rating_or_zero),
    ]
    improvements = votes.count(1)
    declines = votes.count(-1)
    if improvements > declines:
        return "Improving"
    if declines > improvements:
        return "Declining"
    return "Stable"


def overall_performance_change(current: PeriodData, previous: PeriodData) -> str:
    changes = [
        current.total_views - previous.total_views,
        current.total_reviews - previous.total_reviews,
        current.rating_or_zero - previous.rating_or_zero,
    ]
    if all(change > 0 for change in changes):
        return "Significantly Improved"
    if any(change > 0 for change in changes):
        return "Improved"
    if all(change < 0 for change in changes):
        return "Declined"
    return "Stable"


def key_changes(views_pct: float, reviews_pct: float, rating_pct: float) -> list[str]:
    changes = []
    if is_significant(views_pct, constants.SIGNIFICANT_VIEWS_CHANGE):
        verb = "increased" if views_pct > 0 else "decreased"
        changes.append(f"Views {verb} by {abs(views_pct):.1f}%")
    if is_significant(reviews_pct, constants.SIGNIFICANT_REVIEWS_CHANGE):
        verb = "increased" if reviews_pct > 0 else "decreased"
        changes.append(f"Reviews {verb} by {abs(reviews_pct):.1f}%")
    if is_significant(rating_pct, constants.SIGNIFICANT_RATING_CHANGE):
        verb = "improved" if rating_pct > 0 else "declined"
        changes.append(f"Average rating {verb} by {abs(rating_pct):.1f}%")
    return changes or [STABLE_MESSAGE]


def compare_periods(current: PeriodData, previous: PeriodData) -> ComparisonMetrics:
    views_pct = percent_change(current.total_views, previous.total_views)
    reviews_pct = percent_change(current.total_reviews, previous.total_reviews)
    rating_pct = percent_change(current.rating_or_zero, previous.rating_or_zero)
    return ComparisonMetrics(
        views_change_percent=views_pct,
        reviews_change_percent=reviews_pct,
        favorites_change_percent=percent_change(current.total_favorites, previous.total_favorites),
        rating_change_percent=rating_pct,
        engagement_change_percent=percent_change(current.engagement_score, previous.engagement_score),
        average_views_per_day_change_percent=percent_change(
            current.average_views_per_day, previous.average_views_per_day
        ),
        average_reviews_per_day_change_percent=percent_change(
            current.average_reviews_per_day, previous.average_reviews_per_day
        ),
        average_favorites_per_day_change_percent=percent_change(
            current.average_favorites_per_day, previous.average_favorites_per_day
        ),
        overall_trend=overall_trend(current, previous),
        overall_performance_change=overall_performance_change(current, previous),
        performance_rating=performance_rating(current.engagement_score, current.average_rating),
        key_changes=key_changes(views_pct, reviews_pct, rating_pct),
    )


def comparative_insights(metrics: ComparisonMetrics) -> list[str]:
    insights = []
    if is_significant(metrics.views_change_percent, constants.SIGNIFICANT_VIEWS_CHANGE):
        insights.append(
            f"Views changed by {metrics.views_change_percent:.1f}% compared to the previous period"
        )
    if is_significant(metrics.reviews_change_percent, constants.SIGNIFICANT_REVIEWS_CHANGE):
        insights.append(
            f"Reviews changed by {metrics.reviews_change_percent:.1f}% compared to the previous period"
        )
    return insights or [STABLE_MESSAGE]


def comparison_chart_data(current: PeriodData, previous: PeriodData) -> dict[str, Any]:
    series = [
        ("Views", current.total_views, previous.total_views, constants.CHART_COLORS["lapis_lazuli"]),
        ("Reviews", current.total_reviews, previous.total_reviews, constants.CHART_COLORS["hunyadi_yellow"]),
        ("Favorites", current.total_favorites, previous.total_favorites, constants.CHART_COLORS["orange_pantone"]),
    ]
    return {
        "labels": ["Current Period", "Previous Period"],
        "datasets": [
            {
                "label": label,
                "data": [float(current_value), float(previous_value)],
                "borderColor": color,
                "backgroundColor": color,
            }
            for label, current_value, previous_value, color in series
        ],
    }


def build_comparative_analysis(
    comparison_type: str, current: PeriodData, previous: PeriodData
) -> ComparativeAnalysis:
    metrics = compare_periods(current, previous)
    return ComparativeAnalysis(
        comparison_type=comparison_type,
        current_period=current,
        previous_period=previous,
        metrics=metrics,
        insights=comparative_insights(metrics),
        chart_data=comparison_chart_data(current, previous),
    )
