"""Analytics thresholds and windows, overridable from the environment."""

from __future__ import annotations

import os

MIN_ANALYTICS_DAYS = int(os.environ.get("MIN_ANALYTICS_DAYS", 1))
MAX_ANALYTICS_DAYS = int(os.environ.get("MAX_ANALYTICS_DAYS", 365))
DEFAULT_ANALYTICS_DAYS = int(os.environ.get("DEFAULT_ANALYTICS_DAYS", 30))
DEFAULT_GROWTH_RATE_DAYS = int(os.environ.get("DEFAULT_GROWTH_RATE_DAYS", 30))
SNAPSHOT_RETENTION_DAYS = int(os.environ.get("SNAPSHOT_RETENTION_DAYS", 730))

# Performance rating tiers: engagement and rating must both clear the bar.
STRONG_ENGAGEMENT_THRESHOLD = float(os.environ.get("STRONG_ENGAGEMENT_THRESHOLD", 50.0))
GOOD_ENGAGEMENT_THRESHOLD = float(os.environ.get("GOOD_ENGAGEMENT_THRESHOLD", 25.0))
EXCELLENT_RATING_THRESHOLD = float(os.environ.get("EXCELLENT_RATING_THRESHOLD", 4.5))
GOOD_RATING_THRESHOLD = float(os.environ.get("GOOD_RATING_THRESHOLD", 4.0))
FAIR_RATING_THRESHOLD = float(os.environ.get("FAIR_RATING_THRESHOLD", 3.0))

SIGNIFICANT_VIEWS_CHANGE = float(os.environ.get("SIGNIFICANT_VIEWS_CHANGE", 10.0))
SIGNIFICANT_REVIEWS_CHANGE = float(os.environ.get("SIGNIFICANT_REVIEWS_CHANGE", 10.0))
SIGNIFICANT_RATING_CHANGE = float(os.environ.get("SIGNIFICANT_RATING_CHANGE", 5.0))

MIN_CATEGORY_BUSINESSES_FOR_BENCHMARK = int(os.environ.get("MIN_CATEGORY_BUSINESSES_FOR_BENCHMARK", 5))
EXCELLENT_PERFORMANCE_RATIO = 1.5
GOOD_PERFORMANCE_RATIO = 1.2
AVERAGE_PERFORMANCE_RATIO = 0.8
BELOW_AVERAGE_PERFORMANCE_RATIO = 0.5
LEADER_RATING_DIFFERENCE = float(os.environ.get("LEADER_RATING_DIFFERENCE", 0.5))
CHALLENGER_RATING_DIFFERENCE = float(os.environ.get("CHALLENGER_RATING_DIFFERENCE", 0.5))

COMPARISON_PERIOD_DAYS = {
    "WeekOverWeek": 7,
    "MonthOverMonth": 30,
    "QuarterOverQuarter": 90,
    "YearOverYear": 365,
}
CUSTOM_RANGE = "CustomRange"
COMPARISON_TYPES = (*COMPARISON_PERIOD_DAYS, CUSTOM_RANGE)

BASIC_ANALYTICS = "BasicAnalytics"
ADVANCED_ANALYTICS = "AdvancedAnalytics"

CHART_COLORS = {
    "lapis_lazuli": "#33658a",
    "carolina_blue": "#86bbd8",
    "hunyadi_yellow": "#f6ae2d",
    "orange_pantone": "#f26419",
    "charcoal": "#2f4858",
}
