"""Business logic for computing engagement and change signals."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from bizpulse.logic import constants


def percent_change(current: float, previous: float) -> float:
    """Percentage change from ``previous`` to ``current``.

    A zero baseline yields 100 when there is new activity and 0 otherwise.
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100.0


def engagement_score(reviews: int, favorites: int, views: int) -> float:
    if views == 0:
        return 0.0
    return (reviews + favorites) * 100.0 / views


def mean_rating(ratings: Sequence[float]) -> float | None:
    if not ratings:
        return None
    return float(np.mean(ratings))


def performance_rating(engagement: float, rating: float | None) -> str:
    if rating is None:
        return "Poor"
    if engagement >= constants.STRONG_ENGAGEMENT_THRESHOLD and rating >= constants.EXCELLENT_RATING_THRESHOLD:
        return "Excellent"
    if engagement >= constants.GOOD_ENGAGEMENT_THRESHOLD and rating >= constants.GOOD_RATING_THRESHOLD:
        return "Good"
    if rating >= constants.FAIR_RATING_THRESHOLD:
        return "Fair"
    return "Poor"


def direction(current: float, previous: float) -> int:
    if current > previous:
        return 1
    if current < previous:
        return -1
    return 0


def is_significant(change_pct: float, threshold: float) -> bool:
    return abs(change_pct) >= threshold


def normalized(values: Sequence[float]) -> list[float]:
    if not values:
        return []
    arr = np.array(values, dtype=float)
    min_v = arr.min()
    max_v = arr.max()
    if math.isclose(min_v, max_v):
        return [0.0 for _ in arr]
    return ((arr - min_v) / (max_v - min_v)).tolist()


def percentile_rank(value: float, population: Sequence[float]) -> float:
    """Share of the population at or below ``value``, as 0-100."""
    if not population:
        return 50.0
    arr = np.array(population, dtype=float)
    return float(np.count_nonzero(arr <= value) / arr.size * 100.0)
