from datetime import date, datetime, timedelta

from bizpulse.logic import period
from bizpulse.logic.period import PeriodData, compute_period_data, safe_compute_period_data
from bizpulse.models import FavoriteEvent, ReviewEvent, ViewEvent

DAY1 = date(2024, 3, 1)
DAY2 = date(2024, 3, 2)


def _at(day, hour=10):
    return datetime(day.year, day.month, day.day, hour)


def test_two_day_window_scenario():
    views = [ViewEvent(1, _at(DAY1)) for _ in range(10)]
    reviews = [ReviewEvent(1, _at(DAY1), rating) for rating in (4, 4, 5, 3, 5)]
    favorites = [FavoriteEvent(1, _at(DAY2)) for _ in range(2)]

    data = compute_period_data(views, reviews, favorites, DAY1, DAY2)

    assert data.total_views == 10
    assert data.total_reviews == 5
    assert data.total_favorites == 2
    assert data.average_rating == 4.2
    assert data.period_days == 1
    assert data.engagement_score == 70
    assert data.average_views_per_day == 10
    assert data.peak_day_date == DAY1
    assert data.peak_day_views == 10


def test_events_outside_window_are_ignored():
    views = [
        ViewEvent(1, _at(DAY1 - timedelta(days=1))),
        ViewEvent(1, _at(DAY1, 0)),
        ViewEvent(1, _at(DAY2, 23)),
        ViewEvent(1, _at(DAY2 + timedelta(days=1))),
    ]
    data = compute_period_data(views, [], [], DAY1, DAY2)
    assert data.total_views == 2


def test_inactive_reviews_do_not_count():
    reviews = [ReviewEvent(1, _at(DAY1), 5), ReviewEvent(1, _at(DAY1), 1, is_active=False)]
    data = compute_period_data([], reviews, [], DAY1, DAY2)
    assert data.total_reviews == 1
    assert data.average_rating == 5.0


def test_empty_window_has_no_rating_and_zero_engagement():
    data = compute_period_data([], [], [FavoriteEvent(1, _at(DAY1))], DAY1, DAY2)
    assert data.total_views == 0
    assert data.engagement_score == 0
    assert data.average_rating is None
    assert data.rating_or_zero == 0.0
    assert data.peak_day_date is None
    assert data.low_day_date is None


def test_peak_and_low_ties_go_to_earliest_day():
    day3 = DAY2 + timedelta(days=1)
    views = [
        ViewEvent(1, _at(day3)),
        ViewEvent(1, _at(day3)),
        ViewEvent(1, _at(DAY1)),
        ViewEvent(1, _at(DAY1)),
        ViewEvent(1, _at(DAY2)),
    ]
    data = compute_period_data(views, [], [], DAY1, day3)
    assert (data.peak_day_date, data.peak_day_views) == (DAY1, 2)
    assert (data.low_day_date, data.low_day_views) == (DAY2, 1)


def test_per_day_averages_use_exclusive_day_count():
    start = date(2024, 1, 1)
    end = date(2024, 1, 31)
    views = [ViewEvent(1, _at(start + timedelta(days=i))) for i in range(30)]
    data = compute_period_data(views, [], [], start, end)
    assert data.period_days == 30
    assert data.average_views_per_day == 1.0


def test_safe_compute_returns_zeros_on_fault(monkeypatch, caplog):
    def boom(*args, **kwargs):
        raise ZeroDivisionError("bad record")

    monkeypatch.setattr(period, "compute_period_data", boom)
    data = safe_compute_period_data([], [], [], DAY1, DAY2)
    assert data == PeriodData.empty(DAY1, DAY2)
    assert "Period aggregation failed" in caplog.text
