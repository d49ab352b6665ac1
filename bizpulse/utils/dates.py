"""Datetime helpers."""

from __future__ import annotations

import os
from datetime import date, datetime, time, timedelta
from typing import Iterator

import pendulum

DEFAULT_TZ = "UTC"


def timezone_name() -> str:
    return os.environ.get("TIMEZONE", DEFAULT_TZ)


def utc_now() -> datetime:
    """Naive UTC timestamp, matching how events are stored."""
    return pendulum.now("UTC").naive()


def today_utc() -> date:
    return pendulum.now("UTC").date()


def yesterday_utc() -> date:
    return today_utc() - timedelta(days=1)


def one_year_before(value: date) -> date:
    return pendulum.Date(value.year, value.month, value.day).subtract(years=1)


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def short_label(value: date) -> str:
    return value.strftime("%b %d")


def day_start(value: date) -> datetime:
    return datetime.combine(value, time.min)


def next_day_start(value: date) -> datetime:
    return datetime.combine(value + timedelta(days=1), time.min)


def as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
