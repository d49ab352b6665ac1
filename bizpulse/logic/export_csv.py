"""CSV export helpers."""

from __future__ import annotations

import csv
import os
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

import boto3

from bizpulse.utils.dates import format_date

if TYPE_CHECKING:
    from bizpulse.logic.analytics import Overview

OUTPUT_DIR = Path(os.environ.get("CSV_OUTPUT_DIR", "artifacts/csv"))

BUSINESS_COLUMNS = [
    "business_id",
    "business",
    "category",
    "town",
    "views",
    "reviews",
    "favorites",
    "average_rating",
    "engagement_score",
    "performance_rating",
    "views_change_pct",
    "reviews_change_pct",
    "favorites_change_pct",
]

SERIES_COLUMNS = ["date", "views", "reviews", "average_rating"]


def write_overview_csv(overview: Overview, *, upload: bool = False) -> Path:
    """Write an overview report: summary, one row per business, then the daily series."""
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    file_path = OUTPUT_DIR / f"analytics-{overview.user_id}-{format_date(overview.period_end)}.csv"
    with file_path.open("w", newline="") as csvfile:
        writer = csv.writer(csvfile)
        writer.writerow(["Analytics report", format_date(overview.period_start), format_date(overview.period_end)])
        writer.writerow(["Total views", overview.total_views])
        writer.writerow(["Total reviews", overview.total_reviews])
        writer.writerow(["Total favorites", overview.total_favorites])
        writer.writerow(["Average rating", _round(overview.average_rating)])
        writer.writerow([])

        business_writer = csv.DictWriter(csvfile, fieldnames=BUSINESS_COLUMNS)
        business_writer.writeheader()
        business_writer.writerows(_business_rows(overview))
        writer.writerow([])

        series_writer = csv.DictWriter(csvfile, fieldnames=SERIES_COLUMNS)
        series_writer.writeheader()
        series_writer.writerows(_series_rows(overview))
    if upload:
        _upload_to_s3(file_path)
    return file_path


def _business_rows(overview: Overview) -> Iterable[dict[str, object]]:
    for item in overview.businesses:
        yield {
            "business_id": item.business_id,
            "business": item.business_name,
            "category": item.category,
            "town": item.town,
            "views": item.total_views,
            "reviews": item.total_reviews,
            "favorites": item.total_favorites,
            "average_rating": _round(item.average_rating),
            "engagement_score": _round(item.engagement_score),
            "performance_rating": item.performance_rating,
            "views_change_pct": _round(item.views_change_percent),
            "reviews_change_pct": _round(item.reviews_change_percent),
            "favorites_change_pct": _round(item.favorites_change_percent),
        }


def _series_rows(overview: Overview) -> Iterable[dict[str, object]]:
    reviews_by_day = {point.date: point for point in overview.reviews_series}
    for point in overview.views_series:
        reviews = reviews_by_day.get(point.date)
        yield {
            "date": format_date(point.date),
            "views": point.views,
            "reviews": reviews.reviews if reviews else 0,
            "average_rating": _round(reviews.average_rating) if reviews else 0.0,
        }


def _round(value: float | None) -> float | None:
    return round(value, 2) if value is not None else None


def _upload_to_s3(path: Path) -> None:
    bucket = os.environ.get("AWS_S3_BUCKET")
    if not bucket:
        return
    endpoint = os.environ.get("AWS_S3_ENDPOINT")
    session = boto3.session.Session()
    client = session.client(
        "s3",
        endpoint_url=endpoint,
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY"),
    )
    client.upload_file(str(path), bucket, path.name)
