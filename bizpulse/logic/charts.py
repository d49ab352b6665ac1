"""Chart generation utilities."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

import matplotlib.pyplot as plt
import pandas as pd

from bizpulse.logic.constants import CHART_COLORS
from bizpulse.logic.timeseries import ReviewsPoint, ViewsPoint
from bizpulse.utils.dates import format_date, short_label

plt.switch_backend("Agg")

OUTPUT_DIR = Path(os.environ.get("CHART_OUTPUT_DIR", "artifacts/charts"))


@dataclass(slots=True)
class ChartResult:
    name: str
    path: Path


def chart_payload(labels: Sequence[str], datasets: Sequence[dict[str, Any]]) -> dict[str, Any]:
    """Chart.js-shaped ``{labels, datasets}`` payload."""
    return {"labels": list(labels), "datasets": [dict(d) for d in datasets]}


def _dataset(label: str, data: Sequence[float], color: str, **extra: Any) -> dict[str, Any]:
    return {
        "label": label,
        "data": [float(v) for v in data],
        "borderColor": color,
        "backgroundColor": color,
        "fill": False,
        **extra,
    }


def views_chart_payload(points: Sequence[ViewsPoint]) -> dict[str, Any]:
    return chart_payload(
        [short_label(p.date) for p in points],
        [_dataset("Views", [p.views for p in points], CHART_COLORS["lapis_lazuli"], tension=0.3)],
    )


def reviews_chart_payload(points: Sequence[ReviewsPoint]) -> dict[str, Any]:
    return chart_payload(
        [short_label(p.date) for p in points],
        [
            _dataset("Reviews", [p.reviews for p in points], CHART_COLORS["hunyadi_yellow"], type="bar"),
            _dataset(
                "Average Rating",
                [p.average_rating for p in points],
                CHART_COLORS["orange_pantone"],
                yAxisID="rating",
            ),
        ],
    )


def render_activity_chart(
    name: str, views: Sequence[ViewsPoint], reviews: Sequence[ReviewsPoint]
) -> ChartResult:
    """Plot daily views with the daily average rating on a second axis."""
    if not views:
        raise ValueError(f"No view data for chart {name}")
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    frame = pd.DataFrame({"date": [p.date for p in views], "views": [p.views for p in views]})
    ratings = pd.DataFrame(
        {"date": [p.date for p in reviews], "average_rating": [p.average_rating for p in reviews]}
    )
    frame = frame.merge(ratings, on="date", how="left").sort_values("date")
    frame["average_rating"] = frame["average_rating"].fillna(0.0)

    fig, ax1 = plt.subplots(figsize=(8, 4))
    ax1.bar(frame["date"], frame["views"], color=CHART_COLORS["lapis_lazuli"], alpha=0.8)
    ax1.set_ylabel("Views")

    ax2 = ax1.twinx()
    ax2.plot(frame["date"], frame["average_rating"], color=CHART_COLORS["orange_pantone"], marker="o")
    ax2.set_ylabel("Average rating")
    ax2.set_ylim(0, 5)

    start_date = frame["date"].min()
    end_date = frame["date"].max()
    ax1.set_title(f"{name} activity {format_date(start_date)} to {format_date(end_date)}")
    fig.autofmt_xdate()

    output_path = OUTPUT_DIR / f"{_slug(name)}-activity.png"
    fig.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return ChartResult(name=name, path=output_path)


def _slug(value: str) -> str:
    return "".join(ch if ch.isalnum() else "-" for ch in value.lower()).strip("-") or "chart"
