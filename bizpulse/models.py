"""Analytics data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum


class Platform(str, Enum):
    WEB = "Web"
    MOBILE = "Mobile"
    API = "API"
    ALL = "All"

    @classmethod
    def parse(cls, value: str | None) -> Platform | None:
        if value is None or not value.strip():
            return None
        lowered = value.strip().lower()
        for member in cls:
            if member.value.lower() == lowered:
                return member
        raise ValueError(f"Unknown platform: {value}")


class BusinessStatus(str, Enum):
    ACTIVE = "Active"
    PENDING = "Pending"
    DELETED = "Deleted"


@dataclass(frozen=True, slots=True)
class Business:
    id: int
    user_id: str
    name: str
    category: str
    town: str
    status: str = BusinessStatus.ACTIVE.value

    @property
    def is_deleted(self) -> bool:
        return self.status == BusinessStatus.DELETED.value


@dataclass(frozen=True, slots=True)
class User:
    id: str
    email: str
    tier: str
    email_reports: bool = False


@dataclass(frozen=True, slots=True)
class ViewEvent:
    business_id: int
    viewed_at: datetime
    platform: str = Platform.WEB.value
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True, slots=True)
class ReviewEvent:
    business_id: int
    created_at: datetime
    rating: int
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class FavoriteEvent:
    business_id: int
    created_at: datetime


@dataclass(frozen=True, slots=True)
class AnalyticsSnapshot:
    business_id: int
    snapshot_date: date
    total_views: int
    total_reviews: int
    total_favorites: int
    average_rating: float | None
    engagement_score: float | None
    created_at: datetime
    id: int | None = None


@dataclass(frozen=True, slots=True)
class EventBundle:
    """Fetched events for one request, shared read-only by the aggregators."""

    views: tuple[ViewEvent, ...] = ()
    reviews: tuple[ReviewEvent, ...] = ()
    favorites: tuple[FavoriteEvent, ...] = ()

    def for_business(self, business_id: int) -> EventBundle:
        return EventBundle(
            views=tuple(v for v in self.views if v.business_id == business_id),
            reviews=tuple(r for r in self.reviews if r.business_id == business_id),
            favorites=tuple(f for f in self.favorites if f.business_id == business_id),
        )


@dataclass(slots=True)
class BusinessStats:
    """Aggregated totals for one business over a window."""

    business_id: int
    name: str
    category: str
    town: str
    total_views: int = 0
    total_reviews: int = 0
    total_favorites: int = 0
    average_rating: float | None = None
    engagement_score: float = 0.0
