from datetime import date, datetime, time, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from bizpulse.db.repository import AnalyticsRepository
from bizpulse.db.tables import (
    business_reviews,
    business_view_logs,
    businesses,
    favorite_businesses,
    metadata,
    users,
)

TODAY = date(2024, 6, 30)


def at(day: date, hour: int = 12) -> datetime:
    return datetime.combine(day, time(hour=hour))


def days_ago(n: int) -> date:
    return TODAY - timedelta(days=n)


@pytest.fixture()
def today():
    return TODAY


@pytest.fixture()
def engine():
    # One shared connection so executor threads see the same in-memory database.
    engine = create_engine(
        "sqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def repo(engine):
    return AnalyticsRepository(engine)


@pytest.fixture()
def seeded_engine(engine):
    with engine.begin() as conn:
        conn.execute(users.insert(), [
            {"id": "u-premium", "email": "premium@example.com", "tier": "premium", "email_reports": True},
            {"id": "u-basic", "email": "basic@example.com", "tier": "basic", "email_reports": False},
            {"id": "u-rival", "email": "rival@example.com", "tier": "standard", "email_reports": False},
            {"id": "u-free", "email": "free@example.com", "tier": "free", "email_reports": False},
        ])
        conn.execute(businesses.insert(), [
            {"id": 1, "user_id": "u-premium", "name": "Harbour Coffee", "category": "Cafe", "town": "Knysna", "status": "Active"},
            {"id": 2, "user_id": "u-premium", "name": "Lagoon Bakery", "category": "Bakery", "town": "Knysna", "status": "Active"},
            {"id": 3, "user_id": "u-basic", "name": "Heads Espresso", "category": "Cafe", "town": "Knysna", "status": "Active"},
            {"id": 4, "user_id": "u-rival", "name": "Forest Brew", "category": "Cafe", "town": "Knysna", "status": "Active"},
            {"id": 5, "user_id": "u-rival", "name": "Quay Roasters", "category": "Cafe", "town": "Knysna", "status": "Active"},
            {"id": 6, "user_id": "u-rival", "name": "Plett Beans", "category": "Cafe", "town": "Plettenberg Bay", "status": "Active"},
            {"id": 7, "user_id": "u-premium", "name": "Old Mill", "category": "Cafe", "town": "Knysna", "status": "Deleted"},
        ])

        views = []
        for business_id, day, count, platform in [
            (1, days_ago(0), 3, "Web"),
            (1, days_ago(1), 2, "Mobile"),
            (1, days_ago(40), 1, "Web"),
            (3, days_ago(0), 4, "Web"),
            (4, days_ago(1), 10, "Web"),
            (5, days_ago(0), 1, "API"),
            (6, days_ago(0), 2, "Web"),
            (7, days_ago(0), 9, "Web"),
        ]:
            views.extend(
                {"business_id": business_id, "viewed_at": at(day, 9 + i % 10), "platform": platform}
                for i in range(count)
            )
        conn.execute(business_view_logs.insert(), views)

        conn.execute(business_reviews.insert(), [
            {"business_id": 1, "rating": 5, "is_active": True, "created_at": at(days_ago(0))},
            {"business_id": 1, "rating": 1, "is_active": False, "created_at": at(days_ago(0))},
            {"business_id": 1, "rating": 4, "is_active": True, "created_at": at(days_ago(35))},
            {"business_id": 3, "rating": 3, "is_active": True, "created_at": at(days_ago(0))},
            {"business_id": 4, "rating": 5, "is_active": True, "created_at": at(days_ago(1))},
            {"business_id": 4, "rating": 5, "is_active": True, "created_at": at(days_ago(1))},
            {"business_id": 5, "rating": 2, "is_active": True, "created_at": at(days_ago(0))},
        ])
        conn.execute(favorite_businesses.insert(), [
            {"business_id": 1, "user_id": "u-rival", "created_at": at(days_ago(2))},
        ])
    return engine


@pytest.fixture()
def seeded_repo(seeded_engine):
    return AnalyticsRepository(seeded_engine)
