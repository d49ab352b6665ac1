"""Seed the database with demo users, businesses and a couple of months of activity."""

from __future__ import annotations

import asyncio
import pathlib
import random
from datetime import timedelta

import yaml
from dotenv import load_dotenv
from sqlalchemy import insert, select

from bizpulse.db.migrate import run_migrations
from bizpulse.db.repository import AnalyticsRepository
from bizpulse.db.session import create_engine_from_env
from bizpulse.db.tables import business_reviews, business_view_logs, businesses, favorite_businesses, users
from bizpulse.logic.snapshots import SnapshotService
from bizpulse.models import Platform
from bizpulse.utils.dates import day_start, today_utc

DATA_PATH = pathlib.Path(__file__).with_name("demo_data.yml")
HISTORY_DAYS = 60
PLATFORMS = [Platform.WEB.value, Platform.MOBILE.value, Platform.API.value]


def load_demo_data(path: pathlib.Path = DATA_PATH) -> dict:
    return yaml.safe_load(path.read_text())


def main() -> None:
    load_dotenv()
    engine = create_engine_from_env()
    run_migrations(engine)
    data = load_demo_data()
    rng = random.Random(7)
    today = today_utc()

    with engine.begin() as conn:
        existing_users = set(conn.execute(select(users.c.id)).scalars())
        for user in data["users"]:
            if user["id"] not in existing_users:
                conn.execute(insert(users).values(**user))
        existing_names = set(conn.execute(select(businesses.c.name)).scalars())
        for business in data["businesses"]:
            if business["name"] in existing_names:
                continue
            business_id = conn.execute(insert(businesses).values(status="Active", **business)).inserted_primary_key[0]
            views, reviews, favorites = [], [], []
            popularity = rng.randint(5, 40)
            for offset in range(HISTORY_DAYS):
                day = day_start(today - timedelta(days=offset))
                for _ in range(rng.randint(0, popularity)):
                    views.append({
                        "business_id": business_id,
                        "viewed_at": day + timedelta(minutes=rng.randint(0, 1439)),
                        "platform": rng.choice(PLATFORMS),
                    })
                if rng.random() < 0.3:
                    reviews.append({
                        "business_id": business_id,
                        "rating": rng.randint(2, 5),
                        "is_active": True,
                        "created_at": day + timedelta(hours=rng.randint(8, 20)),
                    })
                if rng.random() < 0.2:
                    favorites.append({"business_id": business_id, "created_at": day + timedelta(hours=12)})
            for table, rows in ((business_view_logs, views), (business_reviews, reviews), (favorite_businesses, favorites)):
                if rows:
                    conn.execute(insert(table), rows)

    service = SnapshotService(AnalyticsRepository(engine))
    created = 0
    for offset in range(1, HISTORY_DAYS + 1):
        created += asyncio.run(service.create_daily_snapshots(today - timedelta(days=offset)))
    print(f"Seed complete ({created} snapshots)")


if __name__ == "__main__":
    main()
