"""Table definitions for the analytics store."""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Text, primary_key=True),
    Column("email", Text, unique=True, nullable=False),
    Column("tier", Text, nullable=False, default="basic"),
    Column("email_reports", Boolean, nullable=False, default=False),
)

businesses = Table(
    "businesses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Text, ForeignKey("users.id"), nullable=False),
    Column("name", Text, nullable=False),
    Column("category", Text, nullable=False),
    Column("town", Text, nullable=False),
    Column("status", Text, nullable=False, default="Active"),
    Index("ix_businesses_category_status", "category", "status"),
)

business_view_logs = Table(
    "business_view_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("business_id", Integer, ForeignKey("businesses.id"), nullable=False),
    Column("viewed_at", DateTime, nullable=False),
    Column("platform", Text, nullable=False, default="Web"),
    Column("ip_address", Text),
    Column("user_agent", Text),
    Index("ix_view_logs_business_viewed_at", "business_id", "viewed_at"),
)

business_reviews = Table(
    "business_reviews",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("business_id", Integer, ForeignKey("businesses.id"), nullable=False),
    Column("rating", Integer, nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime, nullable=False),
    Index("ix_reviews_business_created_at", "business_id", "created_at"),
)

favorite_businesses = Table(
    "favorite_businesses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("business_id", Integer, ForeignKey("businesses.id"), nullable=False),
    Column("user_id", Text),
    Column("created_at", DateTime, nullable=False),
    Index("ix_favorites_business_created_at", "business_id", "created_at"),
)

analytics_snapshots = Table(
    "analytics_snapshots",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("business_id", Integer, ForeignKey("businesses.id"), nullable=False),
    Column("snapshot_date", Date, nullable=False),
    Column("total_views", Integer, nullable=False, default=0),
    Column("total_reviews", Integer, nullable=False, default=0),
    Column("total_favorites", Integer, nullable=False, default=0),
    Column("average_rating", Float),
    Column("engagement_score", Float),
    Column("created_at", DateTime, nullable=False),
    UniqueConstraint("business_id", "snapshot_date", name="uq_snapshot_business_date"),
)

sends = Table(
    "sends",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("ts", DateTime, nullable=False),
    Column("kind", Text),
    Column("user_id", Text, ForeignKey("users.id")),
    Column("status", Text),
)
