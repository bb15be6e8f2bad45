"""
UTC timestamp columns shared by the tenancy tables
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive values are taken to be UTC; SQLite hands them back without an offset"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def timestamp_column(nullable: bool = False) -> Column:
    # A fresh Column per field; SQLAlchemy binds each one to a single table
    return Column(DateTime(timezone=True), nullable=nullable)
