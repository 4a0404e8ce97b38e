"""
Base mixins for database models.

Provides common functionality:
- Base: declarative base shared by every table
- TimestampMixin: created_at, updated_at timestamps
- generate_uuid: UUID generation for primary keys
- utcnow / ensure_utc: timezone handling shared by models and services
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TimestampMixin:
    """created_at and updated_at columns, set in Python as aware UTC datetimes."""

    # Python-side default keeps microsecond ordering for latest-by-email lookups
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        comment="Row creation time (UTC)"
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        comment="Last write time (UTC)"
    )


__all__ = ["Base", "TimestampMixin", "generate_uuid", "utcnow", "ensure_utc"]
