"""Shared declarative base and column helpers for all ORM models.

Having a single ``Base`` class keeps the SQLAlchemy metadata in one place
so that metadata operations (such as creating tables for tests or the
demo seed script) work consistently across the application.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    pass


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how the auth service stores expiry times."""

    return datetime.now(timezone.utc).replace(tzinfo=None)
