"""
Base model and mixins for Manifest Bot.

This module defines the base SQLAlchemy model and common mixins used by other models.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Current UTC time, timezone-aware."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class IntPK(Base):
    """
    Mixin that adds an integer primary key column.

    Attributes:
        id (int): Primary key
    """
    __abstract__ = True
    id: Mapped[int] = mapped_column(Integer, primary_key=True)


class Timestamped(IntPK):
    """
    Mixin that adds creation and modification timestamps.

    ``updated_at`` is bumped explicitly through :meth:`touch` by the code that
    mutates the record.
    """
    __abstract__ = True
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    def touch(self) -> None:
        self.updated_at = utcnow()
