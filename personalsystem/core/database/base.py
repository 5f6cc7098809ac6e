"""
SQLAlchemy declarative base and common model utilities.

All SQLAlchemy models should inherit from Base.
"""
from datetime import datetime
from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
import ulid

from personalsystem.utils import utcnow


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ulid.new())


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Usage:
        from personalsystem.core.database.base import Base

        class Employee(Base):
            __tablename__ = "employees"

            id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
            rank: Mapped[str] = mapped_column(String(100))
    """
    pass


class TimestampMixin:
    """
    Mixin to add created_at and updated_at timestamps to models.

    Timestamps are naive UTC and set on the Python side so that loaded
    instances stay usable after a flush.
    """
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )
