"""
Employee model: a user's place on the roster.
"""
from datetime import datetime
from sqlalchemy import String, ForeignKey, Integer, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from personalsystem.core.database.base import Base, TimestampMixin, generate_ulid
from personalsystem.features.employees.ranks import team_for_level
from personalsystem.features.users.models import User
from personalsystem.utils import utcnow


EMPLOYEE_STATUSES = ("ACTIVE", "INACTIVE", "ON_LEAVE", "SUSPENDED", "TERMINATED")


class Employee(Base, TimestampMixin):
    __tablename__ = "employees"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True
    )
    badge_number: Mapped[str | None] = mapped_column(String(20), unique=True, nullable=True)
    rank: Mapped[str] = mapped_column(String(100), nullable=False, default="Cadet")
    rank_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, index=True)
    department: Mapped[str] = mapped_column(String(200), nullable=False, default="Patrol")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE", index=True)
    hire_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    user: Mapped[User] = relationship(User, lazy="selectin")

    @property
    def team(self) -> str | None:
        try:
            return team_for_level(self.rank_level).label
        except ValueError:
            return None

    def __repr__(self) -> str:
        return f"<Employee(id={self.id}, rank={self.rank!r}, badge={self.badge_number})>"
