"""
Civilian service sessions: clocked time of detectives in plain clothes.
"""
from datetime import datetime
from sqlalchemy import String, ForeignKey, Integer, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from personalsystem.core.database.base import Base, TimestampMixin, generate_ulid
from personalsystem.features.employees.models import Employee
from personalsystem.utils import utcnow


class CivilianServiceSession(Base, TimestampMixin):
    __tablename__ = "civilian_service_sessions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    employee_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    # Whole minutes, set on clock-out
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    employee: Mapped[Employee] = relationship(Employee, lazy="selectin")

    @property
    def is_active(self) -> bool:
        return self.end_time is None

    def close(self, now: datetime | None = None) -> int:
        """End the session and return its duration in whole minutes."""
        self.end_time = now or utcnow()
        self.duration = max(0, int((self.end_time - self.start_time).total_seconds() // 60))
        return self.duration
