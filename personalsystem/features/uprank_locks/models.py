"""
Uprank lock model: blocks promotions of an employee until a date.
"""
from datetime import datetime
from sqlalchemy import String, ForeignKey, Boolean, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from personalsystem.core.database.base import Base, TimestampMixin, generate_ulid
from personalsystem.features.employees.models import Employee
from personalsystem.features.users.models import User


class UprankLock(Base, TimestampMixin):
    __tablename__ = "uprank_locks"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    employee_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    team: Mapped[str] = mapped_column(String(50), nullable=False)
    locked_until: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    created_by_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    employee: Mapped[Employee] = relationship(Employee, lazy="selectin")
    created_by: Mapped[User | None] = relationship(User, lazy="selectin")
