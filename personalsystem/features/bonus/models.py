"""
Bonus configuration, payments and weekly payout records.
"""
from datetime import datetime
from sqlalchemy import String, ForeignKey, Integer, Boolean, DateTime, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from personalsystem.core.database.base import Base, TimestampMixin, generate_ulid
from personalsystem.features.employees.models import Employee
from personalsystem.features.users.models import User


class BonusConfig(Base, TimestampMixin):
    """Amount paid per activity type. Amount 0 disables the bonus."""
    __tablename__ = "bonus_configs"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    activity_type: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="GENERAL")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class BonusPayment(Base, TimestampMixin):
    __tablename__ = "bonus_payments"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    config_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("bonus_configs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    employee_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING", index=True)
    week_start: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    week_end: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    paid_by_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    config: Mapped[BonusConfig] = relationship(BonusConfig, lazy="selectin")
    employee: Mapped[Employee] = relationship(Employee, lazy="selectin")
    paid_by: Mapped[User | None] = relationship(User, lazy="selectin")


class BonusWeek(Base, TimestampMixin):
    __tablename__ = "bonus_weeks"
    __table_args__ = (UniqueConstraint("week_start", "week_end", name="uq_bonus_week"),)

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    week_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    week_end: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="OPEN")
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    submitted_to_management: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
