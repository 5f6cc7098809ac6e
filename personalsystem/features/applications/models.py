"""
HR applications from Discord users wanting to join.
"""
from datetime import datetime
from sqlalchemy import String, ForeignKey, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from personalsystem.core.database.base import Base, TimestampMixin, generate_ulid
from personalsystem.features.users.models import User


APPLICATION_STATUSES = ("PENDING", "INTERVIEW", "ACCEPTED", "REJECTED")
OPEN_STATUSES = ("PENDING", "INTERVIEW")


class Application(Base, TimestampMixin):
    __tablename__ = "applications"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    discord_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    discord_username: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING", index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    interview_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    interview_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    processed_by_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_by: Mapped[User | None] = relationship(User, foreign_keys=[created_by_id], lazy="selectin")
    processed_by: Mapped[User | None] = relationship(User, foreign_keys=[processed_by_id], lazy="selectin")
