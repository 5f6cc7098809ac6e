"""
Blacklist of Discord accounts barred from applying.
"""
from datetime import datetime
from sqlalchemy import String, ForeignKey, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from personalsystem.core.database.base import Base, TimestampMixin, generate_ulid
from personalsystem.features.users.models import User
from personalsystem.utils import utcnow


class BlacklistEntry(Base, TimestampMixin):
    __tablename__ = "blacklist"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    discord_id: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    # Null means permanent
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    added_by_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    added_by: Mapped[User | None] = relationship(User, lazy="selectin")

    def is_active(self, now: datetime | None = None) -> bool:
        return self.expires_at is None or self.expires_at > (now or utcnow())
