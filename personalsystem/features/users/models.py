"""
User model with ULID primary keys.
"""
from datetime import datetime
from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from personalsystem.core.database.base import Base, TimestampMixin, generate_ulid
from personalsystem.features.permissions.models import Role, user_roles


class User(Base, TimestampMixin):
    """
    A Discord account that has logged in or was registered through HR.

    Roles (and through them permissions) are eagerly loaded.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Discord identity
    discord_id: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    avatar: Mapped[str | None] = mapped_column(String(500), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    roles: Mapped[list[Role]] = relationship(
        Role,
        secondary=user_roles,
        lazy="selectin",
        order_by=Role.level.desc(),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username!r})>"
