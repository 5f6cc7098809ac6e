"""
Role, permission, audit log and settings models for the RBAC core.

Users carry any number of roles, roles bundle string permissions such as
``employees.view``. ``admin.full`` overrides every check.
"""
from datetime import datetime
from typing import Any, Dict
from sqlalchemy import String, ForeignKey, Table, Column, JSON, Text, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from personalsystem.core.database.base import Base, TimestampMixin, generate_ulid
from personalsystem.utils import utcnow


# ============================================================================
# Association Tables for Many-to-Many Relationships
# ============================================================================

user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", String(26), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("assigned_at", DateTime, nullable=False, default=utcnow),
)

role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", String(26), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", String(26), ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)


# ============================================================================
# Core Models
# ============================================================================

class Permission(Base, TimestampMixin):
    """
    A named capability, ``<category>.<action>``.

    Examples: employees.view, bonus.pay, admin.full
    """
    __tablename__ = "permissions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general", index=True)

    def __repr__(self) -> str:
        return f"<Permission(id={self.id}, name={self.name!r})>"


class Role(Base, TimestampMixin):
    """
    Role bundling permissions, usually mirrored from a Discord role.

    ``level`` orders roles; a user's max level is the highest of their roles.
    """
    __tablename__ = "roles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str | None] = mapped_column(String(20), nullable=True)
    discord_role_id: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True)
    level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    permissions: Mapped[list["Permission"]] = relationship(
        "Permission",
        secondary=role_permissions,
        lazy="selectin",
        order_by="Permission.name",
    )

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r}, level={self.level})>"


class AuditLog(Base):
    """
    Audit trail of state-changing API requests.

    Written by the audit middleware for every successful mutation.
    """
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    action: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    entity: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    entity_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False, index=True)

    user: Mapped["User"] = relationship("User", lazy="selectin")  # type: ignore

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action={self.action!r}, entity={self.entity})>"


class SystemSetting(Base, TimestampMixin):
    """Key/value store for admin-editable settings."""
    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")
