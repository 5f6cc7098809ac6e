"""
Robbery log entries, kept for the current week only.
"""
from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from personalsystem.core.database.base import Base, TimestampMixin, generate_ulid
from personalsystem.features.employees.models import Employee
from personalsystem.features.users.models import User


class Robbery(Base, TimestampMixin):
    __tablename__ = "robberies"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    leader_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True
    )
    negotiator_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
    )
    image_path: Mapped[str] = mapped_column(String(255), nullable=False)
    created_by_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    leader: Mapped[Employee] = relationship(Employee, foreign_keys=[leader_id], lazy="selectin")
    negotiator: Mapped[Employee | None] = relationship(Employee, foreign_keys=[negotiator_id], lazy="selectin")
    created_by: Mapped[User | None] = relationship(User, lazy="selectin")
