"""
Detective folders, case files and their evidence images.

Every detective owns at most one folder; cases live in folders.
"""
from datetime import datetime
from sqlalchemy import String, ForeignKey, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from personalsystem.core.database.base import Base, TimestampMixin, generate_ulid
from personalsystem.features.employees.models import Employee
from personalsystem.features.users.models import User


class DetectiveFolder(Base, TimestampMixin):
    __tablename__ = "detective_folders"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="OPEN")
    detective_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("employees.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    created_by_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    closed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    detective: Mapped[Employee] = relationship(Employee, lazy="selectin")
    created_by: Mapped[User | None] = relationship(User, lazy="selectin")
    cases: Mapped[list["Case"]] = relationship(
        "Case",
        back_populates="folder",
        lazy="selectin",
        order_by="Case.created_at.desc()",
    )

    @property
    def case_count(self) -> int:
        return len(self.cases)


class Case(Base, TimestampMixin):
    __tablename__ = "cases"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    case_number: Mapped[str] = mapped_column(String(30), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="OPEN", index=True)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="NORMAL")
    suspects: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    folder_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("detective_folders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_by_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    closed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    folder: Mapped[DetectiveFolder] = relationship(DetectiveFolder, back_populates="cases", lazy="selectin")
    created_by: Mapped[User | None] = relationship(User, lazy="selectin")
    images: Mapped[list["CaseImage"]] = relationship(
        "CaseImage",
        lazy="selectin",
        order_by="CaseImage.created_at.desc()",
    )

    @property
    def image_count(self) -> int:
        return len(self.images)


class CaseImage(Base, TimestampMixin):
    __tablename__ = "case_images"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    case_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True
    )
    image_path: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    uploaded_by_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    uploaded_by: Mapped[User | None] = relationship(User, lazy="selectin")
