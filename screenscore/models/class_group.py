import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from screenscore.database import Base


class ClassGroup(Base):
    __tablename__ = "class_groups"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )
    teacher_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    daily_limit_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=120)
    weekend_mode: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    strict_mode: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    students: Mapped[list["Student"]] = relationship(back_populates="class_group")  # noqa: F821
    apps: Mapped[list["ClassApp"]] = relationship(
        back_populates="class_group", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<ClassGroup(id={self.id}, name={self.name!r})>"


class ClassApp(Base):
    __tablename__ = "class_apps"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )
    class_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("class_groups.id", ondelete="CASCADE"), nullable=False,
    )
    app_name: Mapped[str] = mapped_column(String(100), nullable=False)  # normalized identifier
    app_type: Mapped[str] = mapped_column(String(10), nullable=False)  # 'allow' or 'block'
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    class_group: Mapped["ClassGroup"] = relationship(back_populates="apps")

    __table_args__ = (
        UniqueConstraint("class_id", "app_name", name="uq_class_app_name"),
    )

    def __repr__(self) -> str:
        return f"<ClassApp(id={self.id}, app_name={self.app_name!r}, app_type={self.app_type!r})>"
