import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from screenscore.database import Base


class Student(Base):
    __tablename__ = "students"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )
    class_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("class_groups.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    class_group: Mapped["ClassGroup"] = relationship(back_populates="students")  # noqa: F821
    ledger: Mapped["ScoreLedger"] = relationship(  # noqa: F821
        back_populates="student", cascade="all, delete-orphan", uselist=False,
    )

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, full_name={self.full_name!r})>"
