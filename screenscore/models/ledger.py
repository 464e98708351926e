import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from screenscore.database import Base


class ScoreLedger(Base):
    __tablename__ = "score_ledgers"

    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("students.id", ondelete="CASCADE"), primary_key=True,
    )
    # Multiples of 0.5 only, exact in binary floating point
    points: Mapped[float] = mapped_column(Float, nullable=False, default=10.0)
    current_streak_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_evaluated_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=func.now()
    )

    # Relationships
    student: Mapped["Student"] = relationship(back_populates="ledger")  # noqa: F821

    def __repr__(self) -> str:
        return f"<ScoreLedger(student_id={self.student_id}, points={self.points})>"


class DailyEvaluation(Base):
    """Journal of the ledger mutation applied for one (student, date).

    Holds what is needed to reverse the mutation when the date is
    re-evaluated: the effective point change and the streak state before it.
    """

    __tablename__ = "daily_evaluations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False,
    )
    evaluated_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # 'compliant' or 'violation'
    reason: Mapped[str] = mapped_column(String(30), nullable=False)  # 'none', 'over_limit', 'blocked_app_used'
    total_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    effective_limit_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    points_change: Mapped[float] = mapped_column(Float, nullable=False)
    bonus_applied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # False = applied back-dated: points only, streak counters untouched
    streak_applied: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # Streak state before the first forward application of this date
    previous_streak_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    previous_longest_streak_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    previous_evaluated_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("student_id", "evaluated_date", name="uq_evaluation_student_date"),
    )

    def __repr__(self) -> str:
        return f"<DailyEvaluation(student_id={self.student_id}, date={self.evaluated_date}, status={self.status!r})>"
