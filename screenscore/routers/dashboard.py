"""Teacher dashboard summary."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from screenscore.database import get_db
from screenscore.models.class_group import ClassGroup
from screenscore.models.ledger import ScoreLedger
from screenscore.models.student import Student
from screenscore.schemas.dashboard import DashboardSummary
from screenscore.services.ledger_service import STARTING_POINTS

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/summary", response_model=DashboardSummary)
async def get_summary(
    db: Annotated[AsyncSession, Depends(get_db)],
    teacher_id: uuid.UUID | None = None,
):
    """Counts and score averages across a teacher's classes (or all classes)."""
    class_query = select(ClassGroup.id)
    if teacher_id is not None:
        class_query = class_query.where(ClassGroup.teacher_id == teacher_id)
    class_ids = list((await db.execute(class_query)).scalars().all())

    if not class_ids:
        return DashboardSummary(class_count=0, student_count=0, needs_attention_count=0)

    result = await db.execute(
        select(
            func.count(Student.id),
            func.count(ScoreLedger.student_id).filter(ScoreLedger.points < STARTING_POINTS),
            func.avg(ScoreLedger.points),
        )
        .select_from(Student)
        .outerjoin(ScoreLedger, ScoreLedger.student_id == Student.id)
        .where(Student.class_id.in_(class_ids))
    )
    student_count, needs_attention, average = result.one()

    return DashboardSummary(
        class_count=len(class_ids),
        student_count=student_count,
        needs_attention_count=needs_attention,
        average_points=round(average, 2) if average is not None else None,
    )
