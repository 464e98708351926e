"""Students router.

Endpoints for enrolling students and reading their score ledger,
milestones and evaluation history.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from screenscore.database import get_db
from screenscore.models.class_group import ClassGroup
from screenscore.models.ledger import DailyEvaluation, ScoreLedger
from screenscore.models.student import Student
from screenscore.models.usage import UsageReport
from screenscore.schemas.student import (
    DailyEvaluationResponse,
    LedgerResponse,
    MilestoneResponse,
    StudentCreate,
    StudentResponse,
    StudentUpdate,
)
from screenscore.services.ledger_service import ensure_ledger, get_ledger
from screenscore.services.milestone_service import level_progress, milestones

router = APIRouter(prefix="/students", tags=["Students"])


def ledger_response(ledger: ScoreLedger) -> LedgerResponse:
    progress = level_progress(ledger.points)
    return LedgerResponse(
        student_id=ledger.student_id,
        points=ledger.points,
        current_streak_days=ledger.current_streak_days,
        longest_streak_days=ledger.longest_streak_days,
        last_evaluated_date=ledger.last_evaluated_date,
        level=progress.level,
        next_point=progress.next_point,
        progress_to_next=progress.progress_to_next,
    )


async def _get_student_or_404(db: AsyncSession, student_id: uuid.UUID) -> Student:
    result = await db.execute(select(Student).where(Student.id == student_id))
    student = result.scalar_one_or_none()

    if student is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Student not found",
        )

    return student


async def _verify_class_exists(db: AsyncSession, class_id: uuid.UUID | None) -> None:
    if class_id is None:
        return
    result = await db.execute(select(ClassGroup.id).where(ClassGroup.id == class_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Class not found",
        )


async def _verify_email_free(
    db: AsyncSession, email: str | None, student_id: uuid.UUID | None = None,
) -> None:
    if email is None:
        return
    result = await db.execute(select(Student.id).where(Student.email == email))
    existing = result.scalar_one_or_none()
    if existing is not None and existing != student_id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )


@router.get("/", response_model=list[StudentResponse])
async def list_students(
    db: Annotated[AsyncSession, Depends(get_db)],
    class_id: uuid.UUID | None = None,
):
    query = select(Student).order_by(Student.full_name)
    if class_id is not None:
        query = query.where(Student.class_id == class_id)
    result = await db.execute(query)
    return list(result.scalars().all())


@router.post("/", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
async def create_student(
    body: StudentCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Enroll a student. The score ledger starts at 10.0 points."""
    await _verify_class_exists(db, body.class_id)
    await _verify_email_free(db, body.email)

    student = Student(**body.model_dump())
    db.add(student)
    await db.flush()
    await ensure_ledger(db, student.id)
    await db.commit()
    await db.refresh(student)
    return student


@router.get("/{student_id}", response_model=StudentResponse)
async def get_student(
    student_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await _get_student_or_404(db, student_id)


@router.put("/{student_id}", response_model=StudentResponse)
async def update_student(
    student_id: uuid.UUID,
    body: StudentUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Update a student. Changing ``class_id`` never touches the ledger."""
    student = await _get_student_or_404(db, student_id)

    update_data = body.model_dump(exclude_unset=True)
    if "class_id" in update_data:
        await _verify_class_exists(db, update_data["class_id"])
    if "email" in update_data:
        await _verify_email_free(db, update_data["email"], student_id)

    for key, value in update_data.items():
        if key == "full_name" and value is None:
            continue
        setattr(student, key, value)

    await db.commit()
    await db.refresh(student)
    return student


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_student(
    student_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Remove a student together with their ledger and history."""
    student = await _get_student_or_404(db, student_id)

    await db.execute(delete(DailyEvaluation).where(DailyEvaluation.student_id == student_id))
    await db.execute(delete(UsageReport).where(UsageReport.student_id == student_id))

    await db.delete(student)
    await db.commit()


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------


@router.get("/{student_id}/ledger", response_model=LedgerResponse)
async def read_ledger(
    student_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Point balance, streaks and level progress of a student."""
    ledger = await get_ledger(db, student_id)
    if ledger is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ledger not found",
        )
    return ledger_response(ledger)


@router.get("/{student_id}/milestones", response_model=list[MilestoneResponse])
async def read_milestones(
    student_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    ledger = await get_ledger(db, student_id)
    return [MilestoneResponse(id=m.id, unlocked=m.unlocked) for m in milestones(ledger)]


@router.get("/{student_id}/evaluations", response_model=list[DailyEvaluationResponse])
async def read_evaluations(
    student_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """The last 30 evaluated days of a student, newest first."""
    await _get_student_or_404(db, student_id)

    result = await db.execute(
        select(DailyEvaluation)
        .where(DailyEvaluation.student_id == student_id)
        .order_by(DailyEvaluation.evaluated_date.desc())
        .limit(30)
    )
    return list(result.scalars().all())
