"""Classes router.

Endpoints for managing classes, their policy configuration, the per-class
allow/block app lists and the class roster.
"""

import uuid
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from screenscore.database import get_db
from screenscore.models.class_group import ClassApp, ClassGroup
from screenscore.models.ledger import ScoreLedger
from screenscore.models.student import Student
from screenscore.schemas.class_group import (
    ClassAppCreate,
    ClassAppResponse,
    ClassGroupCreate,
    ClassGroupResponse,
    ClassGroupUpdate,
    ClassPolicyResponse,
    PolicySnapshotResponse,
)
from screenscore.schemas.student import RosterEntry
from screenscore.services.ledger_service import STARTING_POINTS
from screenscore.services.milestone_service import level_progress
from screenscore.services.policy_resolver import (
    get_class_policy,
    invalidate_class_policy,
    resolve,
    validate_daily_limit,
)
from screenscore.services.usage_ingest import normalize_app_id

router = APIRouter(prefix="/classes", tags=["Classes"])


async def _get_class_or_404(db: AsyncSession, class_id: uuid.UUID) -> ClassGroup:
    result = await db.execute(select(ClassGroup).where(ClassGroup.id == class_id))
    class_group = result.scalar_one_or_none()

    if class_group is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Class not found",
        )

    return class_group


async def _student_count(db: AsyncSession, class_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count(Student.id)).where(Student.class_id == class_id)
    )
    return result.scalar_one()


def _class_response(class_group: ClassGroup, student_count: int) -> ClassGroupResponse:
    response = ClassGroupResponse.model_validate(class_group)
    response.student_count = student_count
    return response


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


@router.get("/", response_model=list[ClassGroupResponse])
async def list_classes(
    db: Annotated[AsyncSession, Depends(get_db)],
    teacher_id: uuid.UUID | None = None,
):
    """List classes, optionally only those of one teacher."""
    counts = (
        select(Student.class_id, func.count(Student.id).label("student_count"))
        .group_by(Student.class_id)
        .subquery()
    )
    query = (
        select(ClassGroup, func.coalesce(counts.c.student_count, 0))
        .outerjoin(counts, counts.c.class_id == ClassGroup.id)
        .order_by(ClassGroup.created_at, ClassGroup.name)
    )
    if teacher_id is not None:
        query = query.where(ClassGroup.teacher_id == teacher_id)

    result = await db.execute(query)
    return [_class_response(class_group, count) for class_group, count in result.all()]


@router.post("/", response_model=ClassGroupResponse, status_code=status.HTTP_201_CREATED)
async def create_class(
    body: ClassGroupCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create a new class with its policy configuration."""
    validate_daily_limit(body.daily_limit_minutes)

    class_group = ClassGroup(**body.model_dump())
    db.add(class_group)
    await db.commit()
    await db.refresh(class_group)
    return _class_response(class_group, 0)


@router.get("/{class_id}", response_model=ClassGroupResponse)
async def get_class(
    class_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    class_group = await _get_class_or_404(db, class_id)
    return _class_response(class_group, await _student_count(db, class_id))


@router.put("/{class_id}", response_model=ClassGroupResponse)
async def update_class(
    class_id: uuid.UUID,
    body: ClassGroupUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Update a class. Policy changes apply to evaluations from now on."""
    class_group = await _get_class_or_404(db, class_id)

    update_data = body.model_dump(exclude_unset=True)
    if update_data.get("daily_limit_minutes") is not None:
        validate_daily_limit(update_data["daily_limit_minutes"])

    for key, value in update_data.items():
        if key in ("name", "daily_limit_minutes", "weekend_mode", "strict_mode") and value is None:
            continue
        setattr(class_group, key, value)

    await db.commit()
    await db.refresh(class_group)
    await invalidate_class_policy(class_id)
    return _class_response(class_group, await _student_count(db, class_id))


@router.delete("/{class_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_class(
    class_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Delete a class. Its students become unassigned; ledgers are kept."""
    class_group = await _get_class_or_404(db, class_id)

    students = await db.execute(select(Student).where(Student.class_id == class_id))
    for student in students.scalars().all():
        student.class_id = None

    await db.delete(class_group)
    await db.commit()
    await invalidate_class_policy(class_id)


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


@router.get("/{class_id}/policy", response_model=ClassPolicyResponse)
async def get_policy(
    class_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Current policy configuration of a class."""
    policy = await get_class_policy(db, class_id)
    return ClassPolicyResponse(**policy.to_dict())


@router.get("/{class_id}/policy/{target_date}", response_model=PolicySnapshotResponse)
async def get_policy_for_date(
    class_id: uuid.UUID,
    target_date: date,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Effective policy of a class on a given date (weekend doubling applied)."""
    snapshot = resolve(await get_class_policy(db, class_id), target_date)
    return PolicySnapshotResponse(
        effective_limit_minutes=snapshot.effective_limit_minutes,
        allow_set=sorted(snapshot.allow_set),
        block_set=sorted(snapshot.block_set),
        strict_mode=snapshot.strict_mode,
        is_weekend=snapshot.is_weekend,
    )


# ---------------------------------------------------------------------------
# Apps
# ---------------------------------------------------------------------------


@router.get("/{class_id}/apps", response_model=list[ClassAppResponse])
async def list_class_apps(
    class_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await _get_class_or_404(db, class_id)

    result = await db.execute(
        select(ClassApp)
        .where(ClassApp.class_id == class_id)
        .order_by(ClassApp.app_type, ClassApp.app_name)
    )
    return list(result.scalars().all())


@router.post(
    "/{class_id}/apps",
    response_model=ClassAppResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_class_app(
    class_id: uuid.UUID,
    body: ClassAppCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Allow or block an app for a class.

    An app is in at most one list: adding it to one list moves it out of
    the other.
    """
    await _get_class_or_404(db, class_id)

    app_name = normalize_app_id(body.app_name)
    if not app_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="App name must not be blank",
        )

    result = await db.execute(
        select(ClassApp).where(ClassApp.class_id == class_id, ClassApp.app_name == app_name)
    )
    app = result.scalar_one_or_none()
    if app is None:
        app = ClassApp(class_id=class_id, app_name=app_name, app_type=body.app_type)
        db.add(app)
    else:
        app.app_type = body.app_type

    await db.commit()
    await db.refresh(app)
    await invalidate_class_policy(class_id)
    return app


@router.delete("/{class_id}/apps/{app_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_class_app(
    class_id: uuid.UUID,
    app_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await _get_class_or_404(db, class_id)

    result = await db.execute(
        select(ClassApp).where(ClassApp.id == app_id, ClassApp.class_id == class_id)
    )
    app = result.scalar_one_or_none()
    if app is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="App not found",
        )

    await db.delete(app)
    await db.commit()
    await invalidate_class_policy(class_id)


# ---------------------------------------------------------------------------
# Roster
# ---------------------------------------------------------------------------


@router.get("/{class_id}/students", response_model=list[RosterEntry])
async def list_class_students(
    class_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Students of a class with their score; flags those below the starting balance."""
    await _get_class_or_404(db, class_id)

    result = await db.execute(
        select(Student, ScoreLedger)
        .outerjoin(ScoreLedger, ScoreLedger.student_id == Student.id)
        .where(Student.class_id == class_id)
        .order_by(Student.full_name)
    )

    roster = []
    for student, ledger in result.all():
        points = ledger.points if ledger is not None else STARTING_POINTS
        roster.append(RosterEntry(
            id=student.id,
            full_name=student.full_name,
            points=points,
            current_streak_days=ledger.current_streak_days if ledger is not None else 0,
            level=level_progress(points).level,
            needs_attention=points < STARTING_POINTS,
        ))
    return roster
