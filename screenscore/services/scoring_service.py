"""Scoring Service.

Runs one usage submission through the engine:
1. Validate the usage summary (ingest)
2. Resolve the student's class policy for the usage date
3. Classify the day
4. Store the usage report and apply the verdict to the ledger, under the
   student's lock, and commit

A failed submission leaves no trace: the session is rolled back and the
error propagates to the caller.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from screenscore.core.exceptions import ConcurrentUpdateConflict, UnknownStudent
from screenscore.models.ledger import ScoreLedger
from screenscore.models.student import Student
from screenscore.models.usage import UsageReport
from screenscore.services.evaluator import EvaluationVerdict, evaluate
from screenscore.services.ledger_service import apply_evaluation, ledger_locks
from screenscore.services.policy_resolver import (
    PolicySnapshot,
    default_policy,
    get_class_policy,
    resolve,
)
from screenscore.services.usage_ingest import UsageEvent, validate_usage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionResult:
    verdict: EvaluationVerdict
    policy: PolicySnapshot
    ledger: ScoreLedger
    re_evaluated: bool


async def resolve_student_policy(
    db: AsyncSession,
    student: Student,
    usage_date: date,
) -> PolicySnapshot:
    """Resolve the policy that applies to ``student`` on ``usage_date``."""
    if student.class_id is None:
        class_policy = default_policy()
    else:
        class_policy = await get_class_policy(db, student.class_id)
    return resolve(class_policy, usage_date)


async def _store_usage_report(db: AsyncSession, event: UsageEvent) -> bool:
    """Insert or replace the usage report. Returns True if one was replaced."""
    result = await db.execute(
        select(UsageReport).where(
            UsageReport.student_id == event.student_id,
            UsageReport.usage_date == event.usage_date,
        )
    )
    report = result.scalar_one_or_none()
    if report is None:
        db.add(UsageReport(
            student_id=event.student_id,
            usage_date=event.usage_date,
            total_minutes=event.total_minutes,
            per_app_minutes=dict(event.per_app_minutes),
        ))
        return False

    report.total_minutes = event.total_minutes
    report.per_app_minutes = dict(event.per_app_minutes)
    report.revision += 1
    return True


async def submit_usage(
    db: AsyncSession,
    student_id: uuid.UUID,
    usage_date: date,
    total_minutes: int,
    per_app_minutes: Mapping[str, int] | None = None,
) -> SubmissionResult:
    """Evaluate one day of usage for a student and update the ledger.

    Raises:
        InvalidUsageEvent: The usage summary is malformed.
        UnknownStudent: The student does not exist.
        UnknownClass: The student's class does not exist.
        InvalidConfig: The class policy is out of range.
        ConcurrentUpdateConflict: The ledger is busy; retry with backoff.
    """
    event = validate_usage(student_id, usage_date, total_minutes, per_app_minutes)

    student = await db.get(Student, student_id)
    if student is None:
        raise UnknownStudent(f"Student {student_id} not found")

    snapshot = await resolve_student_policy(db, student, usage_date)
    verdict = evaluate(event, snapshot)

    async with ledger_locks.hold(student_id):
        try:
            re_evaluated = await _store_usage_report(db, event)
            ledger = await apply_evaluation(
                db,
                student_id,
                usage_date,
                verdict,
                total_minutes=event.total_minutes,
                effective_limit_minutes=snapshot.effective_limit_minutes,
            )
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            logger.warning("Concurrent ledger write for student %s on %s", student_id, usage_date)
            raise ConcurrentUpdateConflict(
                f"Ledger of student {student_id} changed concurrently, retry later"
            ) from exc
        except Exception:
            await db.rollback()
            raise

    return SubmissionResult(
        verdict=verdict,
        policy=snapshot,
        ledger=ledger,
        re_evaluated=re_evaluated,
    )
