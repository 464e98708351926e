"""Score Ledger Service.

Owns the per-student point balance and streak counters. A verdict for a
(student, date) is applied exactly once: re-evaluating a date first reverses
the mutation recorded for it in the ``daily_evaluations`` journal.

Point rules:
- compliant day: +0.5, streak +1 (+0.5 bonus whenever the streak hits a
  multiple of 30)
- violation: -0.5, streak reset to 0
- balance never drops below 0.0

Streaks are forward-only. A date before ``last_evaluated_date`` only
corrects points; intermediate streak values are never recomputed.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from screenscore.config import settings
from screenscore.core.exceptions import ConcurrentUpdateConflict, UnknownStudent
from screenscore.models.ledger import DailyEvaluation, ScoreLedger
from screenscore.models.student import Student
from screenscore.services.evaluator import EvaluationVerdict

logger = logging.getLogger(__name__)

STARTING_POINTS = 10.0
DAILY_POINTS = 0.5
STREAK_BONUS_POINTS = 0.5
STREAK_BONUS_INTERVAL_DAYS = 30


# ---------------------------------------------------------------------------
# Pure ledger arithmetic
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class LedgerState:
    points: float = STARTING_POINTS
    current_streak_days: int = 0
    longest_streak_days: int = 0
    last_evaluated_date: date | None = None


@dataclass(frozen=True)
class AppliedEvaluation:
    """What one application changed, enough to reverse it later."""

    evaluated_date: date
    status: str
    reason: str
    points_change: float
    bonus_applied: bool
    streak_applied: bool
    previous_streak_days: int | None
    previous_longest_streak_days: int | None
    previous_evaluated_date: date | None


def clamp_points(points: float) -> float:
    return max(0.0, points)


def _points_for(verdict: EvaluationVerdict, streak_after: int | None) -> tuple[float, bool]:
    if not verdict.is_compliant:
        return -DAILY_POINTS, False
    bonus = (
        streak_after is not None
        and streak_after > 0
        and streak_after % STREAK_BONUS_INTERVAL_DAYS == 0
    )
    return DAILY_POINTS + (STREAK_BONUS_POINTS if bonus else 0.0), bonus


def reverse_evaluation(state: LedgerState, applied: AppliedEvaluation) -> LedgerState:
    """Undo a previously applied evaluation."""
    points = clamp_points(state.points - applied.points_change)
    if applied.streak_applied and state.last_evaluated_date == applied.evaluated_date:
        return LedgerState(
            points=points,
            current_streak_days=applied.previous_streak_days or 0,
            longest_streak_days=applied.previous_longest_streak_days or 0,
            last_evaluated_date=applied.previous_evaluated_date,
        )
    return replace(state, points=points)


def apply_verdict(
    state: LedgerState,
    evaluated_date: date,
    verdict: EvaluationVerdict,
    prior: AppliedEvaluation | None = None,
) -> tuple[LedgerState, AppliedEvaluation]:
    """Apply ``verdict`` for ``evaluated_date`` and return the new state.

    ``prior`` is the evaluation already applied for the same date, if any;
    it is reversed before the new verdict is applied.
    """
    if prior is not None:
        state = reverse_evaluation(state, prior)

    if state.last_evaluated_date is None or evaluated_date > state.last_evaluated_date:
        if verdict.is_compliant:
            streak = state.current_streak_days + 1
        else:
            streak = 0
        longest = max(state.longest_streak_days, streak)
        delta, bonus = _points_for(verdict, streak)
        points = clamp_points(state.points + delta)

        applied = AppliedEvaluation(
            evaluated_date=evaluated_date,
            status=verdict.status,
            reason=verdict.reason,
            points_change=points - state.points,
            bonus_applied=bonus,
            streak_applied=True,
            previous_streak_days=state.current_streak_days,
            previous_longest_streak_days=state.longest_streak_days,
            previous_evaluated_date=state.last_evaluated_date,
        )
        return LedgerState(points, streak, longest, evaluated_date), applied

    # Back-dated: correct points only. The streak baseline recorded by the
    # first forward application decides whether the bonus still applies.
    baseline = prior.previous_streak_days if prior is not None else None
    streak_after = baseline + 1 if baseline is not None and verdict.is_compliant else None
    delta, bonus = _points_for(verdict, streak_after)
    points = clamp_points(state.points + delta)

    applied = AppliedEvaluation(
        evaluated_date=evaluated_date,
        status=verdict.status,
        reason=verdict.reason,
        points_change=points - state.points,
        bonus_applied=bonus,
        streak_applied=False,
        previous_streak_days=baseline,
        previous_longest_streak_days=prior.previous_longest_streak_days if prior else None,
        previous_evaluated_date=prior.previous_evaluated_date if prior else None,
    )
    return replace(state, points=points), applied


# ---------------------------------------------------------------------------
# Per-student locking
# ---------------------------------------------------------------------------
class LedgerLocks:
    """Registry of per-student locks.

    Entries vanish once no coroutine holds or waits on them, so students
    never share a lock and the registry does not grow without bound.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._locks: weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._timeout = timeout

    def _lock_for(self, student_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(student_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[student_id] = lock
        return lock

    def is_locked(self, student_id: uuid.UUID) -> bool:
        lock = self._locks.get(student_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, student_id: uuid.UUID) -> AsyncIterator[None]:
        """Hold the student's lock for the duration of the block.

        Raises:
            ConcurrentUpdateConflict: If the lock is not acquired in time.
        """
        timeout = self._timeout if self._timeout is not None else settings.LEDGER_LOCK_TIMEOUT_SECONDS
        lock = self._lock_for(student_id)
        try:
            await asyncio.wait_for(lock.acquire(), timeout)
        except TimeoutError:
            logger.warning("Ledger lock contention for student %s", student_id)
            raise ConcurrentUpdateConflict(
                f"Ledger of student {student_id} is being updated, retry later"
            ) from None
        try:
            yield
        finally:
            lock.release()


# Singleton instance
ledger_locks = LedgerLocks()


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------
def _state_of(ledger: ScoreLedger) -> LedgerState:
    return LedgerState(
        points=ledger.points,
        current_streak_days=ledger.current_streak_days,
        longest_streak_days=ledger.longest_streak_days,
        last_evaluated_date=ledger.last_evaluated_date,
    )


def _applied_of(row: DailyEvaluation) -> AppliedEvaluation:
    return AppliedEvaluation(
        evaluated_date=row.evaluated_date,
        status=row.status,
        reason=row.reason,
        points_change=row.points_change,
        bonus_applied=row.bonus_applied,
        streak_applied=row.streak_applied,
        previous_streak_days=row.previous_streak_days,
        previous_longest_streak_days=row.previous_longest_streak_days,
        previous_evaluated_date=row.previous_evaluated_date,
    )


async def ensure_ledger(db: AsyncSession, student_id: uuid.UUID) -> ScoreLedger:
    """Return the student's ledger, creating it at the starting balance."""
    result = await db.execute(
        select(ScoreLedger)
        .where(ScoreLedger.student_id == student_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    ledger = result.scalar_one_or_none()
    if ledger is None:
        ledger = ScoreLedger(
            student_id=student_id,
            points=STARTING_POINTS,
            current_streak_days=0,
            longest_streak_days=0,
        )
        db.add(ledger)
        await db.flush()
        logger.info("Ledger created for student %s", student_id)
    return ledger


async def get_ledger(db: AsyncSession, student_id: uuid.UUID) -> ScoreLedger | None:
    """Return the ledger of a student, or None if it was never created.

    Raises:
        UnknownStudent: If the student does not exist.
    """
    student = await db.get(Student, student_id)
    if student is None:
        raise UnknownStudent(f"Student {student_id} not found")

    result = await db.execute(select(ScoreLedger).where(ScoreLedger.student_id == student_id))
    return result.scalar_one_or_none()


async def apply_evaluation(
    db: AsyncSession,
    student_id: uuid.UUID,
    evaluated_date: date,
    verdict: EvaluationVerdict,
    total_minutes: int,
    effective_limit_minutes: int,
) -> ScoreLedger:
    """Apply a verdict to the student's ledger and journal it.

    Callers must hold ``ledger_locks.hold(student_id)`` until the session
    is committed.
    """
    ledger = await ensure_ledger(db, student_id)

    result = await db.execute(
        select(DailyEvaluation)
        .where(
            DailyEvaluation.student_id == student_id,
            DailyEvaluation.evaluated_date == evaluated_date,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    row = result.scalar_one_or_none()
    prior = _applied_of(row) if row is not None else None

    state, applied = apply_verdict(_state_of(ledger), evaluated_date, verdict, prior)

    ledger.points = state.points
    ledger.current_streak_days = state.current_streak_days
    ledger.longest_streak_days = state.longest_streak_days
    ledger.last_evaluated_date = state.last_evaluated_date

    if row is None:
        row = DailyEvaluation(student_id=student_id, evaluated_date=evaluated_date)
        db.add(row)
    row.status = applied.status
    row.reason = applied.reason
    row.total_minutes = total_minutes
    row.effective_limit_minutes = effective_limit_minutes
    row.points_change = applied.points_change
    row.bonus_applied = applied.bonus_applied
    row.streak_applied = applied.streak_applied
    row.previous_streak_days = applied.previous_streak_days
    row.previous_longest_streak_days = applied.previous_longest_streak_days
    row.previous_evaluated_date = applied.previous_evaluated_date

    await db.flush()

    logger.info(
        "Ledger %s: %s on %s (%s) -> %+.1f points, balance %.1f, streak %d%s",
        student_id, applied.status, evaluated_date, applied.reason,
        applied.points_change, state.points, state.current_streak_days,
        " (re-evaluated)" if prior is not None else "",
    )
    return ledger
