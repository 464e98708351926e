"""Unit tests for ledger arithmetic and per-student locking, no database required."""

import asyncio
import random
import uuid
from datetime import date, timedelta

import pytest

from screenscore.core.exceptions import ConcurrentUpdateConflict
from screenscore.services.evaluator import (
    COMPLIANT,
    REASON_BLOCKED_APP_USED,
    REASON_NONE,
    REASON_OVER_LIMIT,
    VIOLATION,
    EvaluationVerdict,
)
from screenscore.services.ledger_service import LedgerLocks, LedgerState, apply_verdict

GOOD = EvaluationVerdict(COMPLIANT, REASON_NONE)
OVER = EvaluationVerdict(VIOLATION, REASON_OVER_LIMIT)
BLOCKED = EvaluationVerdict(VIOLATION, REASON_BLOCKED_APP_USED, ("tiktok",))

START = date(2024, 9, 2)


def _day(offset: int) -> date:
    return START + timedelta(days=offset)


def _run(verdicts, state=None):
    state = state or LedgerState()
    for offset, verdict in enumerate(verdicts):
        state, _ = apply_verdict(state, _day(offset), verdict)
    return state


class TestApplyVerdict:
    def test_new_ledger_defaults(self):
        state = LedgerState()
        assert state.points == 10.0
        assert state.current_streak_days == 0
        assert state.longest_streak_days == 0
        assert state.last_evaluated_date is None

    def test_compliant_day(self):
        state, applied = apply_verdict(LedgerState(), _day(0), GOOD)

        assert state.points == 10.5
        assert state.current_streak_days == 1
        assert state.longest_streak_days == 1
        assert state.last_evaluated_date == _day(0)
        assert applied.points_change == 0.5
        assert applied.bonus_applied is False

    def test_violation_day(self):
        state, applied = apply_verdict(LedgerState(), _day(0), OVER)

        assert state.points == 9.5
        assert state.current_streak_days == 0
        assert applied.points_change == -0.5

    def test_violation_resets_streak_keeps_longest(self):
        state = _run([GOOD] * 12 + [BLOCKED])
        assert state.current_streak_days == 0
        assert state.longest_streak_days == 12

    def test_longest_only_grows_past_previous_best(self):
        state = _run([GOOD] * 5 + [OVER] + [GOOD] * 3)
        assert state.current_streak_days == 3
        assert state.longest_streak_days == 5

    def test_thirty_day_bonus(self):
        state = LedgerState()
        for offset in range(30):
            state, applied = apply_verdict(state, _day(offset), GOOD)
            assert applied.bonus_applied is (offset == 29)

        assert state.current_streak_days == 30
        assert state.points == 10.0 + 30 * 0.5 + 0.5

    def test_bonus_repeats_every_thirty_days(self):
        state = _run([GOOD] * 60)
        assert state.points == 10.0 + 60 * 0.5 + 2 * 0.5

    def test_points_never_negative(self):
        state = _run([OVER] * 25)
        assert state.points == 0.0

    def test_clamped_change_is_recorded(self):
        state, applied = apply_verdict(LedgerState(points=0.0), _day(0), OVER)
        assert state.points == 0.0
        assert applied.points_change == 0.0

    def test_points_never_negative_for_random_sequences(self):
        rng = random.Random(20240902)
        for _ in range(50):
            state = LedgerState(points=rng.choice([0.0, 0.5, 1.0, 10.0]))
            journal = {}
            for offset in range(60):
                verdict = rng.choice([GOOD, OVER, BLOCKED])
                state, journal[offset] = apply_verdict(state, _day(offset), verdict)
                assert state.points >= 0.0

                # occasionally correct an earlier day
                if rng.random() < 0.2:
                    past = rng.randrange(offset + 1)
                    correction = rng.choice([GOOD, OVER, BLOCKED])
                    state, journal[past] = apply_verdict(
                        state, _day(past), correction, prior=journal[past],
                    )
                    assert state.points >= 0.0


class TestReEvaluation:
    def test_same_verdict_twice_is_idempotent(self):
        base = _run([GOOD] * 4)
        once, applied = apply_verdict(base, _day(4), GOOD)
        twice, _ = apply_verdict(once, _day(4), GOOD, prior=applied)
        assert twice == once

    def test_violation_twice_is_idempotent(self):
        base = _run([GOOD] * 4)
        once, applied = apply_verdict(base, _day(4), OVER)
        twice, _ = apply_verdict(once, _day(4), OVER, prior=applied)
        assert twice == once

    def test_bonus_day_resubmitted_is_idempotent(self):
        base = _run([GOOD] * 29)
        once, applied = apply_verdict(base, _day(29), GOOD)
        twice, again = apply_verdict(once, _day(29), GOOD, prior=applied)
        assert twice == once
        assert again.bonus_applied is True

    def test_corrected_violation_to_compliant(self):
        base = _run([GOOD] * 3)
        wrong, applied = apply_verdict(base, _day(3), OVER)
        fixed, _ = apply_verdict(wrong, _day(3), GOOD, prior=applied)

        expected, _ = apply_verdict(base, _day(3), GOOD)
        assert fixed == expected
        assert fixed.current_streak_days == 4

    def test_corrected_compliant_to_violation_restores_longest(self):
        base = _run([GOOD] * 3)
        wrong, applied = apply_verdict(base, _day(3), GOOD)
        assert wrong.longest_streak_days == 4

        fixed, _ = apply_verdict(wrong, _day(3), BLOCKED, prior=applied)
        assert fixed.current_streak_days == 0
        assert fixed.longest_streak_days == 3
        assert fixed.points == base.points - 0.5

    def test_back_dated_correction_only_touches_points(self):
        state = LedgerState()
        state, first = apply_verdict(state, _day(0), GOOD)
        state, _ = apply_verdict(state, _day(1), GOOD)
        assert state.points == 11.0

        state, corrected = apply_verdict(state, _day(0), OVER, prior=first)

        assert state.points == 10.0
        assert state.current_streak_days == 2
        assert state.last_evaluated_date == _day(1)
        assert corrected.streak_applied is False

    def test_back_dated_resubmission_is_idempotent(self):
        state = LedgerState()
        state, first = apply_verdict(state, _day(0), GOOD)
        state, _ = apply_verdict(state, _day(1), OVER)

        again, _ = apply_verdict(state, _day(0), GOOD, prior=first)
        assert again == state

    def test_back_dated_bonus_day_keeps_bonus(self):
        state = _run([GOOD] * 29)
        state, bonus_day = apply_verdict(state, _day(29), GOOD)
        state, _ = apply_verdict(state, _day(30), GOOD)

        again, resubmitted = apply_verdict(state, _day(29), GOOD, prior=bonus_day)
        assert again == state
        assert resubmitted.bonus_applied is True

    def test_backfill_of_missing_day(self):
        """A day never evaluated before is credited without touching the streak."""
        state = LedgerState()
        state, _ = apply_verdict(state, _day(5), GOOD)

        state, applied = apply_verdict(state, _day(3), GOOD)

        assert state.points == 11.0
        assert state.current_streak_days == 1
        assert state.last_evaluated_date == _day(5)
        assert applied.streak_applied is False
        assert applied.bonus_applied is False

    def test_last_evaluated_date_never_moves_backwards(self):
        state = _run([GOOD] * 5)
        state, _ = apply_verdict(state, _day(1), OVER)
        assert state.last_evaluated_date == _day(4)


class TestLedgerLocks:
    async def test_second_writer_gets_conflict(self):
        locks = LedgerLocks(timeout=0.05)
        student_id = uuid.uuid4()

        async with locks.hold(student_id):
            assert locks.is_locked(student_id)
            with pytest.raises(ConcurrentUpdateConflict):
                async with locks.hold(student_id):
                    pass

    async def test_students_do_not_share_a_lock(self):
        locks = LedgerLocks(timeout=0.05)
        first, second = uuid.uuid4(), uuid.uuid4()

        async with locks.hold(first):
            async with locks.hold(second):
                assert locks.is_locked(first)
                assert locks.is_locked(second)

    async def test_released_after_failure(self):
        locks = LedgerLocks(timeout=0.05)
        student_id = uuid.uuid4()

        with pytest.raises(RuntimeError):
            async with locks.hold(student_id):
                raise RuntimeError("boom")

        assert not locks.is_locked(student_id)
        async with locks.hold(student_id):
            pass

    async def test_writers_for_same_student_serialize(self):
        locks = LedgerLocks(timeout=1.0)
        student_id = uuid.uuid4()
        events: list[str] = []

        async def writer(name: str) -> None:
            async with locks.hold(student_id):
                events.append(f"{name}-start")
                await asyncio.sleep(0.01)
                events.append(f"{name}-end")

        await asyncio.gather(writer("a"), writer("b"))

        assert events in (
            ["a-start", "a-end", "b-start", "b-end"],
            ["b-start", "b-end", "a-start", "a-end"],
        )
