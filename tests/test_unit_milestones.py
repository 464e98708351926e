"""Unit tests for milestone and level derivation, no database required."""

import uuid

import pytest

from screenscore.models.ledger import ScoreLedger
from screenscore.services.milestone_service import level_progress, milestones


def _ledger(points=10.0, current=0, longest=0):
    return ScoreLedger(
        student_id=uuid.uuid4(),
        points=points,
        current_streak_days=current,
        longest_streak_days=longest,
    )


def _unlocked(ledger):
    return {m.id: m.unlocked for m in milestones(ledger)}


class TestMilestones:
    def test_order(self):
        assert [m.id for m in milestones(_ledger())] == ["started", "week_streak", "month_streak"]

    def test_no_ledger_unlocks_nothing(self):
        assert _unlocked(None) == {"started": False, "week_streak": False, "month_streak": False}

    def test_started_with_any_ledger(self):
        assert _unlocked(_ledger(points=0.0))["started"] is True

    def test_week_streak_from_current(self):
        assert _unlocked(_ledger(current=7, longest=7))["week_streak"] is True

    def test_week_streak_kept_after_reset(self):
        assert _unlocked(_ledger(current=0, longest=9))["week_streak"] is True

    def test_week_streak_locked_below_seven(self):
        assert _unlocked(_ledger(current=6, longest=6))["week_streak"] is False

    def test_month_streak_threshold(self):
        assert _unlocked(_ledger(current=29, longest=29))["month_streak"] is False
        assert _unlocked(_ledger(current=30, longest=30))["month_streak"] is True

    def test_month_streak_needs_longest_not_current(self):
        assert _unlocked(_ledger(current=0, longest=30))["month_streak"] is True

    def test_unlocking_is_monotonic(self):
        for longest in range(30, 100):
            for current in (0, longest // 2, longest):
                assert _unlocked(_ledger(current=current, longest=longest))["month_streak"] is True


class TestLevelProgress:
    @pytest.mark.parametrize(
        ("points", "level", "next_point", "progress"),
        [
            (0.0, 0, 1, 0.0),
            (9.5, 0, 10, 50.0),
            (10.0, 1, 11, 0.0),
            (25.5, 2, 26, 50.0),
            (100.0, 10, 101, 0.0),
        ],
    )
    def test_values(self, points, level, next_point, progress):
        result = level_progress(points)
        assert result.level == level
        assert result.next_point == next_point
        assert result.progress_to_next == progress

    def test_progress_below_hundred(self):
        for half_points in range(0, 200):
            assert 0 <= level_progress(half_points / 2).progress_to_next < 100
