"""Milestone Engine.

Badges and level/progress are derived from the ledger on every read and
never stored.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from screenscore.models.ledger import ScoreLedger

POINTS_PER_LEVEL = 10

MILESTONE_STARTED = "started"
MILESTONE_WEEK_STREAK = "week_streak"
MILESTONE_MONTH_STREAK = "month_streak"

WEEK_STREAK_DAYS = 7
MONTH_STREAK_DAYS = 30


@dataclass(frozen=True)
class Milestone:
    id: str
    unlocked: bool


@dataclass(frozen=True)
class LevelProgress:
    level: int
    next_point: int
    progress_to_next: float  # percent in [0, 100)


def milestones(ledger: ScoreLedger | None) -> list[Milestone]:
    """Derive the built-in milestones, in display order."""
    if ledger is None:
        return [
            Milestone(MILESTONE_STARTED, False),
            Milestone(MILESTONE_WEEK_STREAK, False),
            Milestone(MILESTONE_MONTH_STREAK, False),
        ]

    current = ledger.current_streak_days
    longest = ledger.longest_streak_days
    return [
        Milestone(MILESTONE_STARTED, True),
        Milestone(
            MILESTONE_WEEK_STREAK,
            current >= WEEK_STREAK_DAYS or longest >= WEEK_STREAK_DAYS,
        ),
        Milestone(MILESTONE_MONTH_STREAK, longest >= MONTH_STREAK_DAYS),
    ]


def level_progress(points: float) -> LevelProgress:
    whole = math.floor(points)
    return LevelProgress(
        level=math.floor(points / POINTS_PER_LEVEL),
        next_point=whole + 1,
        progress_to_next=(points - whole) * 100,
    )
