"""Usage Event Ingest.

Validates one day's usage summary for a student and turns it into an
immutable ``UsageEvent``. No policy is applied here.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Mapping

from screenscore.config import settings
from screenscore.core.exceptions import InvalidUsageEvent

MINUTES_PER_DAY = 1440


def normalize_app_id(app_id: str) -> str:
    """Canonical form of an app identifier ("  TikTok " -> "tiktok")."""
    return " ".join(app_id.split()).casefold()


@dataclass(frozen=True)
class UsageEvent:
    """Validated usage summary of one student for one calendar day."""

    student_id: uuid.UUID
    usage_date: date
    total_minutes: int
    per_app_minutes: Mapping[str, int] = field(default_factory=dict)

    def used_apps(self) -> list[str]:
        """App identifiers with nonzero minutes, sorted for stable output."""
        return sorted(app for app, minutes in self.per_app_minutes.items() if minutes > 0)


def validate_usage(
    student_id: uuid.UUID | None,
    usage_date: date | None,
    total_minutes: int,
    per_app_minutes: Mapping[str, int] | None = None,
    tolerance_minutes: int | None = None,
) -> UsageEvent:
    """Validate a raw usage summary.

    App identifiers are normalized; entries that collapse onto the same
    identifier are summed.

    Raises:
        InvalidUsageEvent: missing student/date, negative or out-of-range
            minutes, blank app identifiers, or ``total_minutes`` smaller than
            the per-app sum by more than the tolerance.
    """
    if tolerance_minutes is None:
        tolerance_minutes = settings.USAGE_SUM_TOLERANCE_MINUTES

    if student_id is None:
        raise InvalidUsageEvent("student_id is required")
    if usage_date is None:
        raise InvalidUsageEvent("date is required")
    if total_minutes < 0:
        raise InvalidUsageEvent("total_minutes must not be negative")
    if total_minutes > MINUTES_PER_DAY:
        raise InvalidUsageEvent(f"total_minutes cannot exceed {MINUTES_PER_DAY}")

    apps: dict[str, int] = {}
    for raw_app, minutes in (per_app_minutes or {}).items():
        app = normalize_app_id(raw_app)
        if not app:
            raise InvalidUsageEvent("app identifiers must not be blank")
        if minutes < 0:
            raise InvalidUsageEvent(f"minutes for app {raw_app!r} must not be negative")
        apps[app] = apps.get(app, 0) + minutes

    app_sum = sum(apps.values())
    if app_sum - total_minutes > tolerance_minutes:
        raise InvalidUsageEvent(
            f"total_minutes ({total_minutes}) is less than the per-app sum ({app_sum})"
        )

    return UsageEvent(
        student_id=student_id,
        usage_date=usage_date,
        total_minutes=total_minutes,
        per_app_minutes=MappingProxyType(apps),
    )
