"""Policy Resolver.

Loads the policy configuration of a class (cached in Redis when available)
and resolves it into the effective ``PolicySnapshot`` for a calendar date:
- Daily limit, doubled on Saturday/Sunday when weekend mode is on
- Allow and block sets, copied by value with app ids normalized
- Strict mode flag (enforcement metadata only)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from screenscore.config import settings
from screenscore.core.exceptions import InvalidConfig, UnknownClass
from screenscore.core.redis_client import (
    drop_cached_policy,
    read_cached_policy,
    write_cached_policy,
)
from screenscore.models.class_group import ClassApp, ClassGroup
from screenscore.services.usage_ingest import normalize_app_id

MIN_DAILY_LIMIT_MINUTES = 1
MAX_DAILY_LIMIT_MINUTES = 1440

APP_TYPE_ALLOW = "allow"
APP_TYPE_BLOCK = "block"


@dataclass(frozen=True)
class ClassPolicy:
    """Policy configuration of one class as stored by the CRUD layer."""

    daily_limit_minutes: int
    weekend_mode: bool = False
    strict_mode: bool = False
    allow_set: frozenset[str] = field(default_factory=frozenset)
    block_set: frozenset[str] = field(default_factory=frozenset)

    def to_dict(self) -> dict:
        return {
            "daily_limit_minutes": self.daily_limit_minutes,
            "weekend_mode": self.weekend_mode,
            "strict_mode": self.strict_mode,
            "allow_set": sorted(self.allow_set),
            "block_set": sorted(self.block_set),
        }

    @classmethod
    def from_dict(cls, data: dict) -> ClassPolicy:
        return cls(
            daily_limit_minutes=data["daily_limit_minutes"],
            weekend_mode=data["weekend_mode"],
            strict_mode=data["strict_mode"],
            allow_set=frozenset(data["allow_set"]),
            block_set=frozenset(data["block_set"]),
        )


@dataclass(frozen=True)
class PolicySnapshot:
    effective_limit_minutes: int
    allow_set: frozenset[str]
    block_set: frozenset[str]
    strict_mode: bool
    is_weekend: bool = False


def is_weekend(target_date: date) -> bool:
    # Monday = 0, Sunday = 6
    return target_date.weekday() >= 5


def validate_daily_limit(minutes: int) -> int:
    """Raise ``InvalidConfig`` unless ``minutes`` lies in [1, 1440]."""
    if not MIN_DAILY_LIMIT_MINUTES <= minutes <= MAX_DAILY_LIMIT_MINUTES:
        raise InvalidConfig(
            f"daily_limit_minutes must be between {MIN_DAILY_LIMIT_MINUTES} "
            f"and {MAX_DAILY_LIMIT_MINUTES}, got {minutes}"
        )
    return minutes


def resolve(class_config: ClassPolicy, target_date: date) -> PolicySnapshot:
    """Resolve the effective policy of a class for ``target_date``.

    Raises:
        InvalidConfig: If the daily limit is outside [1, 1440] or an app is
            in both the allow and the block set.
    """
    validate_daily_limit(class_config.daily_limit_minutes)

    allow_set = frozenset(normalize_app_id(app) for app in class_config.allow_set)
    block_set = frozenset(normalize_app_id(app) for app in class_config.block_set)
    overlap = allow_set & block_set
    if overlap:
        raise InvalidConfig(
            f"apps cannot be both allowed and blocked: {', '.join(sorted(overlap))}"
        )

    weekend = is_weekend(target_date)
    limit = class_config.daily_limit_minutes
    if weekend and class_config.weekend_mode:
        limit *= 2

    return PolicySnapshot(
        effective_limit_minutes=limit,
        allow_set=allow_set,
        block_set=block_set,
        strict_mode=class_config.strict_mode,
        is_weekend=weekend,
    )


def default_policy() -> ClassPolicy:
    """Policy applied to students that are not assigned to any class."""
    return ClassPolicy(
        daily_limit_minutes=settings.DEFAULT_DAILY_LIMIT_MINUTES,
        weekend_mode=settings.DEFAULT_WEEKEND_MODE,
        strict_mode=settings.DEFAULT_STRICT_MODE,
    )


async def get_class_policy(
    db: AsyncSession,
    class_id: uuid.UUID,
    bypass_cache: bool = False,
) -> ClassPolicy:
    """Fetch the policy configuration of a class.

    Returns the cached result if available, unless bypass_cache=True.

    Raises:
        UnknownClass: If no class with this id exists.
    """
    if not bypass_cache:
        cached = await read_cached_policy(class_id)
        if cached is not None:
            return ClassPolicy.from_dict(cached)

    policy = await _load_class_policy(db, class_id)
    await write_cached_policy(class_id, policy.to_dict())

    return policy


async def _load_class_policy(db: AsyncSession, class_id: uuid.UUID) -> ClassPolicy:
    result = await db.execute(select(ClassGroup).where(ClassGroup.id == class_id))
    class_group = result.scalar_one_or_none()
    if class_group is None:
        raise UnknownClass(f"Class {class_id} not found")

    apps_result = await db.execute(
        select(ClassApp.app_name, ClassApp.app_type).where(ClassApp.class_id == class_id)
    )
    allow: set[str] = set()
    block: set[str] = set()
    for app_name, app_type in apps_result.all():
        if app_type == APP_TYPE_BLOCK:
            block.add(app_name)
        else:
            allow.add(app_name)

    return ClassPolicy(
        daily_limit_minutes=class_group.daily_limit_minutes,
        weekend_mode=class_group.weekend_mode,
        strict_mode=class_group.strict_mode,
        allow_set=frozenset(allow),
        block_set=frozenset(block),
    )


async def invalidate_class_policy(class_id: uuid.UUID) -> None:
    """Drop the cached policy after a class or app list mutation."""
    await drop_cached_policy(class_id)
