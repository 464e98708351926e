import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class StudentCreate(BaseModel):
    full_name: str = Field(min_length=1, max_length=100)
    email: str | None = None
    class_id: uuid.UUID | None = None


class StudentUpdate(BaseModel):
    full_name: str | None = Field(default=None, min_length=1, max_length=100)
    email: str | None = None
    class_id: uuid.UUID | None = None


class StudentResponse(BaseModel):
    id: uuid.UUID
    full_name: str
    email: str | None = None
    class_id: uuid.UUID | None = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class RosterEntry(BaseModel):
    id: uuid.UUID
    full_name: str
    points: float
    current_streak_days: int
    level: int
    needs_attention: bool


class LedgerResponse(BaseModel):
    student_id: uuid.UUID
    points: float
    current_streak_days: int
    longest_streak_days: int
    last_evaluated_date: date | None = None
    level: int
    next_point: int
    progress_to_next: float


class MilestoneResponse(BaseModel):
    id: str
    unlocked: bool


class DailyEvaluationResponse(BaseModel):
    id: uuid.UUID
    student_id: uuid.UUID
    evaluated_date: date
    status: str
    reason: str
    total_minutes: int
    effective_limit_minutes: int
    points_change: float
    bonus_applied: bool
    streak_applied: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
