import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ClassGroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    teacher_id: uuid.UUID | None = None
    daily_limit_minutes: int = 120
    weekend_mode: bool = True
    strict_mode: bool = False


class ClassGroupUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    teacher_id: uuid.UUID | None = None
    daily_limit_minutes: int | None = None
    weekend_mode: bool | None = None
    strict_mode: bool | None = None


class ClassGroupResponse(BaseModel):
    id: uuid.UUID
    teacher_id: uuid.UUID | None = None
    name: str
    description: str | None = None
    daily_limit_minutes: int
    weekend_mode: bool
    strict_mode: bool
    student_count: int = 0
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ClassAppCreate(BaseModel):
    app_name: str = Field(min_length=1, max_length=100)
    app_type: Literal["allow", "block"]


class ClassAppResponse(BaseModel):
    id: uuid.UUID
    class_id: uuid.UUID
    app_name: str
    app_type: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ClassPolicyResponse(BaseModel):
    daily_limit_minutes: int
    weekend_mode: bool
    strict_mode: bool
    allow_set: list[str]
    block_set: list[str]


class PolicySnapshotResponse(BaseModel):
    effective_limit_minutes: int
    allow_set: list[str]
    block_set: list[str]
    strict_mode: bool
    is_weekend: bool
