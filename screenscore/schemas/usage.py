from datetime import date

from pydantic import BaseModel, Field

from screenscore.schemas.class_group import PolicySnapshotResponse
from screenscore.schemas.student import LedgerResponse


class UsageSubmission(BaseModel):
    date: date
    total_minutes: int
    per_app_minutes: dict[str, int] = Field(default_factory=dict)


class VerdictResponse(BaseModel):
    status: str  # compliant | violation
    reason: str  # none | over_limit | blocked_app_used
    blocked_apps: list[str] = []


class UsageSubmissionResponse(BaseModel):
    verdict: VerdictResponse
    policy: PolicySnapshotResponse
    ledger: LedgerResponse
    re_evaluated: bool
