"""Usage router.

Entry point for daily usage summaries. Each submission is evaluated
against the student's class policy and applied to the score ledger.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from screenscore.config import settings
from screenscore.core.rate_limit import limiter, usage_submission_key
from screenscore.database import get_db
from screenscore.routers.students import ledger_response
from screenscore.schemas.class_group import PolicySnapshotResponse
from screenscore.schemas.usage import UsageSubmission, UsageSubmissionResponse, VerdictResponse
from screenscore.services.scoring_service import submit_usage

router = APIRouter(tags=["Usage"])


@router.post("/students/{student_id}/usage", response_model=UsageSubmissionResponse)
@limiter.limit(settings.USAGE_SUBMIT_RATE_LIMIT, key_func=usage_submission_key)
async def submit_daily_usage(
    request: Request,
    student_id: uuid.UUID,
    body: UsageSubmission,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Submit (or resubmit) one day of usage for a student.

    Resubmitting a date replaces the earlier summary; the ledger is
    corrected rather than credited twice.
    """
    result = await submit_usage(
        db,
        student_id,
        body.date,
        body.total_minutes,
        body.per_app_minutes,
    )
    snapshot = result.policy
    return UsageSubmissionResponse(
        verdict=VerdictResponse(
            status=result.verdict.status,
            reason=result.verdict.reason,
            blocked_apps=list(result.verdict.blocked_apps),
        ),
        policy=PolicySnapshotResponse(
            effective_limit_minutes=snapshot.effective_limit_minutes,
            allow_set=sorted(snapshot.allow_set),
            block_set=sorted(snapshot.block_set),
            strict_mode=snapshot.strict_mode,
            is_weekend=snapshot.is_weekend,
        ),
        ledger=ledger_response(result.ledger),
        re_evaluated=result.re_evaluated,
    )
