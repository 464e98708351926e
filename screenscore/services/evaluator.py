"""Daily Evaluator.

Classifies one day of usage against a resolved policy. Checks run in a
fixed priority order and the first match wins:
1. Blocked app used (any nonzero minutes, allow-listed apps skipped)
2. Total minutes over the effective limit
3. Compliant

Strict mode never changes the classification.
"""

from __future__ import annotations

from dataclasses import dataclass

from screenscore.services.policy_resolver import PolicySnapshot
from screenscore.services.usage_ingest import UsageEvent

COMPLIANT = "compliant"
VIOLATION = "violation"

REASON_NONE = "none"
REASON_OVER_LIMIT = "over_limit"
REASON_BLOCKED_APP_USED = "blocked_app_used"


@dataclass(frozen=True)
class EvaluationVerdict:
    status: str  # COMPLIANT | VIOLATION
    reason: str  # REASON_*
    blocked_apps: tuple[str, ...] = ()

    @property
    def is_compliant(self) -> bool:
        return self.status == COMPLIANT


def evaluate(usage_event: UsageEvent, policy_snapshot: PolicySnapshot) -> EvaluationVerdict:
    """Return the verdict for one usage event under one policy snapshot."""
    blocked = tuple(
        app
        for app in usage_event.used_apps()
        if app not in policy_snapshot.allow_set and app in policy_snapshot.block_set
    )
    if blocked:
        return EvaluationVerdict(VIOLATION, REASON_BLOCKED_APP_USED, blocked)

    if usage_event.total_minutes > policy_snapshot.effective_limit_minutes:
        return EvaluationVerdict(VIOLATION, REASON_OVER_LIMIT)

    return EvaluationVerdict(COMPLIANT, REASON_NONE)
