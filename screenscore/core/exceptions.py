"""Domain errors raised by the scoring engine.

Every error carries the HTTP status the API layer reports it with; the
handler registered in ``screenscore.main`` turns them into JSON responses.
None of them is fatal to the process.
"""

from fastapi import status


class ScoringError(Exception):
    """Base class for all errors surfaced by the scoring engine."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "scoring_error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidConfig(ScoringError):
    """Policy values outside their allowed range."""

    status_code = 422  # Unprocessable Content
    error_code = "invalid_config"


class InvalidUsageEvent(ScoringError):
    """A usage summary failed validation before evaluation."""

    status_code = 422  # Unprocessable Content
    error_code = "invalid_usage_event"


class ConcurrentUpdateConflict(ScoringError):
    """The student's ledger is locked by another evaluation; retry with backoff."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "concurrent_update_conflict"


class UnknownStudent(ScoringError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "unknown_student"


class UnknownClass(ScoringError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "unknown_class"
