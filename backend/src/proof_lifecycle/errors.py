"""
Error taxonomy for the proof lifecycle.

ProofError values are business outcomes reported in results. The exception
classes below are raised by the store and translated by the engine; they
never escape submit/transition/expire.
"""
from enum import Enum
from typing import Optional

from proof_lifecycle.models import ProofState


class ProofError(str, Enum):
    """Typed failure reasons returned to callers."""
    ALREADY_ACCEPTED = 'AlreadyAccepted'
    REVIEW_IN_PROGRESS = 'ReviewInProgress'
    NOT_FOUND = 'NotFound'
    INVALID_TRANSITION = 'InvalidTransition'
    STORE_FAILURE = 'StoreFailure'

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]

    @property
    def retryable(self) -> bool:
        """Only storage failures may be retried as-is."""
        return self is ProofError.STORE_FAILURE


_HTTP_STATUS = {
    ProofError.ALREADY_ACCEPTED: 409,
    ProofError.REVIEW_IN_PROGRESS: 409,
    ProofError.NOT_FOUND: 404,
    ProofError.INVALID_TRANSITION: 409,
    ProofError.STORE_FAILURE: 503,
}


class StoreError(Exception):
    """The persistence layer failed (connectivity, throttling, unexpected condition)."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class ActiveProofConflict(Exception):
    """The task's active slot is already held by another submission."""

    def __init__(self, task_id: str, blocking_submission_id: Optional[str],
                 blocking_state: Optional[ProofState]):
        super().__init__(
            f"Task {task_id} already has active proof {blocking_submission_id} ({blocking_state})"
        )
        self.task_id = task_id
        self.blocking_submission_id = blocking_submission_id
        self.blocking_state = blocking_state


class StaleTransition(Exception):
    """The submission changed between read and conditional write."""

    def __init__(self, submission_id: str, expected_state: ProofState):
        super().__init__(
            f"Submission {submission_id} is no longer in state {ProofState(expected_state).value}"
        )
        self.submission_id = submission_id
        self.expected_state = expected_state
