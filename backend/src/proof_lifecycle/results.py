"""
Result types returned by the proof lifecycle engine.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from proof_lifecycle.errors import ProofError
from proof_lifecycle.models import ProofState, ProofSubmission, QualityTier


def _value(item):
    return item.value if item is not None else None


@dataclass
class SubmissionResult:
    """Outcome of submit()."""
    success: bool
    submission_id: Optional[str] = None
    state: Optional[ProofState] = None
    quality: Optional[QualityTier] = None
    expires_at: Optional[int] = None
    error: Optional[ProofError] = None
    message: str = ''
    # Set when an existing active submission blocked this one
    blocking_submission_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        body = {
            'success': self.success,
            'submissionId': self.submission_id,
            'state': _value(self.state),
            'quality': _value(self.quality),
            'expiresAt': self.expires_at,
            'message': self.message,
        }
        if self.error is not None:
            body['error'] = self.error.value
            body['retryable'] = self.error.retryable
        if self.blocking_submission_id:
            body['blockingSubmissionId'] = self.blocking_submission_id
        return body


@dataclass
class TransitionResult:
    """
    Outcome of transition()/expire().

    On failure previous_state and new_state are both the unchanged current
    state (None when the submission could not be read).
    """
    success: bool
    submission_id: str
    previous_state: Optional[ProofState] = None
    new_state: Optional[ProofState] = None
    error: Optional[ProofError] = None
    message: str = ''

    def to_dict(self) -> Dict[str, Any]:
        body = {
            'success': self.success,
            'submissionId': self.submission_id,
            'previousState': _value(self.previous_state),
            'newState': _value(self.new_state),
            'message': self.message,
        }
        if self.error is not None:
            body['error'] = self.error.value
            body['retryable'] = self.error.retryable
        return body


@dataclass
class CurrentProofView:
    """Most recent submission for a task, as seen by Task/Escrow collaborators."""
    submission_id: str
    task_id: str
    worker_id: str
    state: ProofState
    quality: QualityTier
    description: str
    photo_urls: List[str] = field(default_factory=list)
    rejection_reason: Optional[str] = None
    created_at: Optional[int] = None
    expires_at: Optional[int] = None

    @classmethod
    def from_submission(cls, submission: ProofSubmission) -> 'CurrentProofView':
        return cls(
            submission_id=submission.submission_id,
            task_id=submission.task_id,
            worker_id=submission.worker_id,
            state=submission.state,
            quality=submission.quality,
            description=submission.description,
            photo_urls=list(submission.photo_urls),
            rejection_reason=submission.rejection_reason,
            created_at=submission.created_at,
            expires_at=submission.expires_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'submissionId': self.submission_id,
            'taskId': self.task_id,
            'workerId': self.worker_id,
            'state': self.state.value,
            'quality': self.quality.value,
            'description': self.description,
            'photoUrls': self.photo_urls,
            'rejectionReason': self.rejection_reason,
            'createdAt': self.created_at,
            'expiresAt': self.expires_at,
        }
