"""
Data models and state constants for proof verification.
Based on the proof lifecycle: Pending → (Reviewing) → Accepted / Rejected / Expired
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# Fixed review window, counted from submission. Never renewed or extended.
REVIEW_WINDOW_MS = 24 * 60 * 60 * 1000


class ProofState(str, Enum):
    """Proof submission lifecycle states."""
    PENDING = 'PENDING'
    REVIEWING = 'REVIEWING'
    ACCEPTED = 'ACCEPTED'
    REJECTED = 'REJECTED'
    EXPIRED = 'EXPIRED'


class QualityTier(str, Enum):
    """Coarse evidence quality used to prioritize review."""
    BASIC = 'BASIC'
    STANDARD = 'STANDARD'
    COMPREHENSIVE = 'COMPREHENSIVE'


@dataclass
class ProofSubmission:
    """One worker's evidence package for one task."""
    submission_id: str
    task_id: str
    worker_id: str
    state: ProofState
    quality: QualityTier
    created_at: int
    expires_at: int
    description: str = ''
    photo_urls: List[str] = field(default_factory=list)
    has_before_after: bool = False
    reviewed_at: Optional[int] = None
    reviewer_id: Optional[str] = None
    ai_score: Optional[float] = None
    rejection_reason: Optional[str] = None
    # Number of transition log entries written for this submission
    version: int = 1


@dataclass
class TransitionLogEntry:
    """Append-only audit record of a single state change."""
    entry_id: str
    submission_id: str
    task_id: str
    sequence: int
    from_state: Optional[ProofState]
    to_state: ProofState
    context: Dict[str, Any]
    created_at: int
