"""
Proof Lifecycle Engine.

Orchestrates submission, review transitions, expiry and queries for proof
submissions. The engine holds no state of its own: every decision that must
hold across concurrent requests is enforced by the store's conditional
writes, and every state change is written together with its audit entry.

hasAcceptedProof is the only signal the escrow service may use to release
funds.
"""
import time
import uuid
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from proof_lifecycle.config import config
from proof_lifecycle.errors import ActiveProofConflict, ProofError, StaleTransition, StoreError
from proof_lifecycle.events import ProofEventPublisher
from proof_lifecycle.logging import logger, proof_logger
from proof_lifecycle.models import (
    REVIEW_WINDOW_MS,
    ProofState,
    ProofSubmission,
    TransitionLogEntry,
)
from proof_lifecycle.quality import classify
from proof_lifecycle.results import CurrentProofView, SubmissionResult, TransitionResult
from proof_lifecycle.store import DynamoProofStore, ProofStore
from proof_lifecycle.transitions import can_transition
from proof_lifecycle.utils import finite_number, to_json


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _new_id() -> str:
    return str(uuid.uuid4())


class ProofLifecycleEngine:
    """Stateless orchestration over an injected ProofStore."""

    def __init__(
        self,
        store: ProofStore,
        publisher: Optional[ProofEventPublisher] = None,
        clock: Callable[[], int] = _epoch_ms,
        id_factory: Callable[[], str] = _new_id
    ):
        self.store = store
        self.publisher = publisher
        self.clock = clock
        self.id_factory = id_factory

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, task_id: str, worker_id: str,
               evidence: Optional[Dict[str, Any]] = None) -> SubmissionResult:
        """
        Submit proof of completion for a task.

        Creates a PENDING submission with a fixed 24h review window, unless
        the task already has a submission that is pending, under review or
        accepted.
        """
        evidence = evidence or {}
        now = self.clock()
        quality = classify(evidence)

        submission = ProofSubmission(
            submission_id=self.id_factory(),
            task_id=task_id,
            worker_id=worker_id,
            state=ProofState.PENDING,
            quality=quality,
            created_at=now,
            expires_at=now + REVIEW_WINDOW_MS,
            description=evidence.get('description') or '',
            photo_urls=list(evidence.get('photoUrls') or []),
            has_before_after=bool(evidence.get('hasBeforeAfter')),
        )
        entry = self._log_entry(submission, None, {'workerId': worker_id}, now)
        log = proof_logger(task_id, submission.submission_id)

        try:
            self.store.create_submission(submission, entry)
        except ActiveProofConflict as e:
            if e.blocking_state == ProofState.ACCEPTED:
                error = ProofError.ALREADY_ACCEPTED
                message = 'Proof already accepted for this task'
            else:
                error = ProofError.REVIEW_IN_PROGRESS
                message = 'This task already has a proof under review'
            log.warning(f"Submit by worker {worker_id} refused: {error.value} "
                        f"(blocking submission {e.blocking_submission_id})")
            return SubmissionResult(
                success=False,
                error=error,
                message=message,
                blocking_submission_id=e.blocking_submission_id
            )
        except StoreError as e:
            log.error(f"Store failure on submit (-> {ProofState.PENDING.value}): {e} ({e.cause})")
            return SubmissionResult(
                success=False,
                error=ProofError.STORE_FAILURE,
                message='Failed to save proof submission'
            )

        log.info(f"Proof submitted (quality: {quality.value})")
        if self.publisher is not None:
            self.publisher.proof_submitted(submission)

        return SubmissionResult(
            success=True,
            submission_id=submission.submission_id,
            state=submission.state,
            quality=quality,
            expires_at=submission.expires_at,
            message='Proof submitted successfully'
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def transition(self, submission_id: str, target_state,
                   context: Optional[Dict[str, Any]] = None) -> TransitionResult:
        """
        Move a submission to target_state.

        Args:
            submission_id: Submission to move
            target_state: ProofState (or its string value)
            context: Optional {'reviewerId', 'aiScore', 'rejectionReason', ...};
                     recorded verbatim in the transition log

        Returns:
            TransitionResult; on failure both states are the unchanged current state
        """
        context = dict(context or {})

        try:
            target = ProofState(target_state)
        except ValueError:
            return self._refused(submission_id, None, ProofError.INVALID_TRANSITION,
                                 f"Unknown proof state: {target_state}")

        try:
            current = self.store.get_submission(submission_id)
        except StoreError as e:
            logger.error(f"Store failure reading submission {submission_id} "
                         f"(-> {target.value}): {e} ({e.cause})")
            return TransitionResult(
                success=False,
                submission_id=submission_id,
                error=ProofError.STORE_FAILURE,
                message='Failed to read proof submission'
            )

        if current is None:
            return self._refused(submission_id, None, ProofError.NOT_FOUND,
                                 'Proof submission not found')
        log = proof_logger(current.task_id, submission_id)

        if not can_transition(current.state, target):
            return self._refused(submission_id, current.state, ProofError.INVALID_TRANSITION,
                                 f"Invalid proof transition: {current.state.value} -> {target.value}")

        reason = str(context.get('rejectionReason') or '').strip()
        if target == ProofState.REJECTED and not reason:
            return self._refused(submission_id, current.state, ProofError.INVALID_TRANSITION,
                                 'A rejection reason is required')

        ai_score = None
        if context.get('aiScore') is not None:
            ai_score = finite_number(context['aiScore'])
            if ai_score is None:
                return self._refused(submission_id, current.state, ProofError.INVALID_TRANSITION,
                                     f"aiScore must be a finite number, got {context['aiScore']!r}")

        # The context is logged verbatim, so it must have a JSON form
        try:
            to_json(context)
        except (TypeError, ValueError) as e:
            return self._refused(submission_id, current.state, ProofError.INVALID_TRANSITION,
                                 f"Transition context cannot be recorded: {e}")

        now = self.clock()
        updated = replace(
            current,
            state=target,
            version=current.version + 1,
            reviewer_id=context.get('reviewerId') or current.reviewer_id,
            ai_score=ai_score if ai_score is not None else current.ai_score,
            rejection_reason=reason if target == ProofState.REJECTED else current.rejection_reason,
        )
        # reviewedAt records the first reviewer action; expiry is not a review
        if updated.reviewed_at is None and target != ProofState.EXPIRED:
            updated.reviewed_at = now
        entry = self._log_entry(updated, current.state, context, now)

        try:
            self.store.apply_transition(current, updated, entry)
        except StaleTransition:
            return self._lost_race(submission_id, target)
        except StoreError as e:
            log.error(f"Store failure on transition {current.state.value} -> {target.value}: "
                      f"{e} ({e.cause})")
            return TransitionResult(
                success=False,
                submission_id=submission_id,
                previous_state=current.state,
                new_state=current.state,
                error=ProofError.STORE_FAILURE,
                message='Failed to record proof transition'
            )

        log.info(f"{current.state.value} -> {target.value}")
        if self.publisher is not None:
            self.publisher.proof_state_changed(updated, current.state)

        return TransitionResult(
            success=True,
            submission_id=submission_id,
            previous_state=current.state,
            new_state=target,
            message=f"Proof moved to {target.value}"
        )

    def start_review(self, submission_id: str, reviewer_id: str = None) -> TransitionResult:
        """Place a pending proof on hold for a slower review."""
        return self.transition(submission_id, ProofState.REVIEWING, _compact({'reviewerId': reviewer_id}))

    def accept(self, submission_id: str, reviewer_id: str = None,
               ai_score: float = None) -> TransitionResult:
        return self.transition(submission_id, ProofState.ACCEPTED,
                               _compact({'reviewerId': reviewer_id, 'aiScore': ai_score}))

    def reject(self, submission_id: str, reason: str, reviewer_id: str = None,
               ai_score: float = None) -> TransitionResult:
        return self.transition(submission_id, ProofState.REJECTED, _compact({
            'reviewerId': reviewer_id,
            'aiScore': ai_score,
            'rejectionReason': reason
        }))

    def expire(self, submission_id: str) -> TransitionResult:
        """Expire a submission whose review window has passed. Called by the sweep."""
        return self.transition(submission_id, ProofState.EXPIRED, {})

    def find_expirable(self, now: int = None) -> List[str]:
        """Ids of submissions whose review window ended before now (epoch ms)."""
        return self.store.find_expirable(self.clock() if now is None else now)

    def sweep_expired(self, now: int = None) -> Dict[str, int]:
        """
        Expire every submission past its review window.

        Returns:
            dict: {'checked', 'expired', 'skipped', 'failed'}
            skipped counts rows a reviewer decided on before the sweep reached them
        """
        candidates = self.find_expirable(now)
        summary = {'checked': len(candidates), 'expired': 0, 'skipped': 0, 'failed': 0}

        for submission_id in candidates:
            result = self.expire(submission_id)
            if result.success:
                summary['expired'] += 1
            elif result.error == ProofError.STORE_FAILURE:
                summary['failed'] += 1
            else:
                summary['skipped'] += 1

        logger.info(f"Expiry sweep: {summary}")
        return summary

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_task_proof_state(self, task_id: str) -> Optional[CurrentProofView]:
        """Most recent submission for the task, or None if it never had one."""
        latest = self.store.latest_for_task(task_id)
        return CurrentProofView.from_submission(latest) if latest else None

    def has_accepted_proof(self, task_id: str) -> bool:
        """
        True iff the task has an ACCEPTED proof.

        Reads the task's slot rather than scanning its history: an ACCEPTED
        submission keeps the slot for good, so at most one can exist and the
        answer reflects every transition that has already returned.
        """
        slot = self.store.get_task_slot(task_id)
        return slot is not None and slot[1] == ProofState.ACCEPTED

    def get_submission(self, submission_id: str) -> Optional[ProofSubmission]:
        return self.store.get_submission(submission_id)

    def list_task_submissions(self, task_id: str) -> List[ProofSubmission]:
        return self.store.list_task_submissions(task_id)

    def get_transition_log(self, submission_id: str) -> List[TransitionLogEntry]:
        return self.store.list_transitions(submission_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _log_entry(self, submission: ProofSubmission, from_state: Optional[ProofState],
                   context: Dict[str, Any], now: int) -> TransitionLogEntry:
        return TransitionLogEntry(
            entry_id=_new_id(),
            submission_id=submission.submission_id,
            task_id=submission.task_id,
            sequence=submission.version,
            from_state=from_state,
            to_state=submission.state,
            context=context,
            created_at=now,
        )

    def _refused(self, submission_id: str, state: Optional[ProofState],
                 error: ProofError, message: str) -> TransitionResult:
        logger.warning(f"Transition refused for submission {submission_id}: {error.value} - {message}")
        return TransitionResult(
            success=False,
            submission_id=submission_id,
            previous_state=state,
            new_state=state,
            error=error,
            message=message
        )

    def _lost_race(self, submission_id: str, target: ProofState) -> TransitionResult:
        """Another writer moved the submission between our read and write."""
        try:
            latest = self.store.get_submission(submission_id)
        except StoreError as e:
            logger.error(f"Store failure re-reading submission {submission_id} "
                         f"after concurrent change (-> {target.value}): {e}")
            latest = None
        state = latest.state if latest else None
        return self._refused(
            submission_id, state, ProofError.INVALID_TRANSITION,
            f"Proof changed concurrently; now {state.value if state else 'unknown'}, "
            f"cannot move to {target.value}"
        )


def _compact(context: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in context.items() if v is not None}


def build_engine() -> ProofLifecycleEngine:
    """Wire an engine to the configured DynamoDB tables and event bus."""
    publisher = ProofEventPublisher() if config.PROOF_EVENT_BUS_NAME else None
    return ProofLifecycleEngine(DynamoProofStore(), publisher=publisher)
