"""
Proof Store - durable record of proof submissions and their transition log.

DynamoDB layout:
- Submissions table: PK submissionId; GSI byTask (taskId, createdAt);
  GSI byStatus (status, expiresAt).
- Transitions table: PK submissionId, SK sequence. Append-only.
- Active proofs table: PK taskId. One slot per task naming its most recent
  submission and that submission's state. A new submission may only take
  the slot while it is empty or its state is REJECTED/EXPIRED; that
  conditional put is what enforces one active proof per task across
  concurrent writers. The slot is written in the same transaction as every
  state change, so a consistent read of it answers "latest submission" and
  "is it accepted" without going through an eventually consistent index.
"""
import decimal
import json
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from .config import config
from .errors import ActiveProofConflict, StaleTransition, StoreError
from .models import ProofState, ProofSubmission, QualityTier, TransitionLogEntry
from .transitions import EXPIRABLE_STATES, releases_active_slot
from .utils import to_json

BY_TASK_INDEX = 'byTask'
BY_STATUS_INDEX = 'byStatus'

# States whose slot a new submission may take over
RELEASED_STATES = tuple(state for state in ProofState if releases_active_slot(state))

# Raised by TypeSerializer/json for values DynamoDB or the log cannot hold
# (NaN, Infinity, numbers out of DynamoDB range, non-JSON context values)
SERIALIZATION_ERRORS = (TypeError, ValueError, decimal.DecimalException)

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def serialize(item: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Convert a plain dict to DynamoDB attribute values, dropping None."""
    return {k: _serializer.serialize(v) for k, v in item.items() if v is not None}


def deserialize(item: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Convert DynamoDB attribute values to a plain dict."""
    return {k: _deserializer.deserialize(v) for k, v in item.items()}


def _to_int(value) -> Optional[int]:
    return int(value) if value is not None else None


def submission_to_item(submission: ProofSubmission) -> Dict[str, Any]:
    return {
        'submissionId': submission.submission_id,
        'taskId': submission.task_id,
        'workerId': submission.worker_id,
        'status': submission.state.value,
        'quality': submission.quality.value,
        'description': submission.description,
        'photoUrls': list(submission.photo_urls),
        'hasBeforeAfter': submission.has_before_after,
        'createdAt': submission.created_at,
        'expiresAt': submission.expires_at,
        'reviewedAt': submission.reviewed_at,
        'reviewerId': submission.reviewer_id,
        'aiScore': Decimal(str(round(submission.ai_score, 4))) if submission.ai_score is not None else None,
        'rejectionReason': submission.rejection_reason,
        'version': submission.version,
    }


def submission_from_item(item: Dict[str, Any]) -> ProofSubmission:
    ai_score = item.get('aiScore')
    return ProofSubmission(
        submission_id=item['submissionId'],
        task_id=item['taskId'],
        worker_id=item['workerId'],
        state=ProofState(item['status']),
        quality=QualityTier(item['quality']),
        created_at=int(item['createdAt']),
        expires_at=int(item['expiresAt']),
        description=item.get('description', ''),
        photo_urls=list(item.get('photoUrls') or []),
        has_before_after=bool(item.get('hasBeforeAfter', False)),
        reviewed_at=_to_int(item.get('reviewedAt')),
        reviewer_id=item.get('reviewerId'),
        ai_score=float(ai_score) if ai_score is not None else None,
        rejection_reason=item.get('rejectionReason'),
        version=int(item.get('version', 1)),
    )


def entry_to_item(entry: TransitionLogEntry) -> Dict[str, Any]:
    return {
        'submissionId': entry.submission_id,
        'sequence': entry.sequence,
        'entryId': entry.entry_id,
        'taskId': entry.task_id,
        'fromState': entry.from_state.value if entry.from_state is not None else None,
        'toState': entry.to_state.value,
        'context': to_json(entry.context),
        'createdAt': entry.created_at,
    }


def entry_from_item(item: Dict[str, Any]) -> TransitionLogEntry:
    from_state = item.get('fromState')
    return TransitionLogEntry(
        entry_id=item['entryId'],
        submission_id=item['submissionId'],
        task_id=item['taskId'],
        sequence=int(item['sequence']),
        from_state=ProofState(from_state) if from_state else None,
        to_state=ProofState(item['toState']),
        context=json.loads(item.get('context') or '{}'),
        created_at=int(item['createdAt']),
    )


class ProofStore:
    """
    Persistence boundary for proof submissions.

    Implementations must make each write a single atomic unit and enforce
    the one-active-proof-per-task rule themselves, never by a read in the
    caller followed by a write.
    """

    def create_submission(self, submission: ProofSubmission, entry: TransitionLogEntry) -> None:
        """
        Persist a new PENDING submission with its first log entry and claim
        the task's active slot.

        Raises:
            ActiveProofConflict: the slot is held by another submission
            StoreError: persistence failed
        """
        raise NotImplementedError

    def apply_transition(self, current: ProofSubmission, updated: ProofSubmission,
                         entry: TransitionLogEntry) -> None:
        """
        Write the updated submission and its log entry atomically, on the
        condition that the stored row still matches current.

        Raises:
            StaleTransition: the stored state/version moved on
            StoreError: persistence failed
        """
        raise NotImplementedError

    def get_submission(self, submission_id: str) -> Optional[ProofSubmission]:
        raise NotImplementedError

    def list_task_submissions(self, task_id: str) -> List[ProofSubmission]:
        """All submissions for a task, oldest first."""
        raise NotImplementedError


    def latest_for_task(self, task_id: str) -> Optional[ProofSubmission]:
        """The submission the task's slot names, read consistently."""
        raise NotImplementedError

    def get_task_slot(self, task_id: str) -> Optional[Tuple[str, ProofState]]:
        """
        (submissionId, state) of the task's most recent submission as
        recorded by the last committed write, or None if the task never had
        one. Must reflect every write that has already returned.
        """
        raise NotImplementedError

    def find_expirable(self, now: int) -> List[str]:
        """Ids of expirable submissions whose expiresAt is before now, soonest first."""
        raise NotImplementedError

    def list_transitions(self, submission_id: str) -> List[TransitionLogEntry]:
        """Log entries for a submission ordered by sequence."""
        raise NotImplementedError


class DynamoProofStore(ProofStore):
    """ProofStore backed by DynamoDB transactions and conditional writes."""

    def __init__(self, client=None, submissions_table: str = None,
                 transitions_table: str = None, active_table: str = None):
        if client is None:
            client = boto3.client(
                'dynamodb',
                region_name=config.AWS_REGION,
                endpoint_url=config.DYNAMODB_ENDPOINT_URL or None
            )
        self.client = client
        self.submissions_table = submissions_table or config.PROOF_SUBMISSIONS_TABLE
        self.transitions_table = transitions_table or config.PROOF_TRANSITIONS_TABLE
        self.active_table = active_table or config.ACTIVE_PROOFS_TABLE

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_submission(self, submission: ProofSubmission, entry: TransitionLogEntry) -> None:
        released = {f':released{i}': state.value for i, state in enumerate(RELEASED_STATES)}
        try:
            transact_items = [
                # 1. Claim the task's slot unless an active proof holds it
                {
                    'Put': {
                        'TableName': self.active_table,
                        'Item': serialize({
                            'taskId': submission.task_id,
                            'submissionId': submission.submission_id,
                            'state': submission.state.value,
                            'updatedAt': submission.created_at,
                        }),
                        'ConditionExpression': (
                            f"attribute_not_exists(taskId) OR #state IN ({', '.join(released)})"
                        ),
                        'ExpressionAttributeNames': {'#state': 'state'},
                        'ExpressionAttributeValues': serialize(released),
                        'ReturnValuesOnConditionCheckFailure': 'ALL_OLD'
                    }
                },
                # 2. Create the submission row
                {
                    'Put': {
                        'TableName': self.submissions_table,
                        'Item': serialize(submission_to_item(submission)),
                        'ConditionExpression': 'attribute_not_exists(submissionId)'
                    }
                },
                # 3. First log entry
                self._log_put(entry),
            ]
            self.client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            reasons = self._cancellation_reasons(e)
            if reasons and reasons[0].get('Code') == 'ConditionalCheckFailed':
                holder = deserialize(reasons[0].get('Item') or {})
                state = holder.get('state')
                raise ActiveProofConflict(
                    submission.task_id,
                    holder.get('submissionId'),
                    ProofState(state) if state else None
                )
            raise StoreError(f"Failed to create submission {submission.submission_id}", e)
        except BotoCoreError as e:
            raise StoreError(f"Failed to create submission {submission.submission_id}", e)
        except SERIALIZATION_ERRORS as e:
            raise StoreError(f"Submission {submission.submission_id} cannot be stored: {e}", e)

    def apply_transition(self, current: ProofSubmission, updated: ProofSubmission,
                         entry: TransitionLogEntry) -> None:
        failure = (f"Failed to transition submission {current.submission_id} "
                   f"{current.state.value} -> {updated.state.value}")
        try:
            transact_items = [
                # 1. Move the submission, only if nobody else moved it first
                self._submission_update(current, updated),
                # 2. Audit record
                self._log_put(entry),
                # 3. Keep the task's slot in step
                self._slot_update(current, updated, entry.created_at),
            ]
            self.client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            reasons = self._cancellation_reasons(e)
            if reasons and reasons[0].get('Code') == 'ConditionalCheckFailed':
                raise StaleTransition(current.submission_id, current.state)
            raise StoreError(failure, e)
        except BotoCoreError as e:
            raise StoreError(failure, e)
        except SERIALIZATION_ERRORS as e:
            raise StoreError(f"{failure}: value cannot be stored: {e}", e)

    def _submission_update(self, current: ProofSubmission,
                           updated: ProofSubmission) -> Dict[str, Any]:
        set_clauses = ['#status = :to', '#version = :next']
        values = {
            ':to': updated.state.value,
            ':from': current.state.value,
            ':version': current.version,
            ':next': updated.version,
        }
        item = submission_to_item(updated)
        for attr in ('reviewedAt', 'reviewerId', 'aiScore', 'rejectionReason'):
            if item[attr] is not None:
                set_clauses.append(f'{attr} = :{attr}')
                values[f':{attr}'] = item[attr]
        return {
            'Update': {
                'TableName': self.submissions_table,
                'Key': serialize({'submissionId': current.submission_id}),
                'UpdateExpression': 'SET ' + ', '.join(set_clauses),
                'ConditionExpression': '#status = :from AND #version = :version',
                'ExpressionAttributeNames': {'#status': 'status', '#version': 'version'},
                'ExpressionAttributeValues': serialize(values)
            }
        }

    def _log_put(self, entry: TransitionLogEntry) -> Dict[str, Any]:
        return {
            'Put': {
                'TableName': self.transitions_table,
                'Item': serialize(entry_to_item(entry)),
                # Log entries are never overwritten
                'ConditionExpression': 'attribute_not_exists(submissionId)'
            }
        }

    def _slot_update(self, current: ProofSubmission, updated: ProofSubmission,
                     timestamp: int) -> Dict[str, Any]:
        # REJECTED/EXPIRED leave the slot in place; its state is what frees it
        return {
            'Update': {
                'TableName': self.active_table,
                'Key': serialize({'taskId': current.task_id}),
                'UpdateExpression': 'SET #state = :state, updatedAt = :ts',
                'ConditionExpression': 'submissionId = :sid',
                'ExpressionAttributeNames': {'#state': 'state'},
                'ExpressionAttributeValues': serialize({
                    ':sid': current.submission_id,
                    ':state': updated.state.value,
                    ':ts': timestamp,
                })
            }
        }

    @staticmethod
    def _cancellation_reasons(error: ClientError) -> List[Dict[str, Any]]:
        # Reasons are listed in the same order as TransactItems
        if error.response.get('Error', {}).get('Code') != 'TransactionCanceledException':
            return []
        return error.response.get('CancellationReasons') or []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_submission(self, submission_id: str) -> Optional[ProofSubmission]:
        try:
            response = self.client.get_item(
                TableName=self.submissions_table,
                Key=serialize({'submissionId': submission_id}),
                ConsistentRead=True
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Failed to read submission {submission_id}", e)
        item = response.get('Item')
        return submission_from_item(deserialize(item)) if item else None

    def list_task_submissions(self, task_id: str) -> List[ProofSubmission]:
        # byTask is a GSI: history only, may trail the latest write
        items = self._query_all(
            TableName=self.submissions_table,
            IndexName=BY_TASK_INDEX,
            KeyConditionExpression='taskId = :task',
            ExpressionAttributeValues=serialize({':task': task_id}),
            ScanIndexForward=True
        )
        return [submission_from_item(item) for item in items]

    def get_task_slot(self, task_id: str) -> Optional[Tuple[str, ProofState]]:
        try:
            response = self.client.get_item(
                TableName=self.active_table,
                Key=serialize({'taskId': task_id}),
                ConsistentRead=True
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Failed to read proof slot for task {task_id}", e)
        item = response.get('Item')
        if not item:
            return None
        slot = deserialize(item)
        return slot['submissionId'], ProofState(slot['state'])

    def latest_for_task(self, task_id: str) -> Optional[ProofSubmission]:
        slot = self.get_task_slot(task_id)
        if slot is None:
            return None
        submission_id, _ = slot
        submission = self.get_submission(submission_id)
        if submission is None:
            raise StoreError(f"Proof slot for task {task_id} names missing submission {submission_id}")
        return submission

    def find_expirable(self, now: int) -> List[str]:
        candidates = []
        for state in sorted(EXPIRABLE_STATES, key=lambda s: s.value):
            candidates.extend(self._query_all(
                TableName=self.submissions_table,
                IndexName=BY_STATUS_INDEX,
                KeyConditionExpression='#status = :status AND expiresAt < :now',
                ExpressionAttributeNames={'#status': 'status'},
                ExpressionAttributeValues=serialize({':status': state.value, ':now': now}),
                ScanIndexForward=True
            ))
        candidates.sort(key=lambda item: int(item['expiresAt']))
        return [item['submissionId'] for item in candidates]

    def list_transitions(self, submission_id: str) -> List[TransitionLogEntry]:
        items = self._query_all(
            TableName=self.transitions_table,
            KeyConditionExpression='submissionId = :sid',
            ExpressionAttributeValues=serialize({':sid': submission_id}),
            ConsistentRead=True,
            ScanIndexForward=True
        )
        return [entry_from_item(item) for item in items]

    def _query_all(self, **params) -> List[Dict[str, Any]]:
        """Run a query to completion, following LastEvaluatedKey."""
        items = []
        try:
            while True:
                response = self.client.query(**params)
                items.extend(deserialize(item) for item in response.get('Items', []))
                if 'LastEvaluatedKey' not in response:
                    return items
                params['ExclusiveStartKey'] = response['LastEvaluatedKey']
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Failed to query {params.get('TableName')}", e)
