"""
Lifecycle event publishing to EventBridge.
Notification, escrow and trust services subscribe to these; the proof store
remains the source of truth.
"""
import json
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import config
from .logging import logger
from .models import ProofState, ProofSubmission
from .utils import DecimalEncoder

PROOF_SUBMITTED = 'ProofSubmitted'
PROOF_STATE_CHANGED = 'ProofStateChanged'


class ProofEventPublisher:
    """Sends proof lifecycle events to an EventBridge bus."""

    def __init__(self, client=None, bus_name: str = None, source: str = None):
        self.client = client or boto3.client('events', region_name=config.AWS_REGION)
        self.bus_name = bus_name or config.PROOF_EVENT_BUS_NAME or 'default'
        self.source = source or config.PROOF_EVENT_SOURCE

    def proof_submitted(self, submission: ProofSubmission) -> bool:
        return self._put(PROOF_SUBMITTED, {
            'submissionId': submission.submission_id,
            'taskId': submission.task_id,
            'workerId': submission.worker_id,
            'newState': submission.state,
            'quality': submission.quality,
            'expiresAt': submission.expires_at,
        })

    def proof_state_changed(self, submission: ProofSubmission,
                            previous_state: Optional[ProofState]) -> bool:
        return self._put(PROOF_STATE_CHANGED, {
            'submissionId': submission.submission_id,
            'taskId': submission.task_id,
            'workerId': submission.worker_id,
            'previousState': previous_state,
            'newState': submission.state,
            'quality': submission.quality,
            'reviewerId': submission.reviewer_id,
            'rejectionReason': submission.rejection_reason,
        })

    def _put(self, detail_type: str, detail: dict) -> bool:
        """Publish one event. Failures are logged and reported, never raised."""
        try:
            response = self.client.put_events(
                Entries=[{
                    'Source': self.source,
                    'DetailType': detail_type,
                    'Detail': json.dumps(detail, cls=DecimalEncoder),
                    'EventBusName': self.bus_name
                }]
            )
            if response.get('FailedEntryCount'):
                logger.warning(f"EventBridge rejected {detail_type} for {detail['submissionId']}: "
                               f"{response.get('Entries')}")
                return False
            logger.info(f"Published {detail_type} for submission {detail['submissionId']}")
            return True
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"EventBridge error (non-critical) publishing {detail_type}: {e}")
            return False
