"""
Tests for the Cognito, response and logging helpers shared by the handlers.
"""
import json
import logging
from decimal import Decimal

import pytest

from proof_lifecycle.auth import get_reviewer_id, get_user_groups, get_user_sub, is_reviewer
from proof_lifecycle.errors import ProofError
from proof_lifecycle.logging import log_event, proof_logger
from proof_lifecycle.models import ProofState
from proof_lifecycle.results import SubmissionResult, TransitionResult
from proof_lifecycle.utils import finite_number, result_response, store_unavailable_response, to_json


def claims_event(**claims):
    return {'requestContext': {'authorizer': {'claims': claims}}}


class TestAuth:
    """Tests for reviewer detection from Cognito claims."""

    @pytest.mark.parametrize('groups, expected', [
        ('reviewer', ['reviewer']),
        ('worker,admin', ['worker', 'admin']),
        ('[reviewer, worker]', ['reviewer', 'worker']),
        (['admin'], ['admin']),
        ('', []),
    ])
    def test_groups(self, groups, expected):
        assert get_user_groups(claims_event(**{'cognito:groups': groups})) == expected

    def test_reviewer_id_for_reviewer_group(self):
        event = claims_event(sub='rev-1', **{'cognito:groups': 'reviewer'})
        assert is_reviewer(event) is True
        assert get_reviewer_id(event) == 'rev-1'

    def test_workers_are_not_reviewers(self):
        event = claims_event(sub='worker-1', **{'cognito:groups': 'worker'})
        assert get_reviewer_id(event) is None

    def test_unauthenticated(self):
        assert get_user_sub({}) is None
        assert get_user_groups({'requestContext': None}) == []
        assert get_reviewer_id({}) is None


class TestResponses:
    """Tests for result-to-HTTP mapping and value checks."""

    def test_refused_result_uses_error_status(self):
        result = SubmissionResult(success=False, error=ProofError.ALREADY_ACCEPTED,
                                  message='Proof already accepted for this task',
                                  blocking_submission_id='sub-0')

        response = result_response(result, success_status=201)

        assert response['statusCode'] == 409
        body = json.loads(response['body'])
        assert body['error'] == 'AlreadyAccepted'
        assert body['blockingSubmissionId'] == 'sub-0'

    def test_success_status(self):
        result = TransitionResult(success=True, submission_id='sub-1',
                                  previous_state=ProofState.PENDING, new_state=ProofState.ACCEPTED)

        response = result_response(result)

        assert response['statusCode'] == 200
        assert json.loads(response['body'])['newState'] == 'ACCEPTED'

    def test_store_unavailable(self):
        response = store_unavailable_response()

        assert response['statusCode'] == 503
        assert json.loads(response['body']) == {
            'message': 'Proof store unavailable',
            'error': 'StoreFailure',
            'retryable': True,
        }

    @pytest.mark.parametrize('value, expected', [
        (0.93, 0.93),
        ('0.5', 0.5),
        (Decimal('0.25'), 0.25),
        (float('nan'), None),
        (float('inf'), None),
        (1e200, None),
        (True, None),
        ('high', None),
        (None, None),
    ])
    def test_finite_number(self, value, expected):
        assert finite_number(value) == expected

    def test_to_json_is_stable_and_strict(self):
        assert to_json({'b': Decimal('2'), 'a': ProofState.ACCEPTED}) == '{"a": "ACCEPTED", "b": 2}'
        with pytest.raises(ValueError):
            to_json({'aiScore': float('nan')})


class TestLogging:
    """Tests for proof-scoped logging."""

    def test_proof_logger_prefixes_scope(self, caplog):
        with caplog.at_level(logging.INFO, logger='proofs'):
            proof_logger('task-1', 'sub-1').info('PENDING -> ACCEPTED')

        assert caplog.records[-1].getMessage() == '[task=task-1 submission=sub-1] PENDING -> ACCEPTED'

    def test_proof_logger_without_submission(self, caplog):
        with caplog.at_level(logging.INFO, logger='proofs'):
            proof_logger('task-1').warning('refused')

        assert caplog.records[-1].getMessage() == '[task=task-1] refused'

    def test_log_event_keeps_route_and_caller_only(self, caplog):
        event = {
            'resource': '/worker/tasks/{taskId}/proof',
            'httpMethod': 'POST',
            'pathParameters': {'taskId': 'task-1'},
            'headers': {'Authorization': 'Bearer secret'},
            'body': '{"description": "my address is ..."}',
            'requestContext': {'authorizer': {'claims': {'sub': 'worker-1', 'email': 'w@example.com'}}},
        }

        with caplog.at_level(logging.INFO, logger='proofs'):
            log_event(event)

        message = caplog.records[-1].getMessage()
        assert 'POST /worker/tasks/{taskId}/proof' in message
        assert 'worker-1' in message
        assert 'secret' not in message
        assert 'w@example.com' not in message
        assert 'my address' not in message

    def test_log_event_direct_invocation_drops_free_text(self, caplog):
        with caplog.at_level(logging.INFO, logger='proofs'):
            log_event({'submissionId': 'sub-1', 'decision': 'REJECTED', 'reason': 'face visible'})

        message = caplog.records[-1].getMessage()
        assert 'sub-1' in message
        assert 'face visible' not in message
