"""
Logging for the proof lifecycle service.

Every line about a specific proof carries the task and submission it concerns,
so a task's history can be followed in CloudWatch with one filter.
"""
import logging
import json

from proof_lifecycle.config import config

logger = logging.getLogger('proofs')
logger.setLevel(getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))

if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(handler)


class ProofLogAdapter(logging.LoggerAdapter):
    """Prefixes messages with the task and submission they refer to."""

    def process(self, msg, kwargs):
        scope = ' '.join(f"{k}={v}" for k, v in self.extra.items() if v)
        return (f"[{scope}] {msg}" if scope else msg), kwargs


def proof_logger(task_id: str = None, submission_id: str = None) -> ProofLogAdapter:
    return ProofLogAdapter(logger, {'task': task_id, 'submission': submission_id})


def log_event(event: dict) -> None:
    """
    Log the routing part of an incoming Lambda event.

    Proof bodies and auth headers are left out; of the Cognito claims only the
    caller's sub is kept.
    """
    try:
        summary = {
            'route': event.get('routeKey') or f"{event.get('httpMethod', '')} {event.get('resource', '')}".strip(),
            'pathParameters': event.get('pathParameters'),
            'caller': ((event.get('requestContext') or {}).get('authorizer') or {}).get('claims', {}).get('sub'),
        }
        if 'requestContext' not in event:
            # Direct invocation (scheduler or automated reviewer)
            summary = {k: v for k, v in event.items() if k not in ('reason', 'description', 'photoUrls')}
        logger.info(f"Lambda event: {json.dumps(summary, default=str)}")
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning(f"Could not log event: {e}")
