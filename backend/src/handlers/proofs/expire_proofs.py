"""
Expire Proofs Handler.
Triggered by EventBridge scheduler to expire proofs whose 24h review window
has passed without a reviewer decision.
"""
from proof_lifecycle.engine import build_engine
from proof_lifecycle.logging import logger

engine = build_engine()


def handler(event, context):
    """
    Scheduled sweep. Should be triggered every few minutes by EventBridge.

    When a proof expires:
    1. Submission status -> 'EXPIRED' (with a transition log entry)
    2. The task's active slot is released so the worker may resubmit
    """
    logger.info("Running proof expiration sweep...")
    summary = engine.sweep_expired()
    if summary['failed']:
        logger.warning(f"{summary['failed']} proofs could not be expired; they will be retried next run")
    return summary
