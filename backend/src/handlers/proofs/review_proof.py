"""
Review Proof Handler.
POST /admin/proofs/{submissionId}/review
Body: { "decision": "REVIEWING" | "ACCEPTED" | "REJECTED", "reason": "...", "aiScore": 0.93 }

Also accepts direct invocation from an automated reviewer (Step Functions):
{ "submissionId": "...", "decision": "...", "reviewerId": "...", "aiScore": 0.93 }
"""
from proof_lifecycle.auth import get_reviewer_id
from proof_lifecycle.engine import build_engine
from proof_lifecycle.logging import logger, log_event
from proof_lifecycle.models import ProofState
from proof_lifecycle.utils import finite_number, format_response, get_path_param, parse_body, result_response

engine = build_engine()

# Reviewers cannot expire a proof; only the sweep does that
REVIEW_DECISIONS = [ProofState.REVIEWING.value, ProofState.ACCEPTED.value, ProofState.REJECTED.value]


def handler(event, context):
    """Handler for recording a reviewer decision on a proof."""
    log_event(event)
    try:
        if 'requestContext' in event:
            reviewer_id = get_reviewer_id(event)
            if not reviewer_id:
                return format_response(403, {'message': 'Reviewer access required'})
            submission_id = get_path_param(event, 'submissionId')
            body = parse_body(event)
        else:
            submission_id = event.get('submissionId')
            body = event
            reviewer_id = event.get('reviewerId')

        decision = str(body.get('decision', '')).upper()

        if not submission_id:
            return format_response(400, {'message': 'Missing submissionId'})
        if decision not in REVIEW_DECISIONS:
            return format_response(400, {
                'message': f"Invalid decision. Must be one of {', '.join(REVIEW_DECISIONS)}"
            })

        # json.loads accepts NaN/Infinity literals; the store cannot hold them
        ai_score = body.get('aiScore')
        if ai_score is not None and (not isinstance(ai_score, (int, float)) or finite_number(ai_score) is None):
            return format_response(400, {'message': 'aiScore must be a finite number'})

        transition_context = {
            k: v for k, v in {
                'reviewerId': reviewer_id,
                'aiScore': ai_score,
                'rejectionReason': body.get('reason'),
            }.items() if v is not None
        }

        return result_response(engine.transition(submission_id, decision, transition_context))

    except Exception as e:
        logger.exception(f"Error reviewing proof: {e}")
        return format_response(500, {'message': 'Internal Server Error'})
