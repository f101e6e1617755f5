"""
Submit Proof Handler.
POST /worker/tasks/{taskId}/proof
Body: { "description": "...", "photoUrls": ["..."], "hasBeforeAfter": true }
"""
from proof_lifecycle.auth import get_user_sub
from proof_lifecycle.engine import build_engine
from proof_lifecycle.logging import logger, log_event
from proof_lifecycle.utils import format_response, get_path_param, parse_body, result_response

engine = build_engine()


def validate_evidence(body: dict):
    """
    Check the evidence payload shape.

    Returns:
        tuple: (evidence dict, error message or None)
    """
    description = body.get('description', '')
    photo_urls = body.get('photoUrls', [])
    has_before_after = body.get('hasBeforeAfter', False)

    if description is None:
        description = ''
    if not isinstance(description, str):
        return None, 'description must be a string'
    if photo_urls is None:
        photo_urls = []
    if not isinstance(photo_urls, list) or not all(isinstance(url, str) and url for url in photo_urls):
        return None, 'photoUrls must be a list of non-empty strings'
    if not isinstance(has_before_after, bool):
        return None, 'hasBeforeAfter must be a boolean'

    return {
        'description': description,
        'photoUrls': photo_urls,
        'hasBeforeAfter': has_before_after
    }, None


def handler(event, context):
    """Handler for a worker submitting proof of task completion."""
    log_event(event)
    try:
        task_id = get_path_param(event, 'taskId')
        worker_id = get_user_sub(event)

        if not worker_id:
            return format_response(401, {'message': 'Unauthorized'})
        if not task_id:
            return format_response(400, {'message': 'Missing taskId'})

        evidence, error = validate_evidence(parse_body(event))
        if error:
            return format_response(400, {'message': error})

        return result_response(engine.submit(task_id, worker_id, evidence), success_status=201)

    except Exception as e:
        logger.exception(f"Error submitting proof: {e}")
        return format_response(500, {'message': 'Internal Server Error'})
