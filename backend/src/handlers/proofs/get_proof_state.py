"""
Get Proof State Handler.
GET /tasks/{taskId}/proof
Used by the task and escrow services before completing a task or releasing funds.
"""
from proof_lifecycle.engine import build_engine
from proof_lifecycle.errors import StoreError
from proof_lifecycle.logging import logger
from proof_lifecycle.utils import format_response, get_path_param, store_unavailable_response

engine = build_engine()


def handler(event, context):
    """Return the latest proof for a task plus the escrow release flag."""
    try:
        task_id = get_path_param(event, 'taskId')
        if not task_id:
            return format_response(400, {'message': 'Missing taskId'})

        view = engine.get_task_proof_state(task_id)
        if view is None:
            return format_response(404, {'message': 'No proof submitted for this task'})

        body = view.to_dict()
        body['hasAcceptedProof'] = engine.has_accepted_proof(task_id)
        return format_response(200, body)

    except StoreError as e:
        logger.error(f"Store failure reading proof state for task {get_path_param(event, 'taskId')}: {e}")
        return store_unavailable_response()
    except Exception as e:
        logger.exception(f"Error getting proof state: {e}")
        return format_response(500, {'message': 'Internal Server Error'})
