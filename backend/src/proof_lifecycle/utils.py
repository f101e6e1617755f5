"""
Common utility functions for the proof Lambda handlers.
"""
import json
import math
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from proof_lifecycle.errors import ProofError

# DynamoDB numbers top out just below 1e126
MAX_STORABLE_NUMBER = 1e125


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder for DynamoDB Decimals and proof state enums."""

    def default(self, o):
        if isinstance(o, Decimal):
            if o % 1 == 0:
                return int(o)
            return float(o)
        if isinstance(o, Enum):
            return o.value
        return super().default(o)


def to_json(value: Any) -> str:
    """
    Serialize a transition context exactly as the log stores it.

    Raises:
        TypeError: a value has no JSON form (datetime, set, ...)
        ValueError: a float is NaN or infinite
    """
    return json.dumps(value, cls=DecimalEncoder, sort_keys=True, allow_nan=False)


def finite_number(value: Any) -> Optional[float]:
    """Return value as a float if it is a finite, storable number, else None."""
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or abs(number) >= MAX_STORABLE_NUMBER:
        return None
    return number


def format_response(
    status_code: int,
    body: Any,
    headers: Dict[str, str] = None
) -> Dict[str, Any]:
    """
    Format an API Gateway proxy response with CORS headers.

    Args:
        status_code: HTTP status code
        body: Response body (will be JSON serialized)
        headers: Additional headers to include
    """
    default_headers = {
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Allow-Credentials': True,
        'Content-Type': 'application/json'
    }

    if headers:
        default_headers.update(headers)

    return {
        'statusCode': status_code,
        'headers': default_headers,
        'body': json.dumps(body, cls=DecimalEncoder)
    }


def result_response(result, success_status: int = 200) -> Dict[str, Any]:
    """Map a SubmissionResult/TransitionResult to its HTTP response."""
    if not result.success:
        return format_response(result.error.http_status, result.to_dict())
    return format_response(success_status, result.to_dict())


def store_unavailable_response() -> Dict[str, Any]:
    return format_response(ProofError.STORE_FAILURE.http_status, {
        'message': 'Proof store unavailable',
        'error': ProofError.STORE_FAILURE.value,
        'retryable': ProofError.STORE_FAILURE.retryable
    })


def parse_body(event: dict) -> dict:
    """Parse the JSON body of an API Gateway event; {} if missing or not an object."""
    try:
        body = event.get('body') or '{}'
        if isinstance(body, str):
            body = json.loads(body)
        return body if isinstance(body, dict) else {}
    except (json.JSONDecodeError, TypeError):
        return {}


def get_path_param(event: dict, param_name: str) -> Optional[str]:
    try:
        return event['pathParameters'][param_name]
    except (KeyError, TypeError):
        return None
