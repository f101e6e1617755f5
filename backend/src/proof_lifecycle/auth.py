"""
Cognito claim helpers for the proof endpoints.

Workers submit proofs under their own sub; decisions may only be recorded by
members of a reviewer group.
"""
from typing import List, Optional

REVIEWER_GROUPS = ('reviewer', 'admin')


def _claims(event: dict) -> dict:
    try:
        return event['requestContext']['authorizer']['claims'] or {}
    except (KeyError, TypeError):
        return {}


def get_user_sub(event: dict) -> Optional[str]:
    """Cognito sub of the caller, or None if the request is unauthenticated."""
    return _claims(event).get('sub')


def get_user_groups(event: dict) -> List[str]:
    # API Gateway flattens cognito:groups to a comma separated string
    groups = _claims(event).get('cognito:groups') or []
    if isinstance(groups, str):
        return [g.strip() for g in groups.strip('[]').split(',') if g.strip()]
    return list(groups)


def is_reviewer(event: dict) -> bool:
    return any(group in REVIEWER_GROUPS for group in get_user_groups(event))


def get_reviewer_id(event: dict) -> Optional[str]:
    """
    Sub of the caller if they may record proof decisions.

    Returns:
        The reviewer's sub, or None when the caller is anonymous or not in
        a reviewer group
    """
    if not is_reviewer(event):
        return None
    return get_user_sub(event)
