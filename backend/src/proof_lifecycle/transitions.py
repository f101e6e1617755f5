"""
Transition table for the proof lifecycle.
Every state change goes through can_transition before it reaches the store.
"""
from typing import Dict, FrozenSet

from proof_lifecycle.models import ProofState

TRANSITIONS: Dict[ProofState, FrozenSet[ProofState]] = {
    ProofState.PENDING: frozenset({
        ProofState.REVIEWING,
        ProofState.ACCEPTED,
        ProofState.REJECTED,
        ProofState.EXPIRED,
    }),
    ProofState.REVIEWING: frozenset({
        ProofState.ACCEPTED,
        ProofState.REJECTED,
    }),
    ProofState.ACCEPTED: frozenset(),
    # Terminal for this row only; a new submission may follow
    ProofState.REJECTED: frozenset(),
    ProofState.EXPIRED: frozenset(),
}

# States that occupy the task's single active slot
ACTIVE_STATES = frozenset({ProofState.PENDING, ProofState.REVIEWING, ProofState.ACCEPTED})

# States the expiry sweep may move to EXPIRED. Only PENDING: the table has no
# REVIEWING -> EXPIRED edge, so a proof parked in REVIEWING keeps the task's
# slot (and blocks resubmission) until a reviewer accepts or rejects it.
# Nothing times out a stalled review; monitor REVIEWING rows by age instead.
EXPIRABLE_STATES = frozenset(
    state for state, targets in TRANSITIONS.items() if ProofState.EXPIRED in targets
)

_missing = set(ProofState) - set(TRANSITIONS)
if _missing:
    raise RuntimeError(f"Transition table has no entry for: {sorted(s.value for s in _missing)}")


def can_transition(from_state: ProofState, to_state: ProofState) -> bool:
    """Check if moving from from_state to to_state is allowed."""
    return to_state in TRANSITIONS[ProofState(from_state)]


def is_terminal(state: ProofState) -> bool:
    """A terminal state has no outgoing transitions."""
    return not TRANSITIONS[ProofState(state)]


def releases_active_slot(state: ProofState) -> bool:
    """Entering this state frees the task for a new submission."""
    return ProofState(state) not in ACTIVE_STATES
