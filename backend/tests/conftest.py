"""
Shared fixtures for proof lifecycle tests.
"""
import os
import sys
import threading
from dataclasses import replace

import pytest

# Add src to path for import
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from proof_lifecycle.engine import ProofLifecycleEngine  # noqa: E402
from proof_lifecycle.errors import ActiveProofConflict, StaleTransition  # noqa: E402
from proof_lifecycle.store import ProofStore  # noqa: E402
from proof_lifecycle.transitions import EXPIRABLE_STATES, releases_active_slot  # noqa: E402

START_MS = 1_700_000_000_000


def _copy(submission):
    return replace(submission, photo_urls=list(submission.photo_urls))


class InMemoryProofStore(ProofStore):
    """
    ProofStore double with the same conditional-write rules as DynamoDB.
    A single lock stands in for the store's transaction isolation.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.submissions = {}
        self.order = []
        self.active = {}
        self.log = {}

    def create_submission(self, submission, entry):
        with self._lock:
            holder = self.active.get(submission.task_id)
            if holder is not None and not releases_active_slot(holder[1]):
                raise ActiveProofConflict(submission.task_id, holder[0], holder[1])
            self.active[submission.task_id] = (submission.submission_id, submission.state)
            self.submissions[submission.submission_id] = _copy(submission)
            self.order.append(submission.submission_id)
            self.log[submission.submission_id] = [entry]

    def apply_transition(self, current, updated, entry):
        with self._lock:
            stored = self.submissions.get(current.submission_id)
            if stored is None or stored.state != current.state or stored.version != current.version:
                raise StaleTransition(current.submission_id, current.state)
            self.submissions[current.submission_id] = _copy(updated)
            self.log[current.submission_id].append(entry)
            self.active[current.task_id] = (current.submission_id, updated.state)

    def get_submission(self, submission_id):
        with self._lock:
            stored = self.submissions.get(submission_id)
            return _copy(stored) if stored else None

    def get_task_slot(self, task_id):
        with self._lock:
            return self.active.get(task_id)

    def latest_for_task(self, task_id):
        slot = self.get_task_slot(task_id)
        return self.get_submission(slot[0]) if slot else None

    def list_task_submissions(self, task_id):
        with self._lock:
            rows = [self.submissions[sid] for sid in self.order
                    if self.submissions[sid].task_id == task_id]
            return [_copy(row) for row in sorted(rows, key=lambda s: s.created_at)]

    def find_expirable(self, now):
        with self._lock:
            rows = [s for s in self.submissions.values()
                    if s.state in EXPIRABLE_STATES and s.expires_at < now]
            return [s.submission_id for s in sorted(rows, key=lambda s: s.expires_at)]

    def list_transitions(self, submission_id):
        with self._lock:
            return sorted(self.log.get(submission_id, []), key=lambda e: e.sequence)


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start=START_MS):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def store():
    return InMemoryProofStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(store, clock):
    return ProofLifecycleEngine(store, clock=clock)
