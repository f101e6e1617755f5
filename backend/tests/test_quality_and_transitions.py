"""
Tests for the quality classifier and the proof transition table.
"""
import pytest

from proof_lifecycle.models import ProofState, QualityTier
from proof_lifecycle.quality import classify
from proof_lifecycle.transitions import (
    ACTIVE_STATES,
    EXPIRABLE_STATES,
    TRANSITIONS,
    can_transition,
    is_terminal,
    releases_active_slot,
)


class TestQualityClassifier:
    """Tests for classify."""

    def test_comprehensive(self):
        evidence = {'description': 'x' * 60, 'photoUrls': ['a', 'b'], 'hasBeforeAfter': True}
        assert classify(evidence) == QualityTier.COMPREHENSIVE

    def test_single_photo_is_standard(self):
        assert classify({'photoUrls': ['a']}) == QualityTier.STANDARD

    def test_empty_is_basic(self):
        assert classify({}) == QualityTier.BASIC
        assert classify(None) == QualityTier.BASIC

    def test_deterministic(self):
        evidence = {'description': 'x' * 60, 'photoUrls': ['a', 'b'], 'hasBeforeAfter': True}
        results = {classify(evidence) for _ in range(10)}
        assert results == {QualityTier.COMPREHENSIVE}

    def test_description_must_exceed_50_chars(self):
        """Exactly 50 characters is not a detailed description."""
        evidence = {'description': 'x' * 50, 'photoUrls': ['a', 'b'], 'hasBeforeAfter': True}
        assert classify(evidence) == QualityTier.STANDARD

    def test_before_after_needs_two_photos(self):
        evidence = {'description': 'x' * 80, 'photoUrls': ['a'], 'hasBeforeAfter': True}
        assert classify(evidence) == QualityTier.STANDARD

    def test_long_description_without_photos_is_basic(self):
        evidence = {'description': 'x' * 200, 'hasBeforeAfter': True}
        assert classify(evidence) == QualityTier.BASIC

    def test_null_fields_treated_as_empty(self):
        evidence = {'description': None, 'photoUrls': None, 'hasBeforeAfter': None}
        assert classify(evidence) == QualityTier.BASIC


class TestTransitionTable:
    """Tests for can_transition and friends."""

    def test_every_state_has_an_entry(self):
        assert set(TRANSITIONS) == set(ProofState)

    def test_accepted_cannot_become_rejected(self):
        assert can_transition(ProofState.ACCEPTED, ProofState.REJECTED) is False

    def test_pending_can_start_review(self):
        assert can_transition(ProofState.PENDING, ProofState.REVIEWING) is True

    @pytest.mark.parametrize('target', [
        ProofState.REVIEWING, ProofState.ACCEPTED, ProofState.REJECTED, ProofState.EXPIRED
    ])
    def test_pending_targets(self, target):
        assert can_transition(ProofState.PENDING, target)

    def test_reviewing_targets(self):
        allowed = {s for s in ProofState if can_transition(ProofState.REVIEWING, s)}
        assert allowed == {ProofState.ACCEPTED, ProofState.REJECTED}

    def test_accepts_string_values(self):
        assert can_transition('PENDING', 'ACCEPTED') is True

    def test_terminal_states(self):
        terminal = {s for s in ProofState if is_terminal(s)}
        assert terminal == {ProofState.ACCEPTED, ProofState.REJECTED, ProofState.EXPIRED}

    def test_no_self_transitions(self):
        for state in ProofState:
            assert not can_transition(state, state)

    def test_only_rejected_and_expired_release_the_task(self):
        released = {s for s in ProofState if releases_active_slot(s)}
        assert released == {ProofState.REJECTED, ProofState.EXPIRED}
        assert ACTIVE_STATES == {ProofState.PENDING, ProofState.REVIEWING, ProofState.ACCEPTED}

    def test_expirable_states_follow_table(self):
        assert EXPIRABLE_STATES == {ProofState.PENDING}
