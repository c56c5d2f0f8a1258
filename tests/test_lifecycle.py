#!/usr/bin/env python3
"""
Tests for auction state derivation and transition rules
"""

from datetime import datetime, timedelta, timezone

import pytest

from castbid.indexer.errors import IllegalTransitionError
from castbid.indexer.lifecycle import AuctionState, check_transition, effective_state, is_terminal

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestEffectiveState:
    def test_active_before_end(self):
        assert effective_state(AuctionState.ACTIVE, NOW + timedelta(minutes=1), NOW) == AuctionState.ACTIVE

    def test_active_past_end_reads_as_ended(self):
        assert effective_state(AuctionState.ACTIVE, NOW - timedelta(seconds=1), NOW) == AuctionState.ENDED

    def test_end_time_equal_to_now_is_ended(self):
        assert effective_state(AuctionState.ACTIVE, NOW, NOW) == AuctionState.ENDED

    @pytest.mark.parametrize("state", [AuctionState.SETTLED, AuctionState.CANCELLED, AuctionState.RECOVERED])
    def test_terminal_states_pass_through(self, state):
        assert effective_state(state, NOW + timedelta(days=1), NOW) == state
        assert effective_state(state, NOW - timedelta(days=1), NOW) == state

    def test_naive_end_time_treated_as_utc(self):
        naive_past = (NOW - timedelta(hours=1)).replace(tzinfo=None)
        assert effective_state(AuctionState.ACTIVE, naive_past, NOW) == AuctionState.ENDED

    def test_labels(self):
        assert AuctionState.ENDED.label == "Ended"
        assert AuctionState.CANCELLED.label == "Cancelled"


class TestTransitions:
    def test_active_to_settled_is_applied(self):
        assert check_transition(AuctionState.ACTIVE, AuctionState.SETTLED) is True

    def test_active_to_cancelled_is_applied(self):
        assert check_transition(AuctionState.ACTIVE, AuctionState.CANCELLED) is True

    def test_replay_of_same_terminal_state_is_noop(self):
        assert check_transition(AuctionState.SETTLED, AuctionState.SETTLED) is False

    def test_terminal_to_other_terminal_raises(self):
        with pytest.raises(IllegalTransitionError):
            check_transition(AuctionState.CANCELLED, AuctionState.SETTLED)

    def test_ended_is_never_a_write_target(self):
        with pytest.raises(IllegalTransitionError):
            check_transition(AuctionState.ACTIVE, AuctionState.ENDED)

    def test_is_terminal(self):
        assert not is_terminal(1)
        assert is_terminal(3)
        assert is_terminal(4)
