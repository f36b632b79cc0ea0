"""
Tests for the split allocation engine.

The engine is pure, so every test builds a state, applies operations and
checks the returned state. No mocks needed.
"""

from decimal import Decimal

import pytest
from structlog.testing import capture_logs

from billsplit.allocation import (
    AllocationState,
    Blur,
    IssueKind,
    Reset,
    SetAmount,
    SplitAllocator,
    ToggleLock,
    apply,
    blur,
    initialize,
    redistribute,
    set_amount,
    slot_for,
    to_split_records,
    toggle_lock,
)
from billsplit.models import SplitRecord


def amounts(state: AllocationState) -> list[int]:
    return [share.amount_cents for share in state.shares]


def locks(state: AllocationState) -> list[bool]:
    return [share.locked for share in state.shares]


class TestInitialize:
    """Tests for the initial even split."""

    def test_even_split_with_remainder(self):
        """Test $10.00 among 3 -> [3.34, 3.33, 3.33]."""
        state = initialize("10.00", 3)
        assert amounts(state) == [334, 333, 333]
        assert locks(state) == [False, False, False]
        assert state.is_balanced

    def test_single_participant_takes_all(self):
        """Test that one participant gets the whole total."""
        state = initialize(Decimal("42.17"), 1)
        assert amounts(state) == [4217]

    def test_zero_participants_is_empty(self):
        """Test that zero participants is a no-op, not an error."""
        state = initialize(10, 0)
        assert state.is_empty
        assert to_split_records(state) == []

    def test_non_positive_total_is_empty(self):
        """Test mid-edit totals (zero, negative, garbage)."""
        assert initialize(0, 3).is_empty
        assert initialize(-5, 3).is_empty
        assert initialize("12.", 3).total_cents == 1200
        assert initialize("abc", 3).is_empty

    def test_oversized_total_is_empty(self):
        """Test a total with more digits than a Decimal can hold."""
        assert initialize("1e30", 3).is_empty
        assert initialize(Decimal("1e30"), 3).is_empty

    def test_consumer_subset(self):
        """Test that only consumers get shares."""
        state = initialize(10, 4, consumers=[1, 3])
        assert state.participant_indices == (1, 3)
        assert amounts(state) == [500, 500]

    def test_consumers_are_deduplicated_and_bounded(self):
        """Test that repeated and out-of-range consumers are dropped."""
        state = initialize(9, 3, consumers=[2, 2, 0, 7])
        assert state.participant_indices == (2, 0)

    def test_no_consumers_is_empty(self):
        """Test an empty consumer selection."""
        assert initialize(10, 3, consumers=[]).is_empty

    def test_restores_matching_initial_splits(self):
        """Test that saved splits that still reconcile are kept."""
        saved = [
            {"participantIndex": 0, "amount": 7},
            {"participantIndex": 1, "amount": 3},
        ]
        state = initialize(10, 2, initial_splits=saved)
        assert amounts(state) == [700, 300]
        assert locks(state) == [False, False]

    def test_ignores_stale_initial_splits(self):
        """Test that splits from an old total fall back to an even split."""
        saved = [SplitRecord(participant_index=0, amount=7), SplitRecord(participant_index=1, amount=3)]
        state = initialize(20, 2, initial_splits=saved)
        assert amounts(state) == [1000, 1000]

    def test_ignores_malformed_initial_splits(self):
        """Test that unparsable saved splits are ignored."""
        state = initialize(10, 2, initial_splits=[{"participantIndex": "x", "amount": 1}])
        assert amounts(state) == [500, 500]


class TestSetAmount:
    """Tests for explicit user edits."""

    def test_edit_locks_and_redistributes(self):
        """Test that others share what is left."""
        state = set_amount(initialize(100, 3), 0, "40")
        assert amounts(state) == [4000, 3000, 3000]
        assert locks(state) == [True, False, False]
        assert state.issue is None

    def test_single_unlocked_absorbs_remainder(self):
        """Test $100 with $30.00 and $30.01 locked -> last gets $39.99."""
        state = initialize(100, 3)
        state = set_amount(state, 0, "30.00")
        state = set_amount(state, 1, "30.01")
        assert amounts(state) == [3000, 3001, 3999]
        assert state.allocated_cents == 10000

    def test_none_means_zero(self):
        """Test that clearing an input locks it at zero."""
        state = set_amount(initialize(10, 2), 0, None)
        assert amounts(state) == [0, 1000]
        assert locks(state) == [True, False]

    def test_over_allocation_is_reported(self):
        """Test $50 total with $60 locked."""
        state = set_amount(initialize(50, 3), 0, 60)
        assert state.issue is not None
        assert state.issue.kind == IssueKind.OVER_ALLOCATED
        assert state.issue.amount_cents == 1000
        assert state.error == "Total exceeds bill amount by $10.00"
        # The typed value is kept, everybody else drops to zero
        assert amounts(state) == [6000, 0, 0]
        assert locks(state) == [True, False, False]

    def test_over_allocation_recovers_on_next_edit(self):
        """Test that the engine keeps accepting edits after an error."""
        state = set_amount(initialize(50, 3), 0, 60)
        state = set_amount(state, 0, 20)
        assert state.issue is None
        assert amounts(state) == [2000, 1500, 1500]

    def test_over_allocation_across_several_locks(self):
        """Test that the sum of locked shares is what counts."""
        state = initialize(10, 3)
        state = set_amount(state, 0, 6)
        state = set_amount(state, 1, 5)
        assert state.issue.kind == IssueKind.OVER_ALLOCATED
        assert state.issue.amount_cents == 100
        assert amounts(state) == [600, 500, 0]

    def test_locked_values_survive_other_edits(self):
        """Test that a lock is never overwritten by redistribution."""
        state = initialize(90, 3)
        state = set_amount(state, 0, 10)
        state = set_amount(state, 2, 50)
        assert amounts(state)[0] == 1000
        assert amounts(state) == [1000, 3000, 5000]

    def test_all_locked_short_of_total(self):
        """Test that a shortfall with nothing unlocked is surfaced."""
        state = initialize(10, 2)
        state = set_amount(state, 0, 3)
        state = set_amount(state, 1, 5)
        assert state.issue.kind == IssueKind.UNDER_ALLOCATED
        assert state.issue.amount_cents == 200
        assert state.error == "Unallocated amount of $2.00"
        assert not state.is_balanced

    def test_bad_slot_raises(self):
        """Test that an out-of-range slot is a programming error."""
        with pytest.raises(IndexError):
            set_amount(initialize(10, 2), 5, 1)

    def test_state_is_not_mutated(self):
        """Test that operations return new states."""
        original = initialize(10, 2)
        set_amount(original, 0, 7)
        assert amounts(original) == [500, 500]


class TestToggleLock:
    """Tests for locking and unlocking shares."""

    def test_lock_keeps_amount(self):
        """Test that locking keeps the current amount."""
        state = toggle_lock(initialize(10, 3), 1)
        assert locks(state) == [False, True, False]
        assert amounts(state)[1] == 333
        assert sum(amounts(state)) == 1000

    def test_lock_unlock_round_trip(self):
        """Test that lock then unlock restores the even split."""
        start = initialize(10, 3)
        for slot in range(3):
            state = toggle_lock(toggle_lock(start, slot), slot)
            assert amounts(state) == amounts(start)
            assert locks(state) == [False, False, False]

    def test_unlock_returns_share_to_pool(self):
        """Test that unlocking an edited share redistributes it."""
        state = set_amount(initialize(12, 3), 0, 10)
        assert amounts(state) == [1000, 100, 100]
        state = toggle_lock(state, 0)
        assert amounts(state) == [400, 400, 400]

    def test_unlock_clears_over_allocation(self):
        """Test that unlocking the offending share clears the issue."""
        state = set_amount(initialize(50, 2), 0, 60)
        state = toggle_lock(state, 0)
        assert state.issue is None
        assert amounts(state) == [2500, 2500]

    def test_toggle_keeps_over_allocation_if_still_over(self):
        """Test that toggling an unrelated share keeps the issue."""
        state = set_amount(initialize(50, 3), 0, 60)
        state = toggle_lock(state, 1)
        assert state.issue.kind == IssueKind.OVER_ALLOCATED

    def test_locking_last_unlocked_share(self):
        """Test that locking everything at the right total is fine."""
        state = set_amount(initialize(10, 2), 0, 4)
        state = toggle_lock(state, 1)
        assert locks(state) == [True, True]
        assert state.issue is None
        assert state.is_balanced


class TestRedistribute:
    """Tests for the redistribution core."""

    def test_empty_state(self):
        """Test that an empty state passes through."""
        state = AllocationState()
        assert redistribute(state) is state

    def test_extra_cents_go_to_first_unlocked(self):
        """Test the penny tie-break among unlocked shares."""
        state = initialize(10, 4)
        state = set_amount(state, 0, "0.01")
        # 9.99 over 3 unlocked
        assert amounts(state) == [1, 333, 333, 333]
        state = set_amount(state, 1, "0.01")
        # 9.98 over 2 unlocked
        assert amounts(state) == [1, 1, 499, 499]

    def test_conservation_over_edit_sequence(self):
        """Test that the total holds after every non-error operation."""
        state = initialize("73.19", 5)
        operations = [
            lambda s: set_amount(s, 0, "12.34"),
            lambda s: toggle_lock(s, 3),
            lambda s: set_amount(s, 2, "0.99"),
            lambda s: toggle_lock(s, 0),
            lambda s: set_amount(s, 4, "20"),
            lambda s: blur(s, 1),
            lambda s: toggle_lock(s, 3),
        ]
        for operation in operations:
            state = operation(state)
            assert state.issue is None
            assert state.allocated_cents == 7319


class TestBlur:
    """Tests for focus loss."""

    def test_blur_on_normal_share_is_identity(self):
        """Test that a filled share is left alone."""
        state = set_amount(initialize(10, 2), 0, "3.456")
        assert amounts(state) == [346, 654]
        assert blur(state, 0) == state

    def test_blur_on_empty_unlocked_share_rebalances(self):
        """Test that an empty unlocked share is reset and rebalanced."""
        state = set_amount(initialize(10, 2), 0, 10)
        assert amounts(state) == [1000, 0]
        state = blur(state, 1)
        assert amounts(state) == [1000, 0]
        assert locks(state) == [True, False]


class TestIndexMapping:
    """Tests for slot <-> participant index mapping."""

    def test_records_use_participant_indices(self):
        """Test local slots map back to participant positions."""
        state = initialize(10, 5, consumers=[4, 1, 3])
        records = to_split_records(state)
        assert [r.participant_index for r in records] == [4, 1, 3]
        assert [r.amount for r in records] == [Decimal("3.34"), Decimal("3.33"), Decimal("3.33")]

    def test_slot_for_maps_participant_to_slot(self):
        """Test the reverse direction."""
        state = initialize(10, 5, consumers=[4, 1, 3])
        assert slot_for(state, 4) == 0
        assert slot_for(state, 1) == 1
        assert slot_for(state, 3) == 2

    def test_slot_for_non_consumer(self):
        """Test that a non-consumer has no slot."""
        state = initialize(10, 5, consumers=[4, 1])
        with pytest.raises(KeyError):
            slot_for(state, 0)

    def test_round_trip_through_both_directions(self):
        """Test edit by participant index shows up under that index."""
        state = initialize(20, 4, consumers=[3, 0])
        state = set_amount(state, slot_for(state, 0), 15)
        records = {r.participant_index: r.amount for r in to_split_records(state)}
        assert records == {3: Decimal("5.00"), 0: Decimal("15.00")}

    def test_records_carry_percentage(self):
        """Test record percentages."""
        records = to_split_records(set_amount(initialize(10, 2), 0, "2.50"))
        assert [r.percentage for r in records] == [25.0, 75.0]


class TestEvents:
    """Tests for the transition function."""

    def test_apply_dispatches(self):
        """Test each event type."""
        state = initialize(10, 3)
        state = apply(state, SetAmount(slot=0, value=4))
        assert amounts(state) == [400, 300, 300]
        state = apply(state, ToggleLock(slot=0))
        assert amounts(state) == [334, 333, 333]
        state = apply(state, Blur(slot=1))
        assert amounts(state) == [334, 333, 333]

    def test_reset_drops_locks(self):
        """Test that a consumer change starts from scratch."""
        state = set_amount(initialize(10, 3), 0, 8)
        state = apply(state, Reset(total=10, participant_count=3, consumers=(0, 2)))
        assert state.participant_indices == (0, 2)
        assert amounts(state) == [500, 500]
        assert locks(state) == [False, False]

    def test_unknown_event(self):
        """Test that an unknown event is rejected."""
        with pytest.raises(TypeError):
            apply(initialize(10, 2), object())


class TestSplitAllocator:
    """Tests for the push-model session."""

    def test_notifies_on_change(self):
        """Test that subscribers get split records after an edit."""
        received = []
        allocator = SplitAllocator(total=10, participant_count=2, on_change=received.append)
        allocator.set_amount(0, 6)
        assert len(received) == 1
        assert [r.amount for r in received[0]] == [Decimal("6.00"), Decimal("4.00")]

    def test_no_notification_without_change(self):
        """Test that a no-op blur does not notify."""
        received = []
        allocator = SplitAllocator(total=10, participant_count=2, on_change=received.append)
        allocator.blur(0)
        assert received == []

    def test_unsubscribe(self):
        """Test that an unsubscribed callback is not called."""
        received = []
        allocator = SplitAllocator(total=10, participant_count=2)
        unsubscribe = allocator.subscribe(received.append)
        unsubscribe()
        allocator.set_amount(0, 1)
        assert received == []

    def test_error_surface(self):
        """Test that the session exposes the over-allocation message."""
        allocator = SplitAllocator(total=50, participant_count=3)
        allocator.set_amount(0, 60)
        assert allocator.error == "Total exceeds bill amount by $10.00"
        assert allocator.splits[0].percentage == 120.0
        allocator.set_amount(0, 10)
        assert allocator.error is None

    def test_set_participant_amount(self):
        """Test editing by participant index in a consumer subset."""
        allocator = SplitAllocator(total=9, participant_count=4, consumers=[3, 1, 2])
        allocator.set_participant_amount(1, 5)
        splits = {r.participant_index: r.amount for r in allocator.splits}
        assert splits == {3: Decimal("2.00"), 1: Decimal("5.00"), 2: Decimal("2.00")}

    def test_reset_with_new_consumers(self):
        """Test that reset re-splits and drops locks."""
        allocator = SplitAllocator(total=10, participant_count=3)
        allocator.set_amount(0, 9)
        allocator.reset(12, consumers=[1, 2])
        assert allocator.state.participant_indices == (1, 2)
        assert [s.locked for s in allocator.state.shares] == [False, False]
        assert allocator.state.total_cents == 1200

    def test_change_is_logged(self):
        """Test that each change is logged with the event that caused it."""
        received = []
        with capture_logs() as logs:
            allocator = SplitAllocator(total=10, participant_count=2, on_change=received.append)
            allocator.set_amount(0, 7)
            allocator.toggle_lock(0)
        changes = [entry for entry in logs if entry["event"] == "allocation_changed"]
        assert [entry["event_type"] for entry in changes] == ["SetAmount", "ToggleLock"]
        assert changes[0]["amounts"] == [700, 300]
        assert len(received) == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
