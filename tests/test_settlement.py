"""
Tests for per-expense balances and settlement proposals.
"""

from decimal import Decimal

import pytest

from billsplit.ledger import (
    hub_settlement,
    participant_balances,
    propose_settlement,
    summarize_settlements,
)
from billsplit.models import (
    Expense,
    ExpenseItem,
    Fee,
    FeeSplitType,
    FeeType,
    Participant,
    ParticipantBalance,
    SplitRecord,
)


def trio(*items, fees=()) -> Expense:
    return Expense(
        id="trip",
        participants=[Participant(name="Alice"), Participant(name="Bob"), Participant(name="Cara")],
        items=list(items),
        fees=list(fees),
    )


@pytest.fixture
def one_payer() -> Expense:
    """Alice pays $30 shared by all three."""
    return trio(ExpenseItem(name="Dinner", amount=30, selected_consumers=[0, 1, 2], selected_payers=[0]))


@pytest.fixture
def two_payers() -> Expense:
    """Alice pays $30 and Bob pays $24, both shared by all three."""
    return trio(
        ExpenseItem(name="Dinner", amount=30, selected_consumers=[0, 1, 2], selected_payers=[0]),
        ExpenseItem(name="Drinks", amount=24, selected_consumers=[0, 1, 2], selected_payers=[1]),
    )


def by_name(balances) -> dict:
    return {b.name: b.balance for b in balances}


class TestParticipantBalances:
    """Tests for participant_balances."""

    def test_single_payer(self, one_payer):
        """Test that the payer is owed what the others consumed."""
        assert by_name(participant_balances(one_payer)) == {
            "Alice": Decimal("-20.00"),
            "Bob": Decimal("10.00"),
            "Cara": Decimal("10.00"),
        }

    def test_balances_sum_to_zero(self, two_payers):
        """Test that money is neither created nor lost."""
        balances = participant_balances(two_payers)
        assert sum(b.balance for b in balances) == Decimal("0.00")
        assert by_name(balances) == {
            "Alice": Decimal("-12.00"),
            "Bob": Decimal("-6.00"),
            "Cara": Decimal("18.00"),
        }

    def test_custom_splits_are_used(self):
        """Test that recorded splits decide the charges."""
        expense = trio(ExpenseItem(
            name="Cake",
            amount=9,
            selected_payers=[2],
            splits=[SplitRecord(participant_index=0, amount=9)],
        ))
        assert by_name(participant_balances(expense)) == {
            "Alice": Decimal("9.00"),
            "Bob": Decimal("0.00"),
            "Cara": Decimal("-9.00"),
        }

    def test_fee_payer_is_credited(self):
        """Test that a fee's payer gets the fee back from the others."""
        fee = Fee(
            name="Parking",
            type=FeeType.FIXED,
            amount=3,
            split_type=FeeSplitType.EQUAL,
            selected_payers=[1],
        )
        balances = participant_balances(trio(fees=[fee]))
        assert by_name(balances) == {
            "Alice": Decimal("1.00"),
            "Bob": Decimal("-2.00"),
            "Cara": Decimal("1.00"),
        }

    def test_unpaid_item_defaults_to_first_participant(self):
        """Test that an item with no payer is taken as paid by the first participant."""
        expense = trio(ExpenseItem(name="Mystery", amount=30, selected_consumers=[0, 1]))
        assert by_name(participant_balances(expense)) == {
            "Alice": Decimal("-15.00"),
            "Bob": Decimal("15.00"),
            "Cara": Decimal("0.00"),
        }

    def test_missing_payer_is_left_out(self):
        """Test that an item whose payer no longer exists does not unbalance the result."""
        expense = trio(ExpenseItem(name="Mystery", amount=30, selected_consumers=[0, 1], selected_payers=[5]))
        balances = participant_balances(expense)
        assert all(b.balance == Decimal("0.00") for b in balances)

    def test_no_participants(self):
        """Test an empty expense."""
        assert participant_balances(Expense()) == []

    def test_raw_document(self):
        """Test a persisted document."""
        document = {
            "participants": [{"name": "Alice"}, {"name": "Bob"}],
            "items": [{"name": "Taxi", "amount": "10", "selectedPayers": [1]}],
        }
        assert by_name(participant_balances(document)) == {
            "Alice": Decimal("5.00"),
            "Bob": Decimal("-5.00"),
        }


class TestProposeSettlement:
    """Tests for the greedy settlement."""

    def test_everyone_pays_the_payer(self, one_payer):
        """Test the single payer case."""
        proposal = propose_settlement(one_payer)
        assert [(s.from_name, s.to_name, s.amount) for s in proposal.settlements] == [
            ("Bob", "Alice", Decimal("10.00")),
            ("Cara", "Alice", Decimal("10.00")),
        ]
        assert proposal.total_settlements == 2
        assert proposal.total_amount == Decimal("20.00")

    def test_largest_creditor_first(self, two_payers):
        """Test that the largest debtor pays the largest creditor first."""
        proposal = propose_settlement(two_payers)
        assert [(s.from_index, s.to_index, s.amount) for s in proposal.settlements] == [
            (2, 0, Decimal("12.00")),
            (2, 1, Decimal("6.00")),
        ]

    def test_settlements_clear_all_balances(self, two_payers):
        """Test that applying the payments settles everybody."""
        proposal = propose_settlement(two_payers)
        remaining = {b.index: b.balance for b in proposal.balances}
        for s in proposal.settlements:
            remaining[s.from_index] -= s.amount
            remaining[s.to_index] += s.amount
        assert all(amount == 0 for amount in remaining.values())

    def test_threshold_ignores_small_balances(self, one_payer):
        """Test that balances within the threshold count as settled."""
        proposal = propose_settlement(one_payer, threshold_cents=1000)
        assert proposal.settlements == []

    def test_already_settled(self):
        """Test that a self-consumed item needs no payments."""
        expense = trio(ExpenseItem(name="Own", amount=5, selected_consumers=[0], selected_payers=[0]))
        assert propose_settlement(expense).settlements == []


class TestHubSettlement:
    """Tests for hub_settlement."""

    def test_routes_through_largest_creditor(self, two_payers):
        """Test that debtors pay the hub and the hub pays the rest."""
        settlements = hub_settlement(participant_balances(two_payers))
        assert [(s.from_name, s.to_name, s.amount) for s in settlements] == [
            ("Cara", "Alice", Decimal("18.00")),
            ("Alice", "Bob", Decimal("6.00")),
        ]

    def test_nothing_to_settle(self):
        """Test balances that are all zero."""
        balances = [
            ParticipantBalance(name="Alice", index=0, balance=Decimal("0.00")),
            ParticipantBalance(name="Bob", index=1, balance=Decimal("0.00")),
        ]
        assert hub_settlement(balances) == []


class TestSummarizeSettlements:
    """Tests for summarize_settlements."""

    def test_summary(self, two_payers):
        """Test counts and totals."""
        summary = summarize_settlements(propose_settlement(two_payers).settlements)
        assert summary.total_transactions == 2
        assert summary.total_amount == Decimal("18.00")
        assert summary.unique_payers == 1
        assert summary.unique_receivers == 2
        assert summary.unique_people == 3
        assert summary.average_transaction == Decimal("9.00")

    def test_empty(self):
        """Test the summary of no settlements."""
        summary = summarize_settlements([])
        assert summary.total_transactions == 0
        assert summary.average_transaction == Decimal("0.00")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
