"""
Ledger Package

Turns saved expenses into balances between people and proposes
settlements.
"""

from billsplit.ledger.balances import (
    ExpenseLike,
    Obligation,
    compute_balances,
    compute_friend_balances,
    entry_obligations,
    expense_obligations,
    expense_position,
    load_expense,
)
from billsplit.ledger.settlement import (
    hub_settlement,
    participant_balances,
    propose_settlement,
    summarize_settlements,
)

__all__ = [
    # Balances
    "ExpenseLike",
    "Obligation",
    "compute_balances",
    "compute_friend_balances",
    "entry_obligations",
    "expense_obligations",
    "expense_position",
    "load_expense",
    # Settlement
    "hub_settlement",
    "participant_balances",
    "propose_settlement",
    "summarize_settlements",
]
