"""
Data Models Package

This package contains all Pydantic models used by billsplit.
Expense documents going into the engines and balances coming out
must conform to these schemas.
"""

from billsplit.models.expense import (
    Expense,
    ExpenseItem,
    Fee,
    FeeSplitType,
    FeeType,
    ItemSplitType,
    Money,
    Participant,
    SplitRecord,
)
from billsplit.models.balance import (
    BalanceDirection,
    BalanceSummary,
    ExpensePosition,
    FriendBalanceSummary,
    FriendExpenseBalance,
    ParticipantBalance,
    Settlement,
    SettlementProposal,
    SettlementSummary,
)
from billsplit.models.validation import ValidationIssue, ValidationResult

__all__ = [
    # Expense document models
    "Expense",
    "ExpenseItem",
    "Fee",
    "FeeSplitType",
    "FeeType",
    "ItemSplitType",
    "Money",
    "Participant",
    "SplitRecord",
    # Balance models
    "BalanceDirection",
    "BalanceSummary",
    "ExpensePosition",
    "FriendBalanceSummary",
    "FriendExpenseBalance",
    "ParticipantBalance",
    "Settlement",
    "SettlementProposal",
    "SettlementSummary",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
]
