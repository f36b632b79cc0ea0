"""
Balance and Settlement Models

Output shapes of the balance ledger and the settlement calculator.
These are built fresh on every computation and never persisted.

Sign conventions:
- BalanceSummary.debt_breakdown: positive means the counterparty owes
  the current user, negative means the current user owes them.
- ParticipantBalance.balance: positive means the participant owes money,
  negative means they are owed money.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BalanceSummary(BaseModel):
    """Where the current user stands across a set of expenses."""

    model_config = ConfigDict(frozen=True)

    total_owed: Decimal = Field(
        default=Decimal("0.00"),
        description="What others owe the current user"
    )
    total_owes: Decimal = Field(
        default=Decimal("0.00"),
        description="What the current user owes others"
    )
    net_balance: Decimal = Field(
        default=Decimal("0.00"),
        description="total_owed - total_owes"
    )
    debt_breakdown: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Counterparty name -> signed amount"
    )
    skipped_records: int = Field(
        default=0,
        ge=0,
        description="Items/fees/documents left out because they were malformed"
    )

    @property
    def people_owing_you(self) -> list[str]:
        return [name for name, amount in self.debt_breakdown.items() if amount > 0]

    @property
    def people_you_owe(self) -> list[str]:
        return [name for name, amount in self.debt_breakdown.items() if amount < 0]


class BalanceDirection(str, Enum):
    """Direction of a balance between the current user and a friend."""
    OWES_YOU = "owes_you"
    YOU_OWE = "you_owe"
    SETTLED = "settled"


class FriendExpenseBalance(BaseModel):
    """Net position with one friend inside one expense."""

    model_config = ConfigDict(frozen=True)

    expense_id: Optional[str] = None
    title: str = ""
    amount: Decimal = Field(
        ...,
        description="Positive: friend owes the current user"
    )
    direction: BalanceDirection


class FriendBalanceSummary(BaseModel):
    """Balances between the current user and one friend."""

    model_config = ConfigDict(frozen=True)

    total_owed: Decimal = Decimal("0.00")
    total_owes: Decimal = Decimal("0.00")
    net_balance: Decimal = Decimal("0.00")
    debt_breakdown: dict[str, FriendExpenseBalance] = Field(
        default_factory=dict,
        description="Expense id -> position in that expense"
    )


class ExpensePosition(BaseModel):
    """The current user's position in a single expense."""

    model_config = ConfigDict(frozen=True)

    you_owe: Decimal = Field(
        ...,
        description="Positive: you owe; negative: you are owed"
    )
    you_paid: Decimal


# =============================================================================
# SETTLEMENT
# =============================================================================

class ParticipantBalance(BaseModel):
    """Net position of one participant within one expense."""

    name: str
    index: int = Field(ge=0)
    balance: Decimal = Field(
        ...,
        description="Positive: owes money; negative: is owed money"
    )


class Settlement(BaseModel):
    """One proposed payment."""

    model_config = ConfigDict(frozen=True)

    from_name: str
    from_index: int
    to_name: str
    to_index: int
    amount: Decimal = Field(gt=0)


class SettlementProposal(BaseModel):
    """Payments that settle one expense."""

    settlements: list[Settlement] = Field(default_factory=list)
    balances: list[ParticipantBalance] = Field(default_factory=list)

    @property
    def total_settlements(self) -> int:
        return len(self.settlements)

    @property
    def total_amount(self) -> Decimal:
        return sum((s.amount for s in self.settlements), Decimal("0.00"))


class SettlementSummary(BaseModel):
    """Statistics over a list of settlements."""

    total_transactions: int = Field(ge=0)
    total_amount: Decimal
    unique_payers: int = Field(ge=0)
    unique_receivers: int = Field(ge=0)
    unique_people: int = Field(ge=0)
    average_transaction: Decimal
