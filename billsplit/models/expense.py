"""
Expense Document Models

These models mirror the expense document persisted by the surrounding
application. They are designed to:
1. Accept persisted documents as they are (camelCase keys, legacy fields)
2. Normalize every currency value to a 2-place Decimal
3. Be serializable back to the same document shape

DESIGN DECISION: Participants are referenced by their position in
`Expense.participants`. The models do NOT cross-check those indices.
Persisted documents can be malformed; the validator reports such
problems and the ledger skips the affected item or fee.
"""

from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from billsplit.money import to_decimal

# Currency amount: parsed with the same rules as the engines use
Money = Annotated[Decimal, BeforeValidator(to_decimal)]

ParticipantIndex = Annotated[int, Field(ge=0)]


def _new_id() -> str:
    return uuid4().hex


class DocumentModel(BaseModel):
    """Base for persisted document shapes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    def to_document(self) -> dict:
        """Dump in the persisted (camelCase) shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# ENUMS
# =============================================================================

class ItemSplitType(str, Enum):
    """How an item's amount is shared."""
    EVEN = "even"      # divided equally
    CUSTOM = "custom"  # explicit split records


class FeeType(str, Enum):
    """How a fee's amount is determined."""
    PERCENTAGE = "percentage"  # percentage of the items total (tip, tax)
    FIXED = "fixed"


class FeeSplitType(str, Enum):
    """How a fee is shared."""
    EQUAL = "equal"
    PROPORTIONAL = "proportional"  # by each participant's item share


# =============================================================================
# DOCUMENT PARTS
# =============================================================================

class Participant(DocumentModel):
    """
    One member of an expense's split group.

    Only `name` is required. `user_id` is the stable reference the ledger
    uses to find the current user and friends.
    """

    name: str = Field(
        ...,
        max_length=200,
        description="Display name"
    )
    user_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("userId", "user_id", "id"),
        description="Stable user reference, None for placeholder guests"
    )
    username: Optional[str] = None
    phone_number: Optional[str] = None
    profile_photo: Optional[str] = None
    placeholder: bool = False


class SplitRecord(DocumentModel):
    """A participant's share of one item or fee."""

    participant_index: ParticipantIndex
    amount: Money
    # Can exceed 100 while a split is over-allocated
    percentage: Optional[float] = Field(
        default=None,
        ge=0.0,
    )


class _PayableEntry(DocumentModel):
    """Fields shared by items and fees."""

    id: str = Field(default_factory=_new_id)
    name: str = ""
    amount: Money = Decimal("0.00")
    selected_payers: list[ParticipantIndex] = Field(default_factory=list)
    paid_by: Optional[ParticipantIndex] = Field(
        default=None,
        description="Legacy single payer, superseded by selected_payers"
    )
    splits: list[SplitRecord] = Field(default_factory=list)

    @field_validator('selected_payers', mode='before')
    @classmethod
    def coerce_single_payer(cls, v):
        """Older documents store a single payer index instead of a list."""
        if v is None:
            return []
        if isinstance(v, int) and not isinstance(v, bool):
            return [v]
        return v

    def payer_indices(self) -> list[int]:
        """Payers recorded on this entry (may be empty)."""
        if self.selected_payers:
            return list(self.selected_payers)
        if self.paid_by is not None:
            return [self.paid_by]
        return []


class ExpenseItem(_PayableEntry):
    """A line item of an expense."""

    selected_consumers: list[ParticipantIndex] = Field(default_factory=list)
    split_type: Optional[ItemSplitType] = None

    def resolved_split_type(self) -> ItemSplitType:
        """Stored split type; otherwise custom if splits exist, else even."""
        if self.split_type is not None:
            return self.split_type
        return ItemSplitType.CUSTOM if self.splits else ItemSplitType.EVEN


class Fee(_PayableEntry):
    """A fee (tip, tax, service charge) added on top of the items."""

    type: FeeType = FeeType.PERCENTAGE
    percentage: float = Field(
        default=15.0,
        ge=0.0,
        le=100.0,
        description="Used when type is percentage"
    )
    split_type: FeeSplitType = FeeSplitType.PROPORTIONAL


# =============================================================================
# EXPENSE
# =============================================================================

class Expense(DocumentModel):
    """
    An expense: participants, items and fees.

    Created and replaced by the surrounding application. The allocation
    engine only produces the `splits` lists embedded in items and fees.
    """

    id: Optional[str] = None
    title: str = ""
    participants: list[Participant] = Field(default_factory=list)
    items: list[ExpenseItem] = Field(default_factory=list)
    fees: list[Fee] = Field(default_factory=list)
    selected_payers: list[ParticipantIndex] = Field(
        default_factory=list,
        description="Expense-level payers, used when an item/fee has none"
    )
    created_by: Optional[str] = None

    @field_validator('selected_payers', mode='before')
    @classmethod
    def coerce_single_payer(cls, v):
        if v is None:
            return []
        if isinstance(v, int) and not isinstance(v, bool):
            return [v]
        return v

    def items_total(self) -> Decimal:
        return sum((item.amount for item in self.items), Decimal("0.00"))

    def fees_total(self) -> Decimal:
        return sum((fee.amount for fee in self.fees), Decimal("0.00"))

    def total(self) -> Decimal:
        """Items plus fees."""
        return self.items_total() + self.fees_total()

    def participant_index_of(self, user_id: str) -> Optional[int]:
        """Position of the participant with this user reference, if any."""
        for index, participant in enumerate(self.participants):
            if participant.user_id is not None and participant.user_id == user_id:
                return index
        return None

    def payers_for(self, entry: _PayableEntry) -> list[int]:
        """
        Payers of an item or fee.

        Falls back to the expense-level payers, then to the first
        participant, which is who older documents assumed paid.
        """
        payers = entry.payer_indices() or list(self.selected_payers)
        if not payers and self.participants:
            return [0]
        return payers
