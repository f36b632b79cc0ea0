"""
Split Allocation Engine

Divides a total among the consumers of an item, fee or receipt while the
user pins ("locks") some shares by typing them in. Every operation is a
pure function: it takes an AllocationState and returns a new one.

INVARIANTS:
1. After any operation that leaves no issue on the state, the shares sum
   exactly to the total (integer cents, no rounding drift).
2. A locked share is only changed by an explicit user action on that
   share (a new amount or an unlock).
3. Over-allocation is a state, not an exception. The engine keeps
   accepting edits.

INDEX SPACES:
Shares are addressed by *slot*, their position among the active
consumers. `participant_indices[slot]` is the participant's position in
the expense. `to_split_records` maps slots to participant indices and
`slot_for` maps back.
"""

from enum import Enum
from typing import Any, Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from billsplit.config import get_settings
from billsplit.models.expense import SplitRecord
from billsplit.money import (
    InvalidAmountError,
    format_money,
    from_cents,
    percentage_of,
    split_evenly,
    to_cents,
)


# =============================================================================
# STATE
# =============================================================================

class Share(BaseModel):
    """One consumer's share."""

    model_config = ConfigDict(frozen=True)

    amount_cents: int = Field(default=0, ge=0)
    locked: bool = Field(
        default=False,
        description="True if the user typed this amount"
    )


class IssueKind(str, Enum):
    OVER_ALLOCATED = "over_allocated"    # locked shares exceed the total
    UNDER_ALLOCATED = "under_allocated"  # everything locked, total not reached


class AllocationIssue(BaseModel):
    """A user-visible validation state. Never raised."""

    model_config = ConfigDict(frozen=True)

    kind: IssueKind
    amount_cents: int = Field(ge=0)
    message: str


class AllocationState(BaseModel):
    """
    Complete state of one split.

    Replaced wholesale by every operation, never patched in place.
    """

    model_config = ConfigDict(frozen=True)

    total_cents: int = Field(default=0, ge=0)
    participant_indices: tuple[int, ...] = ()
    shares: tuple[Share, ...] = ()
    issue: Optional[AllocationIssue] = None

    @model_validator(mode='after')
    def check_alignment(self) -> 'AllocationState':
        if len(self.shares) != len(self.participant_indices):
            raise ValueError("Every share needs exactly one participant index")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.shares

    @property
    def locked_cents(self) -> int:
        return sum(s.amount_cents for s in self.shares if s.locked)

    @property
    def allocated_cents(self) -> int:
        return sum(s.amount_cents for s in self.shares)

    @property
    def unallocated_cents(self) -> int:
        return max(0, self.total_cents - self.allocated_cents)

    @property
    def is_balanced(self) -> bool:
        return self.issue is None and self.allocated_cents == self.total_cents

    @property
    def error(self) -> Optional[str]:
        return self.issue.message if self.issue else None


def _over_allocated(excess_cents: int) -> AllocationIssue:
    symbol = get_settings().allocation.currency_symbol
    return AllocationIssue(
        kind=IssueKind.OVER_ALLOCATED,
        amount_cents=excess_cents,
        message=f"Total exceeds bill amount by {format_money(excess_cents, symbol)}",
    )


def _under_allocated(missing_cents: int) -> AllocationIssue:
    symbol = get_settings().allocation.currency_symbol
    return AllocationIssue(
        kind=IssueKind.UNDER_ALLOCATED,
        amount_cents=missing_cents,
        message=f"Unallocated amount of {format_money(missing_cents, symbol)}",
    )


def _check_slot(state: AllocationState, slot: int) -> None:
    if not 0 <= slot < len(state.shares):
        raise IndexError(f"Slot {slot} out of range for {len(state.shares)} shares")


# =============================================================================
# OPERATIONS
# =============================================================================

def _active_consumers(
    consumers: Optional[Iterable[int]],
    participant_count: int,
) -> list[int]:
    """Consumer indices in the given order, de-duplicated and in range."""
    if consumers is None:
        return list(range(participant_count))
    active = []
    for index in consumers:
        if 0 <= index < participant_count and index not in active:
            active.append(index)
    return active


def _restore_amounts(
    initial_splits: Iterable[Any],
    active: list[int],
    total_cents: int,
) -> Optional[list[int]]:
    """
    Amounts from previously persisted split records.

    Only used when the records cover exactly the active consumers and
    reconcile to the total; otherwise None.
    """
    by_participant: dict[int, int] = {}
    try:
        for raw in initial_splits:
            record = raw if isinstance(raw, SplitRecord) else SplitRecord.model_validate(raw)
            by_participant[record.participant_index] = to_cents(record.amount)
    except ValidationError:
        return None

    if set(by_participant) != set(active):
        return None
    amounts = [by_participant[index] for index in active]
    if sum(amounts) != total_cents:
        return None
    return amounts


def initialize(
    total: Any,
    participant_count: int,
    consumers: Optional[Iterable[int]] = None,
    initial_splits: Optional[Iterable[Any]] = None,
) -> AllocationState:
    """
    Even split of `total` among the consumers, every share unlocked.

    Args:
        total: Amount to split (Decimal, float, str or cents-free int)
        participant_count: Size of the expense's participant list
        consumers: Participant indices taking part; None means everyone
        initial_splits: Persisted split records to restore, if they still
            reconcile to the total

    Zero participants, no consumers and a non-positive or unparsable total
    are ordinary mid-edit states: they give an empty state, not an error.
    """
    try:
        total_cents = to_cents(total)
    except InvalidAmountError:
        return AllocationState()

    if participant_count <= 0 or total_cents <= 0:
        return AllocationState()

    active = _active_consumers(consumers, participant_count)
    if not active:
        return AllocationState()

    amounts = split_evenly(total_cents, len(active))
    if initial_splits:
        amounts = _restore_amounts(initial_splits, active, total_cents) or amounts

    return AllocationState(
        total_cents=total_cents,
        participant_indices=tuple(active),
        shares=tuple(Share(amount_cents=a) for a in amounts),
    )


def redistribute(state: AllocationState) -> AllocationState:
    """
    Recompute every unlocked share so the total is conserved.

    The remainder after locked shares is split among the unlocked shares
    with the floored base amount; leftover cents go to the first unlocked
    shares in list order. A single unlocked share absorbs the whole
    remainder.
    """
    if state.is_empty:
        return state

    unlocked = [slot for slot, share in enumerate(state.shares) if not share.locked]
    locked_total = state.locked_cents

    if not unlocked:
        # Nothing left to adjust; a mismatch is surfaced, not repaired
        if locked_total > state.total_cents:
            issue = _over_allocated(locked_total - state.total_cents)
        elif locked_total < state.total_cents:
            issue = _under_allocated(state.total_cents - locked_total)
        else:
            issue = None
        return state.model_copy(update={"issue": issue})

    remaining = max(0, state.total_cents - locked_total)

    if len(unlocked) == 1:
        amounts = [remaining]
    else:
        amounts = split_evenly(remaining, len(unlocked))

    shares = list(state.shares)
    for slot, amount in zip(unlocked, amounts):
        shares[slot] = Share(amount_cents=amount, locked=False)

    issue = None
    if locked_total > state.total_cents:
        issue = _over_allocated(locked_total - state.total_cents)

    return state.model_copy(update={"shares": tuple(shares), "issue": issue})


def set_amount(state: AllocationState, slot: int, value: Any) -> AllocationState:
    """
    The user typed an amount into a share.

    The share is locked at that amount. If the locked shares now exceed
    the total, every unlocked share drops to zero and an over-allocation
    issue is set; the typed value is kept as entered.
    """
    _check_slot(state, slot)

    shares = list(state.shares)
    shares[slot] = Share(amount_cents=to_cents(value), locked=True)

    locked_total = sum(s.amount_cents for s in shares if s.locked)
    if locked_total > state.total_cents:
        zeroed = tuple(s if s.locked else Share() for s in shares)
        return state.model_copy(update={
            "shares": zeroed,
            "issue": _over_allocated(locked_total - state.total_cents),
        })

    return redistribute(state.model_copy(update={"shares": tuple(shares), "issue": None}))


def toggle_lock(state: AllocationState, slot: int) -> AllocationState:
    """
    Lock a share at its current amount, or unlock it.

    Either way the other unlocked shares are rebalanced.
    """
    _check_slot(state, slot)

    current = state.shares[slot]
    shares = list(state.shares)
    shares[slot] = Share(amount_cents=current.amount_cents, locked=not current.locked)

    return redistribute(state.model_copy(update={"shares": tuple(shares)}))


def blur(state: AllocationState, slot: int) -> AllocationState:
    """
    The share's input lost focus.

    An empty unlocked share is reset and the split rebalanced. Amounts are
    stored as whole cents, so there is nothing else to round.
    """
    _check_slot(state, slot)

    share = state.shares[slot]
    if share.amount_cents == 0 and not share.locked:
        shares = list(state.shares)
        shares[slot] = Share()
        return redistribute(state.model_copy(update={"shares": tuple(shares)}))

    return state


def to_split_records(state: AllocationState) -> list[SplitRecord]:
    """Split records in slot order, addressed by participant index."""
    return [
        SplitRecord(
            participant_index=participant_index,
            amount=from_cents(share.amount_cents),
            percentage=percentage_of(share.amount_cents, state.total_cents),
        )
        for participant_index, share in zip(state.participant_indices, state.shares)
    ]


def slot_for(state: AllocationState, participant_index: int) -> int:
    """Slot holding a participant's share."""
    try:
        return state.participant_indices.index(participant_index)
    except ValueError:
        raise KeyError(f"Participant {participant_index} is not part of this split") from None


# =============================================================================
# EVENTS
# =============================================================================

class SetAmount(BaseModel):
    model_config = ConfigDict(frozen=True)

    slot: int = Field(ge=0)
    value: Any = None


class ToggleLock(BaseModel):
    model_config = ConfigDict(frozen=True)

    slot: int = Field(ge=0)


class Blur(BaseModel):
    model_config = ConfigDict(frozen=True)

    slot: int = Field(ge=0)


class Reset(BaseModel):
    """Start over: new total and/or consumers. Locks are dropped."""

    model_config = ConfigDict(frozen=True)

    total: Any
    participant_count: int = Field(ge=0)
    consumers: Optional[tuple[int, ...]] = None


AllocationEvent = Union[SetAmount, ToggleLock, Blur, Reset]


def apply(state: AllocationState, event: AllocationEvent) -> AllocationState:
    """Transition function: (state, event) -> new state."""
    if isinstance(event, SetAmount):
        return set_amount(state, event.slot, event.value)
    elif isinstance(event, ToggleLock):
        return toggle_lock(state, event.slot)
    elif isinstance(event, Blur):
        return blur(state, event.slot)
    elif isinstance(event, Reset):
        return initialize(event.total, event.participant_count, event.consumers)
    raise TypeError(f"Unknown allocation event: {type(event).__name__}")
