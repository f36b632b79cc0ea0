"""
Expense Editing Helpers

Participants are referenced by list position everywhere in an expense:
item consumers, item and fee payers, and every split record. Removing a
participant therefore rewrites every one of those references. All of that
rewriting lives here and nowhere else.

Every helper returns a new Expense. Inputs are never mutated.
"""

from typing import Any, Iterable, Optional

from billsplit.allocation.splits import even_split_records, fee_amount
from billsplit.config import get_settings
from billsplit.models.expense import Expense, ExpenseItem, Fee, FeeSplitType, FeeType, SplitRecord
from billsplit.money import to_decimal


class ParticipantRemovalError(Exception):
    """The last participant of an expense cannot be removed."""
    pass


# =============================================================================
# RE-INDEXING
# =============================================================================

def _shift_index(index: int, removed: int) -> int:
    return index - 1 if index > removed else index


def _reindex(indices: Iterable[int], removed: int) -> list[int]:
    return [_shift_index(i, removed) for i in indices if i != removed]


def _reindex_splits(splits: Iterable[SplitRecord], removed: int) -> list[SplitRecord]:
    return [
        split.model_copy(update={
            "participant_index": _shift_index(split.participant_index, removed),
        })
        for split in splits
        if split.participant_index != removed
    ]


def _reindex_paid_by(paid_by: Optional[int], removed: int) -> Optional[int]:
    if paid_by is None or paid_by == removed:
        return None
    return _shift_index(paid_by, removed)


def remove_participant(expense: Expense, index: int) -> Expense:
    """
    Remove a participant and rewrite every reference to the others.

    References to the removed participant are dropped; references to
    later participants move down by one. Split amounts are not
    redistributed; the caller decides whether to re-split.

    Raises:
        IndexError: No participant at `index`
        ParticipantRemovalError: It is the only participant
    """
    if not 0 <= index < len(expense.participants):
        raise IndexError(f"No participant at index {index}")
    if len(expense.participants) <= 1:
        raise ParticipantRemovalError("An expense needs at least one participant")

    items = [
        item.model_copy(update={
            "selected_consumers": _reindex(item.selected_consumers, index),
            "selected_payers": _reindex(item.selected_payers, index),
            "paid_by": _reindex_paid_by(item.paid_by, index),
            "splits": _reindex_splits(item.splits, index),
        })
        for item in expense.items
    ]
    fees = [
        fee.model_copy(update={
            "selected_payers": _reindex(fee.selected_payers, index),
            "paid_by": _reindex_paid_by(fee.paid_by, index),
            "splits": _reindex_splits(fee.splits, index),
        })
        for fee in expense.fees
    ]

    return expense.model_copy(update={
        "participants": [p for i, p in enumerate(expense.participants) if i != index],
        "items": items,
        "fees": fees,
        "selected_payers": _reindex(expense.selected_payers, index),
    })


# =============================================================================
# ITEMS AND FEES
# =============================================================================

def refresh_fee_amounts(expense: Expense, items: Optional[list[ExpenseItem]] = None) -> list[Fee]:
    """Fees with percentage amounts recomputed from the items total."""
    items = expense.items if items is None else items
    items_total = sum((item.amount for item in items), to_decimal(0))
    return [
        fee.model_copy(update={"amount": fee_amount(fee, items_total)})
        for fee in expense.fees
    ]


def _replace_item(expense: Expense, item_index: int, item: ExpenseItem) -> list[ExpenseItem]:
    if not 0 <= item_index < len(expense.items):
        raise IndexError(f"No item at index {item_index}")
    items = list(expense.items)
    items[item_index] = item
    return items


def add_item(expense: Expense, name: str = "", amount: Any = 0) -> Expense:
    """
    Append an item.

    The new item inherits the previous item's payers (the first
    participant when there is none) and starts with no consumers.
    """
    payers = expense.items[-1].payer_indices() if expense.items else []
    item = ExpenseItem(
        name=name,
        amount=amount,
        selected_payers=list(payers) or [0],
    )
    items = [*expense.items, item]
    return expense.model_copy(update={
        "items": items,
        "fees": refresh_fee_amounts(expense, items),
    })


def update_item_amount(expense: Expense, item_index: int, amount: Any) -> Expense:
    """New amount for an item: splits are redone evenly, fees refreshed."""
    if not 0 <= item_index < len(expense.items):
        raise IndexError(f"No item at index {item_index}")
    item = expense.items[item_index]

    updated = item.model_copy(update={
        "amount": to_decimal(amount),
        "splits": even_split_records(amount, item.selected_consumers),
    })
    items = _replace_item(expense, item_index, updated)
    return expense.model_copy(update={
        "items": items,
        "fees": refresh_fee_amounts(expense, items),
    })


def set_item_consumers(expense: Expense, item_index: int, consumers: Iterable[int]) -> Expense:
    """
    New consumer set for an item.

    Splits are rebuilt evenly from scratch: a change of consumers always
    discards any locked amounts.
    """
    if not 0 <= item_index < len(expense.items):
        raise IndexError(f"No item at index {item_index}")
    item = expense.items[item_index]
    consumers = list(consumers)

    updated = item.model_copy(update={
        "selected_consumers": consumers,
        "splits": even_split_records(item.amount, consumers),
    })
    return expense.model_copy(update={"items": _replace_item(expense, item_index, updated)})


def set_item_payers(expense: Expense, item_index: int, payers: Iterable[int]) -> Expense:
    """New payer set for an item. Replaces any legacy paid_by."""
    if not 0 <= item_index < len(expense.items):
        raise IndexError(f"No item at index {item_index}")
    updated = expense.items[item_index].model_copy(update={
        "selected_payers": list(payers),
        "paid_by": None,
    })
    return expense.model_copy(update={"items": _replace_item(expense, item_index, updated)})


def set_item_splits(expense: Expense, item_index: int, splits: Iterable[SplitRecord]) -> Expense:
    """Store split records produced by an allocation session."""
    if not 0 <= item_index < len(expense.items):
        raise IndexError(f"No item at index {item_index}")
    updated = expense.items[item_index].model_copy(update={"splits": list(splits)})
    return expense.model_copy(update={"items": _replace_item(expense, item_index, updated)})


def remove_item(expense: Expense, item_index: int) -> Expense:
    """Drop an item and refresh percentage fees."""
    if not 0 <= item_index < len(expense.items):
        raise IndexError(f"No item at index {item_index}")
    items = [item for i, item in enumerate(expense.items) if i != item_index]
    return expense.model_copy(update={
        "items": items,
        "fees": refresh_fee_amounts(expense, items),
    })


def add_fee(expense: Expense, name: str = "") -> Expense:
    """Append a percentage fee at the configured default rate (a tip)."""
    fee = Fee(
        name=name,
        type=FeeType.PERCENTAGE,
        percentage=get_settings().allocation.default_fee_percentage,
        split_type=FeeSplitType.PROPORTIONAL,
    )
    fee = fee.model_copy(update={"amount": fee_amount(fee, expense.items_total())})
    return expense.model_copy(update={"fees": [*expense.fees, fee]})


def update_fee(expense: Expense, fee_index: int, **changes: Any) -> Expense:
    """
    Change fields of a fee.

    The changes are validated like a persisted fee. A percentage fee's
    amount always follows its percentage and the items total; a fee
    switched to fixed keeps the amount it had unless a new one is given.
    """
    if not 0 <= fee_index < len(expense.fees):
        raise IndexError(f"No fee at index {fee_index}")

    current = expense.fees[fee_index]
    fee = Fee.model_validate({**current.model_dump(), **changes})
    if fee.type == FeeType.PERCENTAGE:
        fee = fee.model_copy(update={"amount": fee_amount(fee, expense.items_total())})

    fees = list(expense.fees)
    fees[fee_index] = fee
    return expense.model_copy(update={"fees": fees})


def remove_fee(expense: Expense, fee_index: int) -> Expense:
    if not 0 <= fee_index < len(expense.fees):
        raise IndexError(f"No fee at index {fee_index}")
    return expense.model_copy(update={
        "fees": [fee for i, fee in enumerate(expense.fees) if i != fee_index],
    })
