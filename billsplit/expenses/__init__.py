"""Expense document editing helpers."""

from billsplit.expenses.editing import (
    ParticipantRemovalError,
    add_fee,
    add_item,
    refresh_fee_amounts,
    remove_fee,
    remove_item,
    remove_participant,
    set_item_consumers,
    set_item_payers,
    set_item_splits,
    update_fee,
    update_item_amount,
)

__all__ = [
    "ParticipantRemovalError",
    "add_fee",
    "add_item",
    "refresh_fee_amounts",
    "remove_fee",
    "remove_item",
    "remove_participant",
    "set_item_consumers",
    "set_item_payers",
    "set_item_splits",
    "update_fee",
    "update_item_amount",
]
