"""
Allocation Package

Splits an amount among consumers with locked (user-entered) shares and
automatic redistribution of the rest.
"""

from billsplit.allocation.engine import (
    AllocationEvent,
    AllocationIssue,
    AllocationState,
    Blur,
    IssueKind,
    Reset,
    SetAmount,
    Share,
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
from billsplit.allocation.allocator import SplitAllocator, SplitsCallback
from billsplit.allocation.splits import (
    even_split_records,
    fee_amount,
    fee_split_records,
    item_shares,
)

__all__ = [
    # State and events
    "AllocationEvent",
    "AllocationIssue",
    "AllocationState",
    "Blur",
    "IssueKind",
    "Reset",
    "SetAmount",
    "Share",
    "ToggleLock",
    # Engine operations
    "apply",
    "blur",
    "initialize",
    "redistribute",
    "set_amount",
    "slot_for",
    "to_split_records",
    "toggle_lock",
    # Session
    "SplitAllocator",
    "SplitsCallback",
    # Split builders
    "even_split_records",
    "fee_amount",
    "fee_split_records",
    "item_shares",
]
