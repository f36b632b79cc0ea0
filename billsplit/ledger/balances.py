"""
Balance Ledger

Reduces a portfolio of expenses to what the current user is owed, what
they owe, and a per-person breakdown.

GUARANTEES:
- Pure reduction: inputs are never mutated, nothing is cached between
  calls, the same input list always gives the same result.
- Best effort: a malformed item or fee (participant index out of range,
  non-numeric or oversized amount) is skipped and logged. It never stops the
  rest of the portfolio from being computed.
- Exact: everything is accumulated in integer cents.

HOW AN ITEM BECOMES DEBTS:
Each participant's share of an item is owed to the item's payers. With
several payers a share is divided evenly among them (payer order decides
who gets the leftover cent). Nobody owes themselves.
An entry with no payer recorded anywhere is taken as paid by the first
participant.

NOTE: Because every share is divided among all payers, co-payers owe
each other their portions of one another's shares. Those mutual debts
net out in the net balance and in the per-person breakdown (which can show
0.00 for a co-payer), but both sides still count toward total_owed and
total_owes.

Even-split items and equal fees take their shares from the whole
participant list by default, not from the item's consumers. This matches
how balances have always been shown, even though the item's own split
records may be consumer-scoped. LedgerSettings.even_split_basis switches
to consumer-scoped shares.
"""

from collections.abc import Mapping
from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError

from billsplit.allocation.splits import fee_split_records
from billsplit.audit import create_correlation_id, get_logger
from billsplit.config import LedgerSettings, get_settings
from billsplit.models.balance import (
    BalanceDirection,
    BalanceSummary,
    ExpensePosition,
    FriendBalanceSummary,
    FriendExpenseBalance,
)
from billsplit.models.expense import (
    Expense,
    ExpenseItem,
    Fee,
    FeeSplitType,
    ItemSplitType,
)
from billsplit.money import InvalidAmountError, from_cents, split_evenly, to_cents

ExpenseLike = Union[Expense, Mapping]

# (debtor index, creditor index, cents)
Obligation = tuple[int, int, int]


# =============================================================================
# DOCUMENT LOADING
# =============================================================================

def _load_entries(raw_entries: Any, model: type, logger, expense_id: Any) -> tuple[list, int]:
    """Parse items or fees one by one, dropping the ones that do not parse."""
    if not isinstance(raw_entries, list):
        return [], 0

    entries = []
    skipped = 0
    for position, raw in enumerate(raw_entries):
        try:
            entries.append(model.model_validate(raw))
        except ValidationError as e:
            skipped += 1
            logger.warning(
                "ledger_entry_skipped",
                expense_id=expense_id,
                entry_type=model.__name__,
                position=position,
                error_count=e.error_count(),
            )
    return entries, skipped


def load_expense(raw: ExpenseLike, logger=None) -> tuple[Optional[Expense], int]:
    """
    Turn a persisted expense document into an Expense.

    Items and fees are parsed individually so that one bad entry only
    costs that entry.

    Returns: (expense or None, number of skipped records)
    """
    logger = logger or get_logger("ledger")

    if isinstance(raw, Expense):
        return raw, 0
    if not isinstance(raw, Mapping):
        logger.warning("ledger_expense_skipped", reason="not a document")
        return None, 1

    shell = {key: value for key, value in raw.items() if key not in ("items", "fees")}
    try:
        expense = Expense.model_validate(shell)
    except ValidationError as e:
        logger.warning(
            "ledger_expense_skipped",
            expense_id=raw.get("id"),
            error_count=e.error_count(),
        )
        return None, 1

    items, skipped_items = _load_entries(raw.get("items"), ExpenseItem, logger, expense.id)
    fees, skipped_fees = _load_entries(raw.get("fees"), Fee, logger, expense.id)

    return expense.model_copy(update={"items": items, "fees": fees}), skipped_items + skipped_fees


# =============================================================================
# OBLIGATIONS
# =============================================================================

def _unique(indices: Iterable[int]) -> list[int]:
    seen = []
    for index in indices:
        if index not in seen:
            seen.append(index)
    return seen


def _even_shares(
    expense: Expense,
    entry: Union[ExpenseItem, Fee],
    basis: str,
) -> Optional[dict[int, int]]:
    participant_count = len(expense.participants)
    group = list(range(participant_count))
    if basis == "consumers" and isinstance(entry, ExpenseItem) and entry.selected_consumers:
        group = _unique(entry.selected_consumers)
        if any(index >= participant_count for index in group):
            return None

    shares = split_evenly(to_cents(entry.amount), len(group))
    return dict(zip(group, shares))


def _recorded_shares(expense: Expense, entry: Union[ExpenseItem, Fee]) -> Optional[dict[int, int]]:
    participant_count = len(expense.participants)
    splits = entry.splits
    if not splits and isinstance(entry, Fee):
        # Proportional fee saved without splits: derive them from the items
        splits = fee_split_records(entry, expense.items, participant_count)

    shares: dict[int, int] = {}
    for split in splits:
        if split.participant_index >= participant_count:
            return None
        shares[split.participant_index] = (
            shares.get(split.participant_index, 0) + to_cents(split.amount)
        )
    return shares


def _is_even(entry: Union[ExpenseItem, Fee]) -> bool:
    if isinstance(entry, Fee):
        return entry.split_type == FeeSplitType.EQUAL
    return entry.resolved_split_type() == ItemSplitType.EVEN


def entry_obligations(
    expense: Expense,
    entry: Union[ExpenseItem, Fee],
    basis: str = "participants",
) -> Optional[list[Obligation]]:
    """
    Debts created by one item or fee.

    Returns None when the entry is malformed and must be skipped.
    """
    participant_count = len(expense.participants)
    if participant_count == 0:
        return None

    payers = _unique(expense.payers_for(entry))
    if not payers or any(index >= participant_count for index in payers):
        return None

    shares = _even_shares(expense, entry, basis) if _is_even(entry) else _recorded_shares(expense, entry)
    if shares is None:
        return None

    obligations = []
    for debtor, share in shares.items():
        if share <= 0:
            continue
        for creditor, portion in zip(payers, split_evenly(share, len(payers))):
            if creditor != debtor and portion > 0:
                obligations.append((debtor, creditor, portion))
    return obligations


def expense_obligations(
    expense: Expense,
    basis: str = "participants",
    logger=None,
) -> tuple[list[Obligation], int]:
    """
    All debts created by an expense's items and fees.

    Returns: (obligations, number of skipped entries)
    """
    logger = logger or get_logger("ledger")
    obligations: list[Obligation] = []
    skipped = 0

    entries: list[Union[ExpenseItem, Fee]] = [*expense.items, *expense.fees]
    for entry in entries:
        try:
            found = entry_obligations(expense, entry, basis)
        except InvalidAmountError:
            found = None
        if found is None:
            skipped += 1
            logger.warning(
                "ledger_entry_skipped",
                expense_id=expense.id,
                entry_type=type(entry).__name__,
                entry_id=entry.id,
            )
            continue
        obligations.extend(found)

    return obligations, skipped


# =============================================================================
# BALANCES
# =============================================================================

def compute_balances(
    expenses: Iterable[ExpenseLike],
    current_user_id: str,
    settings: Optional[LedgerSettings] = None,
) -> BalanceSummary:
    """
    Balances of the current user across expenses.

    Args:
        expenses: Expense models or persisted expense documents
        current_user_id: Stable user reference of the current user
        settings: Ledger settings (defaults to the configured ones)

    Expenses the current user does not take part in are ignored.
    """
    settings = settings or get_settings().ledger
    logger = get_logger("ledger", correlation_id=str(create_correlation_id()))

    total_owed = 0
    total_owes = 0
    breakdown: dict[str, int] = {}
    skipped = 0

    for raw in expenses:
        expense, bad = load_expense(raw, logger)
        skipped += bad
        if expense is None:
            continue

        me = expense.participant_index_of(current_user_id)
        if me is None:
            continue

        obligations, bad = expense_obligations(expense, settings.even_split_basis, logger)
        skipped += bad

        for debtor, creditor, cents in obligations:
            if creditor == me:
                # They owe me
                total_owed += cents
                name = expense.participants[debtor].name
                breakdown[name] = breakdown.get(name, 0) + cents
            elif debtor == me:
                total_owes += cents
                name = expense.participants[creditor].name
                breakdown[name] = breakdown.get(name, 0) - cents

    logger.debug(
        "balances_computed",
        total_owed_cents=total_owed,
        total_owes_cents=total_owes,
        counterparties=len(breakdown),
        skipped_records=skipped,
    )

    return BalanceSummary(
        total_owed=from_cents(total_owed),
        total_owes=from_cents(total_owes),
        net_balance=from_cents(total_owed - total_owes),
        debt_breakdown={name: from_cents(cents) for name, cents in breakdown.items()},
        skipped_records=skipped,
    )


def compute_friend_balances(
    expenses: Iterable[ExpenseLike],
    current_user_id: str,
    friend_user_id: str,
    settings: Optional[LedgerSettings] = None,
) -> FriendBalanceSummary:
    """
    Balances between the current user and one friend.

    Each shared expense contributes its net amount (positive: the friend
    owes the current user) to the per-expense breakdown and to either
    total_owed or total_owes.
    """
    settings = settings or get_settings().ledger
    logger = get_logger("ledger", correlation_id=str(create_correlation_id()))

    total_owed = 0
    total_owes = 0
    breakdown: dict[str, FriendExpenseBalance] = {}

    for position, raw in enumerate(expenses):
        expense, _ = load_expense(raw, logger)
        if expense is None:
            continue

        me = expense.participant_index_of(current_user_id)
        friend = expense.participant_index_of(friend_user_id)
        if me is None or friend is None:
            continue

        obligations, _ = expense_obligations(expense, settings.even_split_basis, logger)
        net = 0
        for debtor, creditor, cents in obligations:
            if debtor == friend and creditor == me:
                net += cents
            elif debtor == me and creditor == friend:
                net -= cents

        if net > 0:
            total_owed += net
            direction = BalanceDirection.OWES_YOU
        elif net < 0:
            total_owes += -net
            direction = BalanceDirection.YOU_OWE
        else:
            direction = BalanceDirection.SETTLED

        key = expense.id or f"expense-{position}"
        if key in breakdown:
            # Repeated id, add the position
            key = f"{key}-{position}"
        breakdown[key] = FriendExpenseBalance(
            expense_id=expense.id,
            title=expense.title,
            amount=from_cents(net),
            direction=direction,
        )

    return FriendBalanceSummary(
        total_owed=from_cents(total_owed),
        total_owes=from_cents(total_owes),
        net_balance=from_cents(total_owed - total_owes),
        debt_breakdown=breakdown,
    )


def expense_position(
    expense: ExpenseLike,
    current_user_id: str,
    settings: Optional[LedgerSettings] = None,
) -> ExpensePosition:
    """
    What the current user owes and paid in a single expense.

    you_owe is negative when the current user is owed money overall.
    """
    settings = settings or get_settings().ledger
    zero = ExpensePosition(you_owe=from_cents(0), you_paid=from_cents(0))

    loaded, _ = load_expense(expense)
    if loaded is None:
        return zero
    me = loaded.participant_index_of(current_user_id)
    if me is None:
        return zero

    paid = 0
    entries: list[Union[ExpenseItem, Fee]] = [*loaded.items, *loaded.fees]
    for entry in entries:
        payers = _unique(loaded.payers_for(entry))
        if me in payers:
            portions = split_evenly(to_cents(entry.amount), len(payers))
            paid += portions[payers.index(me)]

    obligations, _ = expense_obligations(loaded, settings.even_split_basis)
    owes = sum(cents for debtor, _, cents in obligations if debtor == me)
    owed = sum(cents for _, creditor, cents in obligations if creditor == me)

    return ExpensePosition(you_owe=from_cents(owes - owed), you_paid=from_cents(paid))
