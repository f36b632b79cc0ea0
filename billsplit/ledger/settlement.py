"""
Settlement Proposals

Given one expense, works out each participant's net position and
proposes the payments that settle it.

Two strategies:
- greedy: largest debtor pays largest creditor until everyone is square
  (few transactions)
- hub: every debtor pays the largest creditor, who pays everyone else
  (one person to pay)
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from billsplit.allocation.splits import even_split_records, fee_split_records
from billsplit.audit import get_logger
from billsplit.config import get_settings
from billsplit.ledger.balances import ExpenseLike, load_expense
from billsplit.models.balance import (
    ParticipantBalance,
    Settlement,
    SettlementProposal,
    SettlementSummary,
)
from billsplit.money import CENT, from_cents, signed_cents, split_evenly, to_cents

logger = get_logger("settlement")


def _threshold(threshold_cents: Optional[int]) -> int:
    if threshold_cents is None:
        return get_settings().ledger.settlement_threshold_cents
    return threshold_cents


def participant_balances(expense: ExpenseLike) -> list[ParticipantBalance]:
    """
    Net position of every participant in one expense.

    Payers are credited with what they paid (shared evenly between
    co-payers); consumers are charged their split records. Items without
    split records are shared evenly by their consumers (or everyone when
    nobody is marked as a consumer); fees without split records are
    split by their split type. Entries with no payer are taken as paid by
    the first participant; entries whose payers no longer exist are left
    out entirely so the balances still sum to zero.
    """
    loaded, _ = load_expense(expense)
    if loaded is None or not loaded.participants:
        return []

    participant_count = len(loaded.participants)
    cents = [0] * participant_count

    def charge(entry, records) -> None:
        payers = [p for p in loaded.payers_for(entry) if p < participant_count]
        if not payers:
            logger.warning("settlement_entry_without_payer", expense_id=loaded.id, entry_id=entry.id)
            return
        records = [r for r in records if r.participant_index < participant_count]
        charged = sum(to_cents(r.amount) for r in records)
        for payer, portion in zip(payers, split_evenly(charged, len(payers))):
            cents[payer] -= portion
        for record in records:
            cents[record.participant_index] += to_cents(record.amount)

    for item in loaded.items:
        consumers = item.selected_consumers or range(participant_count)
        charge(item, item.splits or even_split_records(item.amount, consumers))

    for fee in loaded.fees:
        charge(fee, fee.splits or fee_split_records(fee, loaded.items, participant_count))

    return [
        ParticipantBalance(name=participant.name, index=index, balance=from_cents(cents[index]))
        for index, participant in enumerate(loaded.participants)
    ]


def _greedy(balances: list[ParticipantBalance], threshold: int) -> list[Settlement]:
    debtors = [[b, signed_cents(b.balance)] for b in balances if signed_cents(b.balance) > threshold]
    creditors = [[b, signed_cents(b.balance)] for b in balances if signed_cents(b.balance) < -threshold]
    debtors.sort(key=lambda pair: pair[1], reverse=True)
    creditors.sort(key=lambda pair: pair[1])

    settled_below = max(threshold, 1)
    settlements = []
    d = c = 0
    while d < len(debtors) and c < len(creditors):
        debtor, owes = debtors[d]
        creditor, owed = creditors[c]

        amount = min(owes, -owed)
        if amount > threshold:
            settlements.append(Settlement(
                from_name=debtor.name,
                from_index=debtor.index,
                to_name=creditor.name,
                to_index=creditor.index,
                amount=from_cents(amount),
            ))

        debtors[d][1] = owes - amount
        creditors[c][1] = owed + amount

        if abs(debtors[d][1]) < settled_below:
            d += 1
        if abs(creditors[c][1]) < settled_below:
            c += 1

    return settlements


def propose_settlement(
    expense: ExpenseLike,
    threshold_cents: Optional[int] = None,
) -> SettlementProposal:
    """Greedy settlement of one expense."""
    balances = participant_balances(expense)
    return SettlementProposal(
        settlements=_greedy(balances, _threshold(threshold_cents)),
        balances=balances,
    )


def hub_settlement(
    balances: list[ParticipantBalance],
    threshold_cents: Optional[int] = None,
) -> list[Settlement]:
    """
    Route every payment through the participant owed the most.

    Debtors pay the hub in full; the hub then pays the other creditors.
    """
    threshold = _threshold(threshold_cents)
    debtors = [b for b in balances if signed_cents(b.balance) > threshold]
    creditors = [b for b in balances if signed_cents(b.balance) < -threshold]
    if not debtors or not creditors:
        return []

    hub = min(creditors, key=lambda b: signed_cents(b.balance))

    settlements = [
        Settlement(
            from_name=debtor.name,
            from_index=debtor.index,
            to_name=hub.name,
            to_index=hub.index,
            amount=debtor.balance,
        )
        for debtor in debtors
    ]
    settlements.extend(
        Settlement(
            from_name=hub.name,
            from_index=hub.index,
            to_name=creditor.name,
            to_index=creditor.index,
            amount=-creditor.balance,
        )
        for creditor in creditors
        if creditor.index != hub.index
    )
    return settlements


def summarize_settlements(settlements: list[Settlement]) -> SettlementSummary:
    """Transaction count, totals and the people involved."""
    total = sum((s.amount for s in settlements), Decimal("0.00"))
    payers = {s.from_name for s in settlements}
    receivers = {s.to_name for s in settlements}
    average = (
        (total / len(settlements)).quantize(CENT, rounding=ROUND_HALF_UP)
        if settlements
        else Decimal("0.00")
    )

    return SettlementSummary(
        total_transactions=len(settlements),
        total_amount=total,
        unique_payers=len(payers),
        unique_receivers=len(receivers),
        unique_people=len(payers | receivers),
        average_transaction=average,
    )
