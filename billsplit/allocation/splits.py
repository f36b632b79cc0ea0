"""
Non-interactive Split Builders

Split records produced without an editing session:
- the single-consumer shortcut (one record for 100%)
- the even split used whenever an item's consumers or amount change
- fee amounts and fee splits
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from billsplit.models.expense import ExpenseItem, Fee, FeeSplitType, FeeType, SplitRecord
from billsplit.money import (
    CENT,
    from_cents,
    percentage_of,
    split_evenly,
    split_proportionally,
    to_cents,
    to_decimal,
)


def _unique(indices: Iterable[int]) -> list[int]:
    seen = []
    for index in indices:
        if index not in seen:
            seen.append(index)
    return seen


def even_split_records(amount: Any, consumers: Iterable[int]) -> list[SplitRecord]:
    """
    Split an amount evenly among consumers, from scratch.

    One consumer takes 100%. Otherwise every consumer gets the floored
    share and the first consumers in list order take the leftover cents.
    Nothing to split (no consumers, amount not positive) gives [].
    """
    cents = to_cents(amount)
    consumers = _unique(consumers)
    if cents <= 0 or not consumers:
        return []

    if len(consumers) == 1:
        return [SplitRecord(
            participant_index=consumers[0],
            amount=from_cents(cents),
            percentage=100.0,
        )]

    percentage = round(100 / len(consumers), 4)
    return [
        SplitRecord(participant_index=index, amount=from_cents(share), percentage=percentage)
        for index, share in zip(consumers, split_evenly(cents, len(consumers)))
    ]


def fee_amount(fee: Fee, items_total: Any) -> Decimal:
    """
    Amount of a fee.

    Percentage fees are recomputed from the items total; fixed fees keep
    their entered amount.
    """
    if fee.type != FeeType.PERCENTAGE:
        return fee.amount
    amount = to_decimal(items_total) * Decimal(str(fee.percentage)) / 100
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def item_shares(items: Iterable[ExpenseItem], participant_count: int) -> list[int]:
    """
    Cents each participant consumed across the items.

    Items without split records count as an even split over their
    consumers. Out-of-range indices are ignored.
    """
    shares = [0] * max(0, participant_count)
    for item in items:
        records = item.splits or even_split_records(item.amount, item.selected_consumers)
        for record in records:
            if 0 <= record.participant_index < participant_count:
                shares[record.participant_index] += to_cents(record.amount)
    return shares


def fee_split_records(
    fee: Fee,
    items: Iterable[ExpenseItem],
    participant_count: int,
) -> list[SplitRecord]:
    """
    Split a fee among the participants.

    equal: evenly over the whole participant list.
    proportional: by each participant's share of the items; evenly when
    nobody has consumed anything yet.

    Participants whose share comes to zero get no record.
    """
    cents = to_cents(fee.amount)
    if cents <= 0 or participant_count <= 0:
        return []

    if fee.split_type == FeeSplitType.EQUAL:
        shares = split_evenly(cents, participant_count)
    else:
        shares = split_proportionally(cents, item_shares(items, participant_count))

    return [
        SplitRecord(
            participant_index=index,
            amount=from_cents(share),
            percentage=percentage_of(share, cents),
        )
        for index, share in enumerate(shares)
        if share > 0
    ]
