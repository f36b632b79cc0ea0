"""
Money Helpers

DESIGN DECISION: All split arithmetic is done in integer cents.
Values are converted to cents once, at the boundary, and converted back
to Decimal only when they leave the engine. This removes floating point
drift across long sequences of edits.

Rounding is always ROUND_HALF_UP to the cent.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

CENT = Decimal("0.01")

AmountLike = Union[int, float, str, Decimal, None]


class InvalidAmountError(ValueError):
    """Amount is not a finite, non-negative number."""
    pass


def to_decimal(value: AmountLike) -> Decimal:
    """
    Parse a currency value into a Decimal rounded to the cent.

    None and empty strings mean zero (an empty input field).
    """
    if value is None:
        return Decimal("0.00")
    if isinstance(value, bool):
        raise InvalidAmountError(f"Not an amount: {value!r}")
    if isinstance(value, str):
        value = value.strip().lstrip("$").replace(",", "")
        if not value:
            return Decimal("0.00")
    try:
        # str() keeps floats like 0.1 from dragging binary noise along
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmountError(f"Not an amount: {value!r}") from e

    if not amount.is_finite():
        raise InvalidAmountError(f"Amount must be finite, got {value!r}")
    if amount < 0:
        raise InvalidAmountError(f"Amount cannot be negative, got {value!r}")

    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        # More digits than the decimal context holds
        raise InvalidAmountError(f"Amount is too large, got {value!r}") from e


def to_cents(value: AmountLike) -> int:
    """Convert a currency value to integer cents."""
    return int(to_decimal(value) * 100)


def signed_cents(amount: Decimal) -> int:
    """Cents of a signed balance (balances, unlike amounts, may be negative)."""
    return int(Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP) * 100)


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a 2-place Decimal."""
    whole, part = divmod(abs(cents), 100)
    sign = "-" if cents < 0 else ""
    return Decimal(f"{sign}{whole}.{part:02d}")


def format_money(cents: int, symbol: str = "$") -> str:
    """Render cents for display, e.g. 1000 -> '$10.00'."""
    sign = "-" if cents < 0 else ""
    return f"{sign}{symbol}{from_cents(abs(cents)):.2f}"


def split_evenly(total_cents: int, count: int) -> list[int]:
    """
    Split a total into `count` shares that sum exactly to the total.

    Every share gets the floored base amount; the leftover cents go one
    each to the first slots in list order.

    Example: 1000 split 3 ways -> [334, 333, 333]
    """
    if count <= 0:
        return []
    if total_cents <= 0:
        return [0] * count

    base, leftover = divmod(total_cents, count)
    return [base + 1 if i < leftover else base for i in range(count)]


def split_proportionally(total_cents: int, weights: list[int]) -> list[int]:
    """
    Split a total according to integer weights (largest remainder method).

    Shares sum exactly to the total. Ties in the remainder go to the
    earlier slot. With no usable weight the total is split evenly.
    """
    if not weights:
        return []
    weight_sum = sum(w for w in weights if w > 0)
    if weight_sum <= 0 or total_cents <= 0:
        return split_evenly(total_cents, len(weights))

    shares = []
    remainders = []
    for i, weight in enumerate(weights):
        weight = max(0, weight)
        share, remainder = divmod(total_cents * weight, weight_sum)
        shares.append(share)
        remainders.append((-remainder, i))

    leftover = total_cents - sum(shares)
    for _, i in sorted(remainders)[:leftover]:
        shares[i] += 1

    return shares


def percentage_of(cents: int, total_cents: int) -> Optional[float]:
    """Share of a total as a percentage, None when the total is zero."""
    if total_cents <= 0:
        return None
    return round(cents * 100 / total_cents, 4)
