"""
Fixed-point money helpers.

All amounts are Decimals that are exact multiples of the ledger's minor unit.
Commission rounds half-up to the minor unit; per-winner payouts round down and
the leftover stays with the house, so house take + payouts == pool total.
"""

from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Union

from .errors import InvalidAmountError

AmountLike = Union[Decimal, int, str]

ZERO = Decimal("0")


def to_amount(value: AmountLike, unit: Decimal) -> Decimal:
    """Parse a positive amount that is an exact multiple of ``unit``."""
    if isinstance(value, float):
        raise InvalidAmountError("Amounts must not be floats")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(f"Not a valid amount: {value!r}")
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmountError(f"Amount must be positive, got {value}")
    try:
        exact = amount % unit == 0
        amount = amount.quantize(unit)
    except InvalidOperation:
        raise InvalidAmountError(f"Amount {value} is out of range")
    if not exact:
        raise InvalidAmountError(f"Amount {value} is finer than the minor unit {unit}")
    return amount


def house_cut(total: Decimal, rate: Decimal, unit: Decimal) -> Decimal:
    return (total * rate).quantize(unit, rounding=ROUND_HALF_UP)


def split_evenly(amount: Decimal, count: int, unit: Decimal) -> tuple[Decimal, Decimal]:
    """Return (share, remainder) with share rounded down to ``unit``."""
    if count <= 0:
        return ZERO.quantize(unit), amount
    share = (amount / count).quantize(unit, rounding=ROUND_DOWN)
    return share, amount - share * count


def apply_discount(price: Decimal, percent: int, unit: Decimal) -> Decimal:
    return (price * (100 - percent) / 100).quantize(unit, rounding=ROUND_HALF_UP)
