"""
Money helpers.

All amounts are Decimals with exactly two fractional digits.
Rounding is ROUND_HALF_UP and is applied after every add/subtract.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    """
    Convert a value to a two-place Decimal using half-up rounding.

    NaN and infinities are not money and raise ValueError.
    """
    if isinstance(value, float):
        # Floats are converted through str to avoid binary artefacts
        value = str(value)
    try:
        amount = Decimal(value)
        if not amount.is_finite():
            raise ValueError(f"Not a finite amount: {value!r}")
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValueError(f"Not a monetary amount: {value!r}") from e


def to_cents(amount: Decimal) -> int:
    return int(to_money(amount) / CENT)
