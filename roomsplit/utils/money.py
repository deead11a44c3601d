"""
Currency arithmetic helpers.

All amounts in the ledger are ``Decimal`` values in major units (rupees).
The payment gateway works in minor units (paise), so conversion happens here
and nowhere else.

Rounding rule for equal splits:
    Each participant's share is ``total / n`` rounded DOWN to the minor unit.
    Whatever is left over (at most ``n - 1`` minor units) is added to the
    payer's share, so the shares always add up to the total exactly.

Example Usage:
    from roomsplit.utils.money import split_equally

    split_equally(Decimal("100"), 3)
    # (Decimal('33.33'), Decimal('0.01'))  -> payer gets 33.34
"""

from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import Any, Tuple

MINOR_UNIT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce ints, floats and strings to Decimal without float artefacts"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_decimal(value: Decimal, precision: Decimal = MINOR_UNIT) -> Decimal:
    """
    Round a Decimal value to the given precision (half up).

    Example:
        >>> round_decimal(Decimal("43.335"))
        Decimal('43.34')
    """
    return to_decimal(value).quantize(precision, rounding=ROUND_HALF_UP)


def split_equally(total: Decimal, parts: int) -> Tuple[Decimal, Decimal]:
    """
    Divide ``total`` into ``parts`` equal shares.

    Returns:
        (share, remainder) where ``share * parts + remainder == total`` and
        ``0 <= remainder < parts * MINOR_UNIT``.

    Raises:
        ValueError: If parts is not positive
    """
    if parts <= 0:
        raise ValueError(f"Cannot split into {parts} parts")
    total = round_decimal(total)
    share = (total / parts).quantize(MINOR_UNIT, rounding=ROUND_DOWN)
    remainder = total - share * parts
    return share, remainder


def to_minor_units(amount: Decimal) -> int:
    """Rupees to paise, as the gateway expects"""
    return int((round_decimal(amount) * 100).to_integral_value())

