"""
Money helpers. Amounts are always Decimal; every rounding names its mode.
"""
from decimal import ROUND_HALF_UP, Decimal

CENTS = Decimal("0.01")
WHOLE = Decimal("1")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """Convert an int/float/str/Decimal to Decimal without float artefacts."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_cents(value) -> Decimal:
    """2 decimals, half-up. Used for every stored currency amount."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def round_whole(value, rounding: str) -> Decimal:
    """0 decimals with an explicit rounding mode (declaration VAT boxes)."""
    return to_decimal(value).quantize(WHOLE, rounding=rounding)
