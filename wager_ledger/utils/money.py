"""
Money helpers. Amounts are ``Decimal`` rounded half-up to cents.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")


def q2(value) -> Decimal:
    """Quantize to cents, half-up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value) -> Decimal:
    """
    Convert an int/float/str/Decimal amount to Decimal without float noise.

    Raises:
        ValueError: for booleans, non-numeric or non-finite values
    """
    if isinstance(value, bool):
        raise ValueError("Amount must be a number")
    try:
        amount = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Amount must be a number, got {value!r}")
    if not amount.is_finite():
        raise ValueError("Amount must be finite")
    return amount
