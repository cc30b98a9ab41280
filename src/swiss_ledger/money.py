"""Currency arithmetic shared by the ledger engine."""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

# One cent. Balances closer to zero than this are settled.
EPSILON = Decimal("0.01")

ZERO = Decimal("0")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """
    Convert a numeric input to Decimal without binary float noise.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal("0.1")``.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def to_cents(amount: Decimal) -> Decimal:
    """
    Round a Decimal amount to whole cents.
    Uses ROUND_HALF_UP for consistency.
    """
    return amount.quantize(EPSILON, rounding=ROUND_HALF_UP)


def whole_cents_of(amount: Decimal) -> Decimal:
    """Truncate a non-negative amount to whole cents, never rounding up."""
    return amount.quantize(EPSILON, rounding=ROUND_DOWN)


def is_settled(amount: Decimal) -> bool:
    """Return True when ``amount`` is within one cent of zero."""
    return abs(amount) < EPSILON


def owes_you(amount: Decimal) -> bool:
    """Positive, unsettled balance: the other party owes the viewer."""
    return amount > 0 and not is_settled(amount)


def you_owe(amount: Decimal) -> bool:
    """Negative, unsettled balance: the viewer owes the other party."""
    return amount < 0 and not is_settled(amount)


def amounts_match(left: Decimal, right: Decimal) -> bool:
    """Two totals agree when they differ by less than one cent."""
    return is_settled(left - right)
