"""Money normalization: convert a quoted cost into monthly/yearly equivalents.

All arithmetic is done on ``Decimal`` and rounded exactly once, at the point
an equivalent is computed, to two places using round-half-up.
"""

from __future__ import annotations

import enum
from decimal import ROUND_HALF_UP, Decimal

_CENT = Decimal("0.01")
_MONTHS_PER_YEAR = Decimal(12)

DEFAULT_CURRENCY_SYMBOL = "£"

# Exclusive upper bound of a NUMERIC(14, 2) amount column.
MAX_COST = Decimal(10) ** 12


class BillingCycle(enum.StrEnum):
    """Period over which a subscription's quoted cost recurs."""

    MONTHLY = "monthly"
    YEARLY = "yearly"


def parse_billing_cycle(value: BillingCycle | str) -> BillingCycle:
    """Map a raw cycle label (any case, surrounding whitespace allowed) to the enum.

    Raises
    ------
    ValueError
        If *value* is not a string naming a known cycle.
    """
    if isinstance(value, BillingCycle):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Billing cycle must be a string, got {type(value).__name__}")
    return BillingCycle(value.strip().lower())


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Coerce *value* to ``Decimal``; floats go through ``str`` to avoid binary drift."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round2(value: Decimal | int | float | str) -> Decimal:
    """Round to exactly two decimal places, ties away from zero."""
    return to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def to_monthly(cost: Decimal | int | float | str, cycle: BillingCycle | str) -> Decimal:
    """Return the monthly equivalent of *cost* quoted per *cycle*.

    >>> to_monthly(100, "yearly")
    Decimal('8.33')
    """
    amount = to_decimal(cost)
    if parse_billing_cycle(cycle) is BillingCycle.YEARLY:
        return round2(amount / _MONTHS_PER_YEAR)
    return round2(amount)


def to_yearly(cost: Decimal | int | float | str, cycle: BillingCycle | str) -> Decimal:
    """Return the yearly equivalent of *cost* quoted per *cycle*."""
    amount = to_decimal(cost)
    if parse_billing_cycle(cycle) is BillingCycle.MONTHLY:
        return round2(amount * _MONTHS_PER_YEAR)
    return round2(amount)


def format_cost(amount: Decimal | int | float | str, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    """Render *amount* with a currency symbol and two decimals, e.g. ``£12.50``."""
    return f"{symbol}{round2(amount)}"
