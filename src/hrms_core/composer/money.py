"""Monetary rounding and display helpers."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def round_to_cents(amount: Decimal) -> Decimal:
    """Round to 2 decimal places, half away from zero."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Decimal:
    """Convert a stored or user-supplied amount to Decimal.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal("0.1")``.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("boolean is not a monetary amount")
    if isinstance(value, float):
        value = repr(value)
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"not a monetary amount: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"not a finite amount: {value!r}")
    return result


def sum_amounts(amounts: list[Decimal]) -> Decimal:
    """Sum amounts and round the result to cents."""
    return round_to_cents(sum(amounts, ZERO))


def format_inr(amount: Decimal) -> str:
    """Format with Indian digit grouping, e.g. ``12,34,567.50``."""
    value = round_to_cents(amount)
    sign = "-" if value < 0 else ""
    whole, _, fraction = f"{abs(value):.2f}".partition(".")

    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])

    return f"{sign}{whole}.{fraction}"
