from __future__ import annotations

from decimal import Context, Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable

CURRENCY_SYMBOL = "₹"
_CENTS = Decimal("0.01")
_ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Coerce a numeric-ish value (int, float, str, Decimal, None) to Decimal; junk, NaN and infinities become 0."""
    if value is None or isinstance(value, bool):
        return _ZERO
    if isinstance(value, Decimal):
        d = value
    else:
        try:
            # str() first so floats like 10.5 don't carry binary noise
            d = Decimal(str(value).strip() or "0")
        except (InvalidOperation, ValueError):
            return _ZERO
    return d if d.is_finite() else _ZERO


def quantize(value: Decimal) -> Decimal:
    if not value.is_finite():
        return _ZERO.quantize(_CENTS)
    try:
        return value.quantize(_CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # more digits than the default context holds
        wide = Context(prec=value.adjusted() + 3, rounding=ROUND_HALF_UP)
        return value.quantize(_CENTS, context=wide)


def sum_totals(totals: Iterable[Any]) -> Decimal:
    return quantize(sum((to_decimal(t) for t in totals), _ZERO))


def format_amount(value: Any, symbol: str = CURRENCY_SYMBOL) -> str:
    """Render with the fixed currency symbol and exactly two decimals, e.g. '₹12.50'."""
    return f"{symbol}{quantize(to_decimal(value)):.2f}"
