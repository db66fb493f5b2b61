from decimal import ROUND_HALF_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Union

ZERO = Decimal("0.00")


def round_money(value: Union[Decimal, float, int, str]) -> Decimal:
    """
    Round monetary value to 2 decimal places using ROUND_HALF_UP.

    Examples:
        >>> round_money(10.125)
        Decimal('10.13')
        >>> round_money("10.115")
        Decimal('10.12')
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if value < 0:
        return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_DOWN)
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def to_amount(value: Any) -> Decimal:
    """
    Coerce a form/wire amount to money. Missing, blank, NaN, infinite or
    unparsable input counts as zero.

    Examples:
        >>> to_amount("12.5")
        Decimal('12.50')
        >>> to_amount(float("nan"))
        Decimal('0.00')
        >>> to_amount(None)
        Decimal('0.00')
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return ZERO
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO
    if not amount.is_finite():
        return ZERO
    return round_money(amount)


def sum_money(values: Iterable[Any]) -> Decimal:
    """Sum amounts, treating invalid entries as zero."""
    return round_money(sum((to_amount(v) for v in values), ZERO))


def format_currency(value: Union[Decimal, float, int], symbol: str = "$") -> str:
    """Display format used on dashboards and exports, e.g. ``$1,250.00``."""
    amount = to_amount(value)
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"
