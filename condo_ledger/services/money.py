"""Money and period helpers shared by the ledger services."""

import calendar
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from condo_ledger.errors import InvalidAmountError

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize(value: Decimal) -> Decimal:
    """Round to the currency minor unit."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_money(value, field: str = "amount") -> Decimal:
    """Convert an incoming amount to a positive, finite, cent-precision Decimal.

    Args:
        value: Decimal, int, float or numeric string
        field: Field name reported in the error context

    Raises:
        InvalidAmountError: If the value is not a number, not finite or not positive
    """
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise InvalidAmountError(
            f"{field} is not a number: {value!r}", {"field": field, "value": str(value)}
        ) from e

    if not amount.is_finite():
        raise InvalidAmountError(f"{field} must be finite", {"field": field, "value": str(value)})
    if amount <= 0:
        raise InvalidAmountError(
            f"{field} must be positive", {"field": field, "value": str(value)}
        )

    rounded = quantize(amount)
    if rounded != amount:
        raise InvalidAmountError(
            f"{field} has more than two decimal places",
            {"field": field, "value": str(value)},
        )
    return rounded


def month_bounds(month: int, year: int) -> tuple[date, date]:
    """Return the first and last day of a month.

    Raises:
        ValueError: If month is not in 1..12
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def previous_month(month: int, year: int) -> tuple[int, int]:
    """Return (month, year) of the month before the given one."""
    if month == 1:
        return 12, year - 1
    return month - 1, year


def day_before(value: date) -> date:
    return value - timedelta(days=1)


def period_label(month: int, year: int) -> str:
    """Label used in generated descriptions, e.g. 'January 2025'."""
    return f"{calendar.month_name[month]} {year}"


__all__ = [
    "CENTS",
    "ZERO",
    "quantize",
    "to_money",
    "month_bounds",
    "previous_month",
    "day_before",
    "period_label",
]
