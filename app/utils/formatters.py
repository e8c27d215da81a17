"""
Formatting helpers for receipts, reports and JSON payloads.
Amounts use comma thousands separators and a dot decimal separator (1,234.50).
"""
from decimal import Decimal, InvalidOperation
from datetime import date, datetime
from typing import Union, Optional


def num(value: Union[int, float, Decimal, str, None], decimals: Optional[int] = None) -> str:
    """
    Format a number with thousands separators.

    Args:
        value: Number to format
        decimals: Fixed number of decimals (None = drop insignificant zeros)

    Examples:
        num(1500) -> "1,500"
        num(1500.5) -> "1,500.5"
        num(1500, decimals=2) -> "1,500.00"
        num(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    if decimals is not None:
        number = number.quantize(Decimal(10) ** -decimals)
        return f"{number:,.{decimals}f}"

    if number == number.to_integral_value():
        return f"{number:,.0f}"

    text = f"{number:,f}"
    return text.rstrip('0').rstrip('.')


def money(value: Union[int, float, Decimal, str, None], currency: Optional[str] = None) -> str:
    """
    Format an amount with exactly 2 decimals, optionally prefixed by the currency code.

    Examples:
        money(1700) -> "1,700.00"
        money(1700, 'KES') -> "KES 1,700.00"
        money(-5) -> "-5.00"
    """
    formatted = num(value, decimals=2)
    if formatted == "-" or not currency:
        return formatted
    return f"{currency} {formatted}"


def qty(value: Union[int, float, Decimal, None]) -> str:
    """Quantity without trailing decimals: 2 -> "2", 2.5 -> "2.5"."""
    if value is None:
        return "-"
    return num(value)


def date_fmt(value: Union[date, datetime, None]) -> str:
    """
    Format a date as DD/MM/YYYY.

    Examples:
        date_fmt(date(2026, 1, 12)) -> "12/01/2026"
    """
    if value is None:
        return "-"

    if isinstance(value, datetime):
        value = value.date()

    if not isinstance(value, date):
        return "-"

    return value.strftime("%d/%m/%Y")


def datetime_fmt(value: Union[datetime, None], with_time: bool = True) -> str:
    """
    Format a datetime as DD/MM/YYYY HH:MM.

    Examples:
        datetime_fmt(datetime(2026, 1, 12, 15, 30)) -> "12/01/2026 15:30"
        datetime_fmt(datetime(2026, 1, 12, 15, 30), with_time=False) -> "12/01/2026"
    """
    if value is None:
        return "-"

    if not isinstance(value, datetime):
        return "-"

    if with_time:
        return value.strftime("%d/%m/%Y %H:%M")
    return value.strftime("%d/%m/%Y")


def day_label(value: Union[date, datetime, None]) -> str:
    """Short day label used by charts and reports: 'Jan 12'."""
    if value is None:
        return "-"
    if isinstance(value, datetime):
        value = value.date()
    return value.strftime("%b %d")
