"""Number parsing utilities for request payloads."""
import re
from decimal import Decimal, InvalidOperation

AMOUNT_PATTERN = re.compile(r"^(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d{1,2})?$")


def parse_amount(value) -> Decimal:
    """
    Parse a monetary value (e.g. 1,234.56, "850", 850.5) to a Decimal with 2 places.

    Rules:
    - Thousands separator: comma (,) with proper grouping
    - Decimal separator: dot (.)
    - At most 2 decimal digits
    - No negatives

    Raises:
        ValueError: if the value is invalid or empty.
    """
    if value is None:
        raise ValueError('Invalid amount. Use 1,234.56')

    if isinstance(value, (int, Decimal)) or isinstance(value, float):
        cleaned = str(value)
    else:
        cleaned = str(value).strip()
    if not cleaned:
        raise ValueError('Invalid amount. Use 1,234.56')

    if cleaned.startswith('-'):
        raise ValueError('Amount cannot be negative')

    if not AMOUNT_PATTERN.match(cleaned):
        raise ValueError('Invalid amount. Use 1,234.56')

    try:
        decimal_value = Decimal(cleaned.replace(',', ''))
    except (InvalidOperation, ValueError):
        raise ValueError('Invalid amount. Use 1,234.56')

    return decimal_value.quantize(Decimal('0.01'))


def parse_count(value, minimum: int = 0) -> int:
    """
    Parse a whole-number quantity (stock levels, cart quantities).

    Raises:
        ValueError: if the value is not a whole number or is below `minimum`.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError('Quantity is required')
    if isinstance(value, bool):
        raise ValueError('Invalid quantity')

    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f'Invalid quantity: {value}')

    if number % 1 != 0:
        raise ValueError(f'Quantity must be a whole number: {value}')
    if number < minimum:
        raise ValueError(f'Quantity must be at least {minimum}')

    return int(number)
