"""
Fixed-point money helpers.

Amounts are integers in minor units (100 minor units per currency unit).
Rates and quantities go through Decimal and are rounded half-up back to
minor units, so stored totals never drift.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

MINOR_UNITS = 100


def to_decimal(value, field: str = 'value') -> Decimal:
    """
    Convert an int, str or Decimal to Decimal.

    Floats are routed through str() so 0.1 stays 0.1.

    Raises:
        ValueError: If the value is not numeric
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid numeric value for {field}: {value!r}")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, AttributeError):
        raise ValueError(f"Invalid numeric value for {field}: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value for {field}: {value!r}")
    return result


def round_minor(value) -> int:
    """Round a Decimal amount of minor units to an integer (half-up)."""
    return int(to_decimal(value).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def round_to_unit(value) -> int:
    """Round a minor-unit amount to the nearest whole currency unit (half-up)."""
    units = (to_decimal(value) / MINOR_UNITS).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    return int(units) * MINOR_UNITS


def units_to_minor(value) -> int:
    """Convert whole/decimal currency units (e.g. '12.50') to minor units."""
    return round_minor(to_decimal(value) * MINOR_UNITS)


def format_amount(amount: int, currency: str = 'DZD') -> str:
    """Format minor units for display, e.g. 150000 -> '1500.00 DZD'."""
    value = (Decimal(amount) / MINOR_UNITS).quantize(Decimal('0.01'))
    return f"{value} {currency}"
