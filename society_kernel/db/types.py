"""
Module: society_kernel.db.types
Responsibility: Annotated column types and the sanctioned rounding helpers
    for money.  Every model and service uses these definitions so that
    amounts are stored and rounded identically.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and selectors/.  MUST NOT import from any of those layers.

CRITICAL: No floats.  All monetary amounts use Decimal.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import Numeric

# Rupee amount, two decimal places (paise)
Money = Annotated[Decimal, Numeric(18, 2)]

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def money_from_value(value: object) -> Decimal:
    """
    Coerce user input (str, int, Decimal) into a Decimal amount.

    Floats are converted through their string form so that 0.1 stays 0.1.

    Raises:
        ValueError: If the value is not a number.
    """
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Not a monetary amount: {value!r}") from exc


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    This is the ONLY sanctioned rounding function for money in the kernel.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def percentage_of(
    base: Decimal,
    percentage: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
) -> Decimal:
    """
    Compute ``base * percentage / 100`` rounded to money precision.

    Used for GST on top of a base amount and TDS withheld from it.

    Example:
        percentage_of(Decimal("1000"), Decimal("18")) -> Decimal("180.00")
    """
    return round_money(base * percentage / Decimal(100), decimal_places)
