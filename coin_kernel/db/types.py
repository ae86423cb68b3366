"""
Module: coin_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for coin and
    bill amounts, so every model and service uses identical precision.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere in the coin kernel.  Amounts are Decimal with two
      decimal places; round_coins() is the only sanctioned rounding
      function.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric

# Coin amount: 18 digits total, 2 decimal places
CoinAmount = Annotated[Decimal, Numeric(18, 2)]

COIN_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0.00")


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce a caller-supplied amount to Decimal.

    Floats are rejected; ``Decimal(0.1)`` silently carries binary error.

    Raises:
        TypeError: If value is a float or bool.
        decimal.InvalidOperation: If a string cannot be parsed.
    """
    if isinstance(value, (float, bool)):
        raise TypeError(f"Amounts must be Decimal, int or str, not {type(value).__name__}")
    if isinstance(value, Decimal):
        return value
    return Decimal(value)


def round_coins(
    value: Decimal | int | str,
    decimal_places: int = COIN_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a coin or bill amount to the ledger precision.

    Example:
        round_coins(Decimal("33.335")) -> Decimal("33.34")
    """
    quantizer = Decimal(10) ** -decimal_places
    return to_decimal(value).quantize(quantizer, rounding=rounding)
