"""ORM models for the coin kernel."""

from coin_kernel.models.balance import CoinBalance
from coin_kernel.models.transaction import CoinTransaction

__all__ = [
    "CoinBalance",
    "CoinTransaction",
]
