"""Selectors for the coin kernel (read side)."""

from coin_kernel.selectors.balance_selector import BalanceProjector
from coin_kernel.selectors.base import BaseSelector
from coin_kernel.selectors.payment_selector import PaymentSelector
from coin_kernel.selectors.transaction_selector import TransactionSelector

__all__ = [
    "BalanceProjector",
    "BaseSelector",
    "PaymentSelector",
    "TransactionSelector",
]
