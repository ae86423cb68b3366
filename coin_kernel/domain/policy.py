"""
Ledger policy (``coin_kernel.domain.policy``).

Numeric limits that the validation engine and bonus paths apply.  The
kernel never reads configuration itself; ``coin_config.bridges`` builds
a ``LedgerPolicy`` from loaded settings.  Defaults match the shipped
configuration set so the kernel also runs standalone.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class LedgerPolicy:
    min_bill_amount: Decimal = Decimal("100")
    max_bill_age_days: int = 30
    min_time_between_submissions_minutes: int = 5
    max_pending_requests: int = 5
    min_balance_for_redemption: Decimal = Decimal("10")
    default_earning_percentage: Decimal = Decimal("30")
    welcome_bonus_amount: Decimal = Decimal("100")

    def __post_init__(self) -> None:
        if self.min_bill_amount < 0:
            raise ValueError("min_bill_amount must be non-negative")
        if self.max_bill_age_days < 0:
            raise ValueError("max_bill_age_days must be non-negative")
        if self.min_time_between_submissions_minutes < 0:
            raise ValueError("min_time_between_submissions_minutes must be non-negative")
        if self.max_pending_requests < 1:
            raise ValueError("max_pending_requests must be at least 1")
        if self.min_balance_for_redemption < 0:
            raise ValueError("min_balance_for_redemption must be non-negative")
        if not (0 < self.default_earning_percentage <= 100):
            raise ValueError("default_earning_percentage must be in (0, 100]")
        if self.welcome_bonus_amount <= 0:
            raise ValueError("welcome_bonus_amount must be positive")
