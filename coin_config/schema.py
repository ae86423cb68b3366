"""
CoinSettings schema.

The typed, frozen form of a configuration set.  YAML files are parsed
into this by the loader; bridges turn it into kernel inputs
(``LedgerPolicy``, ``ExchangePolicy``, ``CoinLedger``).
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import Decimal

# Fields parsed as Decimal; everything else keeps its declared scalar type.
DECIMAL_FIELDS = frozenset({
    "min_bill_amount",
    "welcome_bonus_amount",
    "min_balance_for_redemption",
    "default_earning_percentage",
    "exchange_rate",
    "payment_tolerance",
})

INT_FIELDS = frozenset({
    "max_bill_age_days",
    "min_time_between_submissions_minutes",
    "fraud_prevention_hours",
    "max_pending_requests",
    "max_retries",
})

FLOAT_FIELDS = frozenset({"retry_backoff_seconds"})


@dataclass(frozen=True)
class CoinSettings:
    """Named settings for the coin ledger, with shipped defaults."""

    config_id: str = "default"
    version: int = 1

    min_bill_amount: Decimal = Decimal("100")
    max_bill_age_days: int = 30
    min_time_between_submissions_minutes: int = 5
    fraud_prevention_hours: int = 24
    welcome_bonus_amount: Decimal = Decimal("100")
    max_pending_requests: int = 5
    min_balance_for_redemption: Decimal = Decimal("10")
    default_earning_percentage: Decimal = Decimal("30")

    exchange_rate: Decimal = Decimal("1")
    payment_tolerance: Decimal = Decimal("0.01")

    max_retries: int = 3
    retry_backoff_seconds: float = 0.05

    def __post_init__(self) -> None:
        errors = self.validate()
        if errors:
            raise ValueError(
                "Configuration validation failed:\n"
                + "\n".join(f"  - {e}" for e in errors)
            )

    def validate(self) -> list[str]:
        errors: list[str] = []
        for name in (
            "min_bill_amount",
            "min_balance_for_redemption",
            "payment_tolerance",
            "max_bill_age_days",
            "min_time_between_submissions_minutes",
            "fraud_prevention_hours",
            "max_retries",
            "retry_backoff_seconds",
        ):
            if getattr(self, name) < 0:
                errors.append(f"{name} must be non-negative, got {getattr(self, name)}")
        if self.welcome_bonus_amount <= 0:
            errors.append("welcome_bonus_amount must be positive")
        if self.max_pending_requests < 1:
            errors.append("max_pending_requests must be at least 1")
        if not (0 < self.default_earning_percentage <= 100):
            errors.append("default_earning_percentage must be in (0, 100]")
        if self.exchange_rate <= 0:
            errors.append("exchange_rate must be positive")
        return errors

    @classmethod
    def setting_names(cls) -> tuple[str, ...]:
        """Tunable setting names, excluding identity fields."""
        return tuple(f.name for f in fields(cls) if f.name not in ("config_id", "version"))
