"""
Config -> Kernel Bridges.

Functions that convert ``CoinSettings`` into kernel inputs.  They live in
coin_config (the producer) because the kernel must NEVER import
coin_config.

Usage:
    from coin_config import get_active_config
    from coin_config.bridges import build_coin_ledger

    settings = get_active_config()
    ledger = build_coin_ledger(settings, session_factory, brands)
"""

from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from coin_config.schema import CoinSettings
from coin_kernel.domain.brand import BrandDirectory
from coin_kernel.domain.clock import Clock
from coin_kernel.domain.notifications import NotificationDispatcher
from coin_kernel.domain.payment import ExchangePolicy
from coin_kernel.domain.policy import LedgerPolicy
from coin_kernel.services.coin_ledger import CoinLedger


def build_ledger_policy(settings: CoinSettings) -> LedgerPolicy:
    return LedgerPolicy(
        min_bill_amount=settings.min_bill_amount,
        max_bill_age_days=settings.max_bill_age_days,
        min_time_between_submissions_minutes=settings.min_time_between_submissions_minutes,
        max_pending_requests=settings.max_pending_requests,
        min_balance_for_redemption=settings.min_balance_for_redemption,
        default_earning_percentage=settings.default_earning_percentage,
        welcome_bonus_amount=settings.welcome_bonus_amount,
    )


def build_exchange_policy(settings: CoinSettings) -> ExchangePolicy:
    return ExchangePolicy(rate=settings.exchange_rate, tolerance=settings.payment_tolerance)


def build_coin_ledger(
    settings: CoinSettings,
    session_factory: sessionmaker[Session],
    brands: BrandDirectory,
    clock: Clock | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> CoinLedger:
    """Wire a ``CoinLedger`` from loaded settings."""
    return CoinLedger(
        session_factory,
        brands,
        clock=clock,
        policy=build_ledger_policy(settings),
        exchange_policy=build_exchange_policy(settings),
        dispatcher=dispatcher,
        max_retries=settings.max_retries,
        retry_backoff_seconds=settings.retry_backoff_seconds,
    )
