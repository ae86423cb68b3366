"""
Module: coin_kernel.selectors.balance_selector
Responsibility: BalanceProjector -- per-user read views derived from the
    ledger: balance snapshot, balance summary with pending counts, and
    paginated transaction history.
Architecture position: Kernel > Selectors.  Read-only.

Lazy balance creation ("write on read" for getBalance) is done by
``LedgerStore.ensure_balance`` in the caller's unit of work, not here.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select

from coin_kernel.domain.ledger import (
    Balance,
    BalanceSummary,
    Page,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from coin_kernel.models.balance import CoinBalance
from coin_kernel.models.transaction import CoinTransaction
from coin_kernel.selectors.base import BaseSelector, page_offset


class BalanceProjector(BaseSelector):
    """Balance and history views for a single user."""

    def find_balance(self, user_id: UUID) -> Balance | None:
        row = self.session.execute(
            select(CoinBalance).where(CoinBalance.user_id == user_id)
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def pending_counts(self, user_id: UUID) -> dict[TransactionType, int]:
        """PENDING transaction counts per type for one user."""
        rows = self.session.execute(
            select(CoinTransaction.type, func.count())
            .where(CoinTransaction.user_id == user_id)
            .where(CoinTransaction.status == TransactionStatus.PENDING.value)
            .group_by(CoinTransaction.type)
        ).all()
        counts = {kind: 0 for kind in TransactionType}
        for kind, count in rows:
            counts[TransactionType(kind)] = count
        return counts

    def get_balance_summary(self, user_id: UUID) -> BalanceSummary | None:
        """Balance plus pending counts, or None if the user has no row."""
        balance = self.find_balance(user_id)
        if balance is None:
            return None
        counts = self.pending_counts(user_id)
        return BalanceSummary(
            user_id=user_id,
            balance=balance.balance,
            total_earned=balance.total_earned,
            total_redeemed=balance.total_redeemed,
            pending_earn_count=counts[TransactionType.EARN],
            pending_redeem_count=counts[TransactionType.REDEEM],
            last_updated=balance.last_updated,
        )

    def get_transaction_history(
        self,
        user_id: UUID,
        page: int = 1,
        limit: int = 20,
    ) -> Page[Transaction]:
        """All of a user's transactions, newest first."""
        offset = page_offset(page, limit)
        total = self.session.execute(
            select(func.count())
            .select_from(CoinTransaction)
            .where(CoinTransaction.user_id == user_id)
        ).scalar_one()
        rows = self.session.execute(
            select(CoinTransaction)
            .where(CoinTransaction.user_id == user_id)
            .order_by(CoinTransaction.created_at.desc(), CoinTransaction.id)
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        return Page(
            items=tuple(r.to_dto() for r in rows),
            total=total,
            page=page,
            limit=limit,
        )
