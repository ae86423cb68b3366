"""
Module: coin_kernel.selectors.transaction_selector
Responsibility: Admin-side read views over the transaction log: single
    transaction lookup, the pending approval queue, and ledger-wide stats.
Architecture position: Kernel > Selectors.  Read-only.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from coin_kernel.db.types import ZERO
from coin_kernel.domain.ledger import (
    Page,
    Transaction,
    TransactionStats,
    TransactionStatus,
    TransactionType,
)
from coin_kernel.exceptions import TransactionNotFoundError
from coin_kernel.models.balance import CoinBalance
from coin_kernel.models.transaction import CoinTransaction
from coin_kernel.selectors.base import BaseSelector, page_offset


class TransactionSelector(BaseSelector):
    """Transaction queries for admin tooling."""

    def get_transaction(self, transaction_id: UUID) -> Transaction:
        """
        Raises:
            TransactionNotFoundError: unknown id.
        """
        row = self.session.get(CoinTransaction, transaction_id)
        if row is None:
            raise TransactionNotFoundError(transaction_id)
        return row.to_dto()

    def get_pending_transactions(
        self,
        page: int = 1,
        limit: int = 20,
        transaction_type: TransactionType | None = None,
    ) -> Page[Transaction]:
        """PENDING transactions, oldest first (approval queue order)."""
        offset = page_offset(page, limit)
        filters = [CoinTransaction.status == TransactionStatus.PENDING.value]
        if transaction_type is not None:
            filters.append(CoinTransaction.type == transaction_type.value)

        total = self.session.execute(
            select(func.count()).select_from(CoinTransaction).where(*filters)
        ).scalar_one()
        rows = self.session.execute(
            select(CoinTransaction)
            .where(*filters)
            .order_by(CoinTransaction.created_at.asc(), CoinTransaction.id)
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        return Page(
            items=tuple(r.to_dto() for r in rows),
            total=total,
            page=page,
            limit=limit,
        )

    def count_pending(self, transaction_type: TransactionType) -> int:
        return self.session.execute(
            select(func.count())
            .select_from(CoinTransaction)
            .where(CoinTransaction.type == transaction_type.value)
            .where(CoinTransaction.status == TransactionStatus.PENDING.value)
        ).scalar_one()

    def _sum_amount(self, transaction_type: TransactionType, status: TransactionStatus) -> Decimal:
        total = self.session.execute(
            select(func.sum(CoinTransaction.amount))
            .where(CoinTransaction.type == transaction_type.value)
            .where(CoinTransaction.status == status.value)
        ).scalar_one()
        return total if total is not None else ZERO

    def get_transaction_stats(self) -> TransactionStats:
        """
        Dashboard aggregates.

        total_earned sums APPROVED earns; total_redeemed sums PAID redeems.
        Bonuses and adjustments show up in total_balance only.
        """
        balance_total, users = self.session.execute(
            select(func.sum(CoinBalance.balance), func.count(CoinBalance.id))
        ).one()
        return TransactionStats(
            pending_earn=self.count_pending(TransactionType.EARN),
            pending_redeem=self.count_pending(TransactionType.REDEEM),
            total_earned=self._sum_amount(TransactionType.EARN, TransactionStatus.APPROVED),
            total_redeemed=self._sum_amount(TransactionType.REDEEM, TransactionStatus.PAID),
            total_balance=balance_total if balance_total is not None else ZERO,
            total_users=users,
        )
