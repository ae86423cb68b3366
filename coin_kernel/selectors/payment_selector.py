"""
Module: coin_kernel.selectors.payment_selector
Responsibility: Settlement read views -- payment summary for one redeem,
    paid redeems in a time window, and payout statistics.  Payment method
    and payout amount come from the ``Payment Info`` block written into
    admin notes at settlement.
Architecture position: Kernel > Selectors.  Read-only.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from coin_kernel.db.types import ZERO, round_coins
from coin_kernel.domain.clock import as_utc
from coin_kernel.domain.ledger import Page, Transaction, TransactionStatus, TransactionType
from coin_kernel.domain.payment import PaymentStats, PaymentSummary, extract_payment_info
from coin_kernel.exceptions import TransactionNotFoundError
from coin_kernel.models.transaction import CoinTransaction
from coin_kernel.selectors.base import BaseSelector, page_offset


class PaymentSelector(BaseSelector):

    def get_payment_summary(self, transaction_id: UUID) -> PaymentSummary:
        """
        Raises:
            TransactionNotFoundError: unknown id.
        """
        row = self.session.get(CoinTransaction, transaction_id)
        if row is None:
            raise TransactionNotFoundError(transaction_id)
        return PaymentSummary(
            transaction_id=row.id,
            user_id=row.user_id,
            amount=row.amount,
            status=TransactionStatus(row.status),
            payment_transaction_id=row.payment_transaction_id,
            payment_processed_at=row.payment_processed_at,
            payment_info=extract_payment_info(row.admin_notes),
        )

    def _paid_filters(self, start: datetime | None, end: datetime | None) -> list:
        filters = [
            CoinTransaction.type == TransactionType.REDEEM.value,
            CoinTransaction.status == TransactionStatus.PAID.value,
        ]
        if start is not None:
            filters.append(CoinTransaction.payment_processed_at >= as_utc(start))
        if end is not None:
            filters.append(CoinTransaction.payment_processed_at <= as_utc(end))
        return filters

    def get_paid_transactions(
        self,
        page: int = 1,
        limit: int = 20,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> Page[Transaction]:
        """PAID redeems settled within [start, end], most recent payment first."""
        offset = page_offset(page, limit)
        filters = self._paid_filters(start, end)
        total = self.session.execute(
            select(func.count()).select_from(CoinTransaction).where(*filters)
        ).scalar_one()
        rows = self.session.execute(
            select(CoinTransaction)
            .where(*filters)
            .order_by(CoinTransaction.payment_processed_at.desc(), CoinTransaction.id)
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        return Page(
            items=tuple(r.to_dto() for r in rows),
            total=total,
            page=page,
            limit=limit,
        )

    def get_payment_stats(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> PaymentStats:
        """Count, total and average payout, plus counts per payment method."""
        rows = self.session.execute(
            select(CoinTransaction.amount, CoinTransaction.admin_notes)
            .where(*self._paid_filters(start, end))
        ).all()

        total_amount = ZERO
        methods: Counter[str] = Counter()
        for amount, notes in rows:
            info = extract_payment_info(notes)
            if info is not None:
                total_amount += info.amount
                methods[info.method] += 1
            else:
                total_amount += amount
                methods["unknown"] += 1

        count = len(rows)
        average = round_coins(total_amount / count) if count else ZERO
        return PaymentStats(
            total_paid=count,
            total_amount=round_coins(total_amount),
            average_amount=average,
            payment_methods=dict(methods),
        )
