"""
Module: coin_kernel.models.balance
Responsibility: ORM persistence for per-user coin balances.

Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One row per user: UNIQUE(user_id).
    - Non-negative balance and running totals: DB check constraints back
      the service-level guard on debits.
    - balance == total_earned - total_redeemed: maintained by LedgerStore,
      which only ever mutates the three columns together in one UPDATE.

Failure modes:
    - IntegrityError on concurrent first-insert for the same user (handled
      by LedgerStore via savepoint retry).
    - IntegrityError if a debit would drive balance below zero.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from coin_kernel.db.base import Base, UUIDString
from coin_kernel.db.types import CoinAmount

if TYPE_CHECKING:
    from coin_kernel.domain.ledger import Balance


class CoinBalance(Base):
    """Persistent per-user balance.  Created lazily, never deleted."""

    __tablename__ = "coin_balances"

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_coin_balances_non_negative"),
        CheckConstraint("total_earned >= 0", name="ck_coin_balances_earned_non_negative"),
        CheckConstraint("total_redeemed >= 0", name="ck_coin_balances_redeemed_non_negative"),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)
    balance: Mapped[CoinAmount] = mapped_column(nullable=False, default=Decimal("0"))
    total_earned: Mapped[CoinAmount] = mapped_column(nullable=False, default=Decimal("0"))
    total_redeemed: Mapped[CoinAmount] = mapped_column(nullable=False, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    last_updated: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<CoinBalance user={self.user_id} balance={self.balance}>"

    def to_dto(self) -> Balance:
        """Convert ORM model to frozen domain DTO."""
        from coin_kernel.domain.ledger import Balance as BalanceDTO

        return BalanceDTO(
            user_id=self.user_id,
            balance=self.balance,
            total_earned=self.total_earned,
            total_redeemed=self.total_redeemed,
            last_updated=self.last_updated,
        )
