"""
Module: coin_kernel.models.transaction
Responsibility: ORM persistence for the append-only coin transaction log.

Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Valid type and status values: DB check constraints.
    - Sign convention: amount is never zero; only ADJUSTMENT rows may be
      negative.
    - Payment reference uniqueness: UNIQUE(payment_transaction_id), so an
      external payout reference can settle at most one redeem.
    - Covering index on (user_id, status, type) for pending-request counts
      and the redeem ordering check.

Failure modes:
    - IntegrityError on a reused payment_transaction_id (mapped to
      DuplicatePaymentReferenceError by PaymentService).

Audit relevance:
    Rows are never deleted.  Status changes are forward-only and stamped
    with processed_at/processed_by_id; settlement adds the payment
    reference and a payment metadata block to admin_notes.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from coin_kernel.db.base import Base, UUIDString
from coin_kernel.db.types import CoinAmount

if TYPE_CHECKING:
    from coin_kernel.domain.ledger import Transaction


class CoinTransaction(Base):
    """One earn/redeem/bonus/adjustment request and its lifecycle."""

    __tablename__ = "coin_transactions"

    __table_args__ = (
        CheckConstraint(
            "type IN ('earn', 'redeem', 'welcome_bonus', 'adjustment')",
            name="ck_coin_transactions_valid_type",
        ),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'processed', 'paid')",
            name="ck_coin_transactions_valid_status",
        ),
        CheckConstraint("amount <> 0", name="ck_coin_transactions_non_zero"),
        CheckConstraint(
            "type = 'adjustment' OR amount > 0",
            name="ck_coin_transactions_positive_unless_adjustment",
        ),
        Index(
            "ix_coin_transactions_user_status_type",
            "user_id", "status", "type",
        ),
        Index(
            "ix_coin_transactions_status_created",
            "status", "created_at",
        ),
        Index(
            "ix_coin_transactions_payment_processed",
            "payment_processed_at",
        ),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    brand_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[CoinAmount] = mapped_column(nullable=False)
    bill_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    bill_date: Mapped[datetime | None] = mapped_column(nullable=True)
    receipt_ref: Mapped[str | None] = mapped_column(String(500), nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    processed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    payment_transaction_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True,
    )
    payment_processed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<CoinTransaction {self.id} {self.type} "
            f"amount={self.amount} status={self.status}>"
        )

    def to_dto(self) -> Transaction:
        """Convert ORM model to frozen domain DTO."""
        from coin_kernel.domain.ledger import (
            Transaction as TransactionDTO,
            TransactionStatus,
            TransactionType,
        )

        return TransactionDTO(
            id=self.id,
            user_id=self.user_id,
            type=TransactionType(self.type),
            status=TransactionStatus(self.status),
            amount=self.amount,
            created_at=self.created_at,
            brand_id=self.brand_id,
            bill_amount=self.bill_amount,
            bill_date=self.bill_date,
            receipt_ref=self.receipt_ref,
            admin_notes=self.admin_notes,
            processed_at=self.processed_at,
            processed_by_id=self.processed_by_id,
            payment_transaction_id=self.payment_transaction_id,
            payment_processed_at=self.payment_processed_at,
        )
