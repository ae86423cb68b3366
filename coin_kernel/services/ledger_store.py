"""
LedgerStore -- durable per-user balances and the append-only transaction log.

Responsibility:
    The only code that writes ``coin_balances`` and ``coin_transactions``.
    Provides race-safe lazy balance creation, row locking, balance
    arithmetic on the locked row, compare-and-set status transitions, and
    the small set of lookups the validation and approval paths need.

Architecture position:
    Kernel > Services.  Used by every other write service; never commits.

Invariants enforced:
    - One balance row per user: lazy creation under a savepoint with
      IntegrityError retry, so concurrent first references converge.
    - Non-negative balance: a debit larger than the locked balance raises
      before anything is written.
    - balance == total_earned - total_redeemed: credit and debit always
      move balance and exactly one running total in the same flush.  The
      arithmetic is done in Decimal, never in the database.
    - Forward-only status: transitions are a single UPDATE guarded on the
      expected current status and checked against TRANSITIONS.
    - Lock order: balance row first, then transaction row.

Failure modes:
    - TransactionNotFoundError for unknown transaction ids.
    - InsufficientBalanceError when a debit exceeds the locked balance.
    - InvalidStateError when a guarded transition matches no row or the
      edge is not in the state machine.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coin_kernel.db.types import ZERO, round_coins
from coin_kernel.domain.clock import Clock
from coin_kernel.domain.ledger import (
    INITIAL_STATUS,
    TransactionStatus,
    TransactionType,
    can_transition,
)
from coin_kernel.exceptions import (
    InsufficientBalanceError,
    InvalidStateError,
    TransactionNotFoundError,
)
from coin_kernel.logging_config import get_logger
from coin_kernel.models.balance import CoinBalance
from coin_kernel.models.transaction import CoinTransaction
from coin_kernel.services.base import BaseService

logger = get_logger("services.ledger_store")


class LedgerStore(BaseService):
    """Keyed balance storage plus the transaction log."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    def find_balance(self, user_id: UUID, lock: bool = False) -> CoinBalance | None:
        """Return the user's balance row, or None if never referenced."""
        stmt = select(CoinBalance).where(CoinBalance.user_id == user_id)
        if lock:
            stmt = stmt.with_for_update()
        return self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def ensure_balance(self, user_id: UUID, lock: bool = True) -> CoinBalance:
        """
        Return the user's balance row, creating a zero row on first use.

        With ``lock=True`` (the default) the row is held FOR UPDATE until
        the caller's transaction ends; this is the per-user serialization
        point for every write path.
        """
        row = self.find_balance(user_id, lock=lock)
        if row is not None:
            return row

        # Another unit of work may insert the same user concurrently.
        # The savepoint keeps the caller's earlier work intact on conflict.
        savepoint = self.session.begin_nested()
        try:
            now = self.clock.now()
            row = CoinBalance(
                user_id=user_id,
                balance=ZERO,
                total_earned=ZERO,
                total_redeemed=ZERO,
                created_at=now,
                last_updated=now,
            )
            self.session.add(row)
            self.session.flush()
            savepoint.commit()
            logger.info("balance_created", extra={"balance_user_id": str(user_id)})
            return row
        except IntegrityError:
            logger.debug(
                "balance_create_race_retry",
                extra={"balance_user_id": str(user_id)},
            )
            savepoint.rollback()
            self.session.expire_all()
            row = self.find_balance(user_id, lock=lock)
            if row is None:
                raise
            return row

    def credit(self, user_id: UUID, amount: Decimal) -> tuple[Decimal, Decimal]:
        """
        Add ``amount`` to balance and total_earned on the locked row.

        Returns:
            (old_balance, new_balance)
        """
        amount = round_coins(amount)
        if amount <= 0:
            raise ValueError(f"credit amount must be positive, got {amount}")
        row = self.ensure_balance(user_id, lock=True)
        old = row.balance
        row.balance = round_coins(old + amount)
        row.total_earned = round_coins(row.total_earned + amount)
        row.last_updated = self.clock.now()
        self.session.flush()
        logger.debug(
            "balance_credited",
            extra={"balance_user_id": str(user_id), "amount": amount,
                   "old_balance": old, "new_balance": row.balance},
        )
        return old, row.balance

    def debit(self, user_id: UUID, amount: Decimal) -> tuple[Decimal, Decimal]:
        """
        Move ``amount`` from balance to total_redeemed on the locked row.

        Raises:
            InsufficientBalanceError: balance < amount.  Nothing is changed.

        Returns:
            (old_balance, new_balance)
        """
        amount = round_coins(amount)
        if amount <= 0:
            raise ValueError(f"debit amount must be positive, got {amount}")
        row = self.ensure_balance(user_id, lock=True)
        old = row.balance
        if old < amount:
            raise InsufficientBalanceError(user_id, amount, old)
        row.balance = round_coins(old - amount)
        row.total_redeemed = round_coins(row.total_redeemed + amount)
        row.last_updated = self.clock.now()
        self.session.flush()
        logger.debug(
            "balance_debited",
            extra={"balance_user_id": str(user_id), "amount": amount,
                   "old_balance": old, "new_balance": row.balance},
        )
        return old, row.balance

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def load_transaction(self, transaction_id: UUID, lock: bool = False) -> CoinTransaction:
        """
        Raises:
            TransactionNotFoundError: unknown id.
        """
        stmt = select(CoinTransaction).where(CoinTransaction.id == transaction_id)
        if lock:
            stmt = stmt.with_for_update()
        txn = self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if txn is None:
            raise TransactionNotFoundError(transaction_id)
        return txn

    def append_transaction(
        self,
        *,
        user_id: UUID,
        transaction_type: TransactionType,
        amount: Decimal,
        brand_id: UUID | None = None,
        bill_amount: Decimal | None = None,
        bill_date: datetime | None = None,
        receipt_ref: str | None = None,
        admin_notes: str | None = None,
        processed_by_id: UUID | None = None,
    ) -> CoinTransaction:
        """Insert a new row in the type's initial status."""
        now = self.clock.now()
        status = INITIAL_STATUS[transaction_type]
        txn = CoinTransaction(
            user_id=user_id,
            brand_id=brand_id,
            type=transaction_type.value,
            status=status.value,
            amount=round_coins(amount),
            bill_amount=round_coins(bill_amount) if bill_amount is not None else None,
            bill_date=bill_date,
            receipt_ref=receipt_ref,
            admin_notes=admin_notes,
            processed_at=now if status is not TransactionStatus.PENDING else None,
            processed_by_id=processed_by_id,
            created_at=now,
            updated_at=now,
        )
        self.session.add(txn)
        self.session.flush()
        return txn

    def transition(
        self,
        txn: CoinTransaction,
        to_status: TransactionStatus,
        **values,
    ) -> CoinTransaction:
        """
        Move ``txn`` to ``to_status`` if it is still in its current status.

        Extra column ``values`` are written in the same UPDATE.

        Raises:
            InvalidStateError: illegal edge, or the row changed underneath.
        """
        kind = TransactionType(txn.type)
        from_status = TransactionStatus(txn.status)
        if not can_transition(kind, from_status, to_status):
            raise InvalidStateError(
                txn.id, from_status.value, f"a status that can move to {to_status.value}",
                kind.value,
            )
        result = self.session.execute(
            update(CoinTransaction)
            .where(CoinTransaction.id == txn.id)
            .where(CoinTransaction.status == from_status.value)
            .values(status=to_status.value, updated_at=self.clock.now(), **values)
            .execution_options(synchronize_session=False)
        )
        self.session.refresh(txn)
        if result.rowcount == 0:
            raise InvalidStateError(txn.id, txn.status, from_status.value, kind.value)
        return txn

    def count_transactions(
        self,
        user_id: UUID,
        status: TransactionStatus,
        transaction_type: TransactionType | None = None,
    ) -> int:
        stmt = (
            select(func.count())
            .select_from(CoinTransaction)
            .where(CoinTransaction.user_id == user_id)
            .where(CoinTransaction.status == status.value)
        )
        if transaction_type is not None:
            stmt = stmt.where(CoinTransaction.type == transaction_type.value)
        return self.session.execute(stmt).scalar_one()

    def latest_transaction(
        self,
        user_id: UUID,
        brand_id: UUID,
        transaction_type: TransactionType,
        status: TransactionStatus,
    ) -> CoinTransaction | None:
        """Most recently created matching row for this user and brand."""
        return self.session.execute(
            select(CoinTransaction)
            .where(CoinTransaction.user_id == user_id)
            .where(CoinTransaction.brand_id == brand_id)
            .where(CoinTransaction.type == transaction_type.value)
            .where(CoinTransaction.status == status.value)
            .order_by(CoinTransaction.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()

    def has_transaction_of_type(
        self,
        user_id: UUID,
        transaction_type: TransactionType,
    ) -> bool:
        found = self.session.execute(
            select(CoinTransaction.id)
            .where(CoinTransaction.user_id == user_id)
            .where(CoinTransaction.type == transaction_type.value)
            .limit(1)
        ).first()
        return found is not None

    def find_by_payment_reference(self, payment_reference: str) -> CoinTransaction | None:
        return self.session.execute(
            select(CoinTransaction)
            .where(CoinTransaction.payment_transaction_id == payment_reference)
        ).scalar_one_or_none()
