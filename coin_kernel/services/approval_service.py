"""
coin_kernel.services.approval_service -- Admin approval state machine.

Responsibility:
    Drives EARN and REDEEM transactions out of PENDING.  Approving an earn
    credits the balance; approving a redeem moves it to PROCESSED and
    debits the balance; rejecting either has no balance effect.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/ and
    LedgerStore.  Flushes only; ``CoinLedger`` commits, then dispatches the
    notifications recorded in the outbox.

Invariants enforced:
    - At-most-once balance effect: every operation requires status PENDING,
      re-read under lock, and the status UPDATE is guarded on PENDING.  A
      second call on a resolved transaction fails with InvalidStateError.
    - Ordering: a redeem cannot be processed while the user has any PENDING
      earn.  Checked under the user's balance lock, which submissions also
      take, so the count cannot change before commit.
    - Atomicity: status change and balance mutation run in one savepoint;
      if the balance step fails the status change is undone as well.

Failure modes:
    - TransactionNotFoundError for unknown ids.
    - InvalidStateError for wrong type or non-PENDING status.
    - MissingRejectionNotesError when rejecting without notes.
    - OrderingViolationError when pending earns block a redeem.
    - InsufficientBalanceError when the balance no longer covers a redeem.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from coin_kernel.domain.clock import Clock
from coin_kernel.domain.ledger import (
    Transaction,
    TransactionStatus,
    TransactionType,
)
from coin_kernel.domain.notifications import NotificationType
from coin_kernel.exceptions import (
    InvalidStateError,
    MissingRejectionNotesError,
    OrderingViolationError,
)
from coin_kernel.logging_config import get_logger
from coin_kernel.models.transaction import CoinTransaction
from coin_kernel.services.base import BaseService
from coin_kernel.services.ledger_store import LedgerStore
from coin_kernel.services.notification_service import NotificationOutbox

logger = get_logger("services.approval")


class ApprovalService(BaseService):
    """Approve/reject operations for pending earn and redeem requests."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        outbox: NotificationOutbox | None = None,
    ) -> None:
        super().__init__(session, clock)
        self._outbox = outbox or NotificationOutbox()
        self._store = LedgerStore(session, self.clock)

    # ------------------------------------------------------------------
    # Earn
    # ------------------------------------------------------------------

    def approve_earn(
        self,
        transaction_id: UUID,
        approver_id: UUID,
        notes: str | None = None,
    ) -> Transaction:
        txn = self._lock_pending(transaction_id, TransactionType.EARN)

        with self.session.begin_nested():
            self._store.transition(
                txn,
                TransactionStatus.APPROVED,
                processed_at=self.clock.now(),
                processed_by_id=approver_id,
                admin_notes=notes,
            )
            old, new = self._store.credit(txn.user_id, txn.amount)

        logger.info(
            "earn_approved",
            extra={
                "txn_id": str(txn.id),
                "approver_id": str(approver_id),
                "amount": txn.amount,
                "old_balance": old,
                "new_balance": new,
            },
        )
        self._record_resolution(txn, NotificationType.TRANSACTION_APPROVED, notes)
        self._record_balance(txn, old, new)
        return txn.to_dto()

    def reject_earn(
        self,
        transaction_id: UUID,
        approver_id: UUID,
        notes: str | None,
    ) -> Transaction:
        return self._reject(transaction_id, TransactionType.EARN, approver_id, notes)

    # ------------------------------------------------------------------
    # Redeem
    # ------------------------------------------------------------------

    def approve_redeem(
        self,
        transaction_id: UUID,
        approver_id: UUID,
        notes: str | None = None,
    ) -> Transaction:
        txn = self._lock_pending(transaction_id, TransactionType.REDEEM)

        pending_earns = self._store.count_transactions(
            txn.user_id, TransactionStatus.PENDING, TransactionType.EARN,
        )
        if pending_earns > 0:
            logger.info(
                "redeem_blocked_by_pending_earn",
                extra={"txn_id": str(txn.id), "pending_earn_count": pending_earns},
            )
            raise OrderingViolationError(txn.id, txn.user_id, pending_earns)

        with self.session.begin_nested():
            self._store.transition(
                txn,
                TransactionStatus.PROCESSED,
                processed_at=self.clock.now(),
                processed_by_id=approver_id,
                admin_notes=notes,
            )
            old, new = self._store.debit(txn.user_id, txn.amount)

        logger.info(
            "redeem_processed",
            extra={
                "txn_id": str(txn.id),
                "approver_id": str(approver_id),
                "amount": txn.amount,
                "old_balance": old,
                "new_balance": new,
            },
        )
        self._record_resolution(txn, NotificationType.REDEEM_PROCESSED, notes)
        self._record_balance(txn, old, new)
        return txn.to_dto()

    def reject_redeem(
        self,
        transaction_id: UUID,
        approver_id: UUID,
        notes: str | None,
    ) -> Transaction:
        return self._reject(transaction_id, TransactionType.REDEEM, approver_id, notes)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_pending(
        self,
        transaction_id: UUID,
        expected_type: TransactionType,
    ) -> CoinTransaction:
        """Lock the owner's balance, then the transaction; require PENDING."""
        owner = self._store.load_transaction(transaction_id).user_id
        self._store.ensure_balance(owner, lock=True)
        txn = self._store.load_transaction(transaction_id, lock=True)

        if txn.type != expected_type.value:
            raise InvalidStateError(
                txn.id, txn.status, f"pending {expected_type.value}", txn.type,
            )
        if txn.status != TransactionStatus.PENDING.value:
            logger.info(
                "transaction_already_resolved",
                extra={"txn_id": str(txn.id), "status": txn.status},
            )
            raise InvalidStateError(
                txn.id, txn.status, TransactionStatus.PENDING.value, txn.type,
            )
        return txn

    def _reject(
        self,
        transaction_id: UUID,
        expected_type: TransactionType,
        approver_id: UUID,
        notes: str | None,
    ) -> Transaction:
        txn = self._lock_pending(transaction_id, expected_type)
        if not notes or not notes.strip():
            raise MissingRejectionNotesError(transaction_id)

        self._store.transition(
            txn,
            TransactionStatus.REJECTED,
            processed_at=self.clock.now(),
            processed_by_id=approver_id,
            admin_notes=notes.strip(),
        )
        logger.info(
            f"{expected_type.value}_rejected",
            extra={"txn_id": str(txn.id), "approver_id": str(approver_id)},
        )
        self._record_resolution(txn, NotificationType.TRANSACTION_REJECTED, notes)
        return txn.to_dto()

    def _record_resolution(
        self,
        txn: CoinTransaction,
        event_type: NotificationType,
        notes: str | None,
    ) -> None:
        self._outbox.record(
            txn.user_id,
            event_type,
            {
                "transaction_id": str(txn.id),
                "type": txn.type,
                "status": txn.status,
                "amount": str(txn.amount),
                "admin_notes": notes,
            },
        )

    def _record_balance(self, txn: CoinTransaction, old, new) -> None:
        self._outbox.record(
            txn.user_id,
            NotificationType.BALANCE_UPDATED,
            {
                "transaction_id": str(txn.id),
                "old_balance": str(old),
                "new_balance": str(new),
            },
        )
