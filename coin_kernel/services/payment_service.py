"""
PaymentService -- settlement of processed redeem transactions.

Responsibility:
    Records that a PROCESSED redeem was paid out externally and moves it
    to PAID.  Validates the payment details, the payout amount under the
    exchange policy, and the global uniqueness of the payment reference.

Architecture position:
    Kernel > Services.  Flushes only.  Never touches balances: the debit
    happened when the redeem was approved.

Invariants enforced:
    - Exactly-once settlement: PROCESSED -> PAID is a guarded UPDATE; a
      second settlement fails with InvalidStateError.
    - A payment reference is recorded on at most one transaction.  Checked
      up front and backed by the unique column, so a concurrent duplicate
      still fails with DuplicatePaymentReferenceError.

Failure modes:
    - InvalidPaymentDetailsError for a blank reference or method, or a
      non-positive amount.
    - InvalidStateError unless the transaction is a PROCESSED redeem.
    - AmountMismatchError outside the exchange tolerance.
    - DuplicatePaymentReferenceError.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coin_kernel.db.types import round_coins
from coin_kernel.domain.clock import Clock
from coin_kernel.domain.ledger import Transaction, TransactionStatus, TransactionType
from coin_kernel.domain.notifications import NotificationType
from coin_kernel.domain.payment import ExchangePolicy, PaymentInfo, append_payment_info
from coin_kernel.exceptions import (
    AmountMismatchError,
    DuplicatePaymentReferenceError,
    InvalidPaymentDetailsError,
    InvalidStateError,
)
from coin_kernel.logging_config import get_logger
from coin_kernel.services.base import BaseService
from coin_kernel.services.ledger_store import LedgerStore
from coin_kernel.services.notification_service import NotificationOutbox

logger = get_logger("services.payment")


class PaymentService(BaseService):
    """Marks processed redeems as PAID."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        exchange_policy: ExchangePolicy | None = None,
        outbox: NotificationOutbox | None = None,
    ):
        super().__init__(session, clock)
        self.exchange_policy = exchange_policy or ExchangePolicy()
        self._outbox = outbox or NotificationOutbox()
        self._store = LedgerStore(session, self.clock)

    def process_payment(
        self,
        transaction_id: UUID,
        approver_id: UUID,
        payment_reference: str,
        method: str,
        amount: Decimal,
        notes: str | None = None,
    ) -> Transaction:
        payment_reference = (payment_reference or "").strip()
        method = (method or "").strip()
        self._check_details(payment_reference, method, amount)
        amount = round_coins(amount)

        txn = self._store.load_transaction(transaction_id, lock=True)
        if (
            txn.type != TransactionType.REDEEM.value
            or txn.status != TransactionStatus.PROCESSED.value
        ):
            raise InvalidStateError(
                txn.id, txn.status, f"{TransactionType.REDEEM.value} "
                f"{TransactionStatus.PROCESSED.value}", txn.type,
            )

        policy = self.exchange_policy
        if not policy.matches(txn.amount, amount):
            raise AmountMismatchError(
                txn.id, policy.expected_payout(txn.amount), amount, policy.tolerance,
            )

        existing = self._store.find_by_payment_reference(payment_reference)
        if existing is not None and existing.id != txn.id:
            raise DuplicatePaymentReferenceError(payment_reference)

        now = self.clock.now()
        info = PaymentInfo(
            method=method,
            amount=amount,
            processed_by=approver_id,
            processed_at=now,
        )
        base_notes = "\n\n".join(n for n in (txn.admin_notes, notes) if n)
        try:
            with self.session.begin_nested():
                self._store.transition(
                    txn,
                    TransactionStatus.PAID,
                    payment_transaction_id=payment_reference,
                    payment_processed_at=now,
                    admin_notes=append_payment_info(base_notes, info),
                )
        except IntegrityError as exc:
            raise DuplicatePaymentReferenceError(payment_reference) from exc

        logger.info(
            "payment_processed",
            extra={
                "txn_id": str(txn.id),
                "approver_id": str(approver_id),
                "payment_reference": payment_reference,
                "method": method,
                "amount": amount,
            },
        )
        self._outbox.record(
            txn.user_id,
            NotificationType.PAYMENT_PROCESSED,
            {
                "transaction_id": str(txn.id),
                "payment_transaction_id": payment_reference,
                "method": method,
                "amount": str(amount),
            },
        )
        return txn.to_dto()

    @staticmethod
    def _check_details(payment_reference: str, method: str, amount: Decimal) -> None:
        errors = []
        if not payment_reference:
            errors.append("Payment transaction ID is required")
        if not method:
            errors.append("Payment method is required")
        if amount is None or amount <= 0:
            errors.append("Payment amount must be greater than 0")
        if errors:
            raise InvalidPaymentDetailsError(errors)
