"""
BonusService -- welcome bonus and admin balance adjustments.

Responsibility:
    The two auto-approved paths.  Both append an APPROVED transaction and
    apply its balance effect in the same unit of work.

Architecture position:
    Kernel > Services.  Flushes only.

Invariants enforced:
    - At most one WELCOME_BONUS transaction per user, checked under the
      user's balance lock.
    - Adjustments are signed and never zero.  A negative adjustment is
      capped at the available balance so the balance never goes negative;
      the row records the delta actually applied and the notes keep the
      requested amount.

Failure modes:
    - AlreadyGrantedError on a second welcome bonus.
    - InvalidAmountError for a zero or non-positive amount.
    - ValidationFailedError for a missing adjustment reason.
    - InsufficientBalanceError for a negative adjustment on a zero balance.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from coin_kernel.db.types import ZERO, round_coins
from coin_kernel.domain.clock import Clock
from coin_kernel.domain.ledger import Transaction, TransactionType
from coin_kernel.domain.notifications import NotificationType
from coin_kernel.domain.policy import LedgerPolicy
from coin_kernel.exceptions import (
    AlreadyGrantedError,
    InsufficientBalanceError,
    InvalidAmountError,
    ValidationFailedError,
)
from coin_kernel.logging_config import get_logger
from coin_kernel.models.transaction import CoinTransaction
from coin_kernel.services.base import BaseService
from coin_kernel.services.ledger_store import LedgerStore
from coin_kernel.services.notification_service import NotificationOutbox

logger = get_logger("services.bonus")

WELCOME_BONUS_NOTES = "Welcome bonus"


class BonusService(BaseService):
    """Welcome bonus and manual adjustment writes."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: LedgerPolicy | None = None,
        outbox: NotificationOutbox | None = None,
    ):
        super().__init__(session, clock)
        self.policy = policy or LedgerPolicy()
        self._outbox = outbox or NotificationOutbox()
        self._store = LedgerStore(session, self.clock)

    def check_welcome_bonus_eligibility(self, user_id: UUID) -> bool:
        return not self._store.has_transaction_of_type(
            user_id, TransactionType.WELCOME_BONUS,
        )

    def grant_welcome_bonus(
        self,
        user_id: UUID,
        amount: Decimal | None = None,
        approver_id: UUID | None = None,
    ) -> Transaction:
        amount = round_coins(amount if amount is not None else self.policy.welcome_bonus_amount)
        if amount <= 0:
            raise InvalidAmountError(amount, "welcome bonus must be positive")

        self._store.ensure_balance(user_id, lock=True)
        if not self.check_welcome_bonus_eligibility(user_id):
            logger.info("welcome_bonus_already_granted")
            raise AlreadyGrantedError(user_id)

        with self.session.begin_nested():
            txn = self._store.append_transaction(
                user_id=user_id,
                transaction_type=TransactionType.WELCOME_BONUS,
                amount=amount,
                admin_notes=WELCOME_BONUS_NOTES,
                processed_by_id=approver_id,
            )
            old, new = self._store.credit(user_id, amount)

        logger.info(
            "welcome_bonus_granted",
            extra={"txn_id": str(txn.id), "amount": amount, "new_balance": new},
        )
        self._outbox.record(
            user_id,
            NotificationType.WELCOME_BONUS_GRANTED,
            {"transaction_id": str(txn.id), "amount": str(amount)},
        )
        self._record_balance(txn, old, new)
        return txn.to_dto()

    def apply_adjustment(
        self,
        user_id: UUID,
        amount: Decimal,
        reason: str,
        approver_id: UUID,
        description: str | None = None,
    ) -> Transaction:
        requested = round_coins(amount)
        if requested == 0:
            raise InvalidAmountError(requested, "adjustment must be non-zero")
        if not reason or not reason.strip():
            raise ValidationFailedError(["Adjustment reason is required"])

        notes = reason.strip()
        if description:
            notes = f"{notes}\n\n{description}"

        row = self._store.ensure_balance(user_id, lock=True)
        applied = requested
        if requested < 0:
            available = row.balance
            if available <= ZERO:
                raise InsufficientBalanceError(user_id, -requested, available)
            if -requested > available:
                applied = -available
                notes = f"{notes}\n\nRequested adjustment: {requested}, applied: {applied}"
                logger.warning(
                    "adjustment_debit_capped",
                    extra={"requested": requested, "applied": applied},
                )

        with self.session.begin_nested():
            txn = self._store.append_transaction(
                user_id=user_id,
                transaction_type=TransactionType.ADJUSTMENT,
                amount=applied,
                admin_notes=notes,
                processed_by_id=approver_id,
            )
            if applied > 0:
                old, new = self._store.credit(user_id, applied)
            else:
                old, new = self._store.debit(user_id, -applied)

        # Admin debits are logged apart from user redeems.
        logger.info(
            "adjustment_applied" if applied > 0 else "adjustment_debit_applied",
            extra={
                "txn_id": str(txn.id),
                "approver_id": str(approver_id),
                "amount": applied,
                "old_balance": old,
                "new_balance": new,
            },
        )
        self._outbox.record(
            user_id,
            NotificationType.ADJUSTMENT_APPLIED,
            {"transaction_id": str(txn.id), "amount": str(applied), "reason": reason.strip()},
        )
        self._record_balance(txn, old, new)
        return txn.to_dto()

    def _record_balance(self, txn: CoinTransaction, old: Decimal, new: Decimal) -> None:
        self._outbox.record(
            txn.user_id,
            NotificationType.BALANCE_UPDATED,
            {
                "transaction_id": str(txn.id),
                "old_balance": str(old),
                "new_balance": str(new),
            },
        )
