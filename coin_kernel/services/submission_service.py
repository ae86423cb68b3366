"""
SubmissionService -- turns user earn/redeem requests into PENDING rows.

Responsibility:
    Resolves the brand snapshot, serializes on the user's balance row,
    runs the validation rules, computes the coin amount and appends the
    PENDING transaction.  Records a user notification and an admin
    pending-count notification in the outbox.

Architecture position:
    Kernel > Services.  Flushes only; ``CoinLedger`` commits.

Invariants enforced:
    - A request that fails validation is never persisted.
    - Earn amount = round(bill_amount * earning_percentage / 100, 2).
    - Redeem amount is the positive number of coins requested; nothing is
      deducted until the redeem is approved.

Failure modes:
    - BrandNotFoundError / BrandInactiveError.
    - ValidationFailedError carrying every rule violation.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from coin_kernel.db.types import round_coins, to_decimal
from coin_kernel.domain.brand import BrandDirectory, BrandSnapshot
from coin_kernel.domain.clock import Clock, as_utc
from coin_kernel.domain.ledger import Transaction, TransactionType
from coin_kernel.domain.notifications import NotificationType
from coin_kernel.domain.policy import LedgerPolicy
from coin_kernel.exceptions import (
    BrandInactiveError,
    BrandNotFoundError,
    ValidationFailedError,
)
from coin_kernel.logging_config import get_logger
from coin_kernel.selectors.transaction_selector import TransactionSelector
from coin_kernel.services.base import BaseService
from coin_kernel.services.ledger_store import LedgerStore
from coin_kernel.services.notification_service import NotificationOutbox
from coin_kernel.services.validation_service import ValidationService

logger = get_logger("services.submission")


class SubmissionService(BaseService):
    """Creates PENDING earn and redeem transactions."""

    def __init__(
        self,
        session: Session,
        brands: BrandDirectory,
        clock: Clock | None = None,
        policy: LedgerPolicy | None = None,
        outbox: NotificationOutbox | None = None,
    ):
        super().__init__(session, clock)
        self.policy = policy or LedgerPolicy()
        self._brands = brands
        self._outbox = outbox or NotificationOutbox()
        self._store = LedgerStore(session, self.clock)
        self._validator = ValidationService(session, self.clock, self.policy, self._store)
        self._queue = TransactionSelector(session)

    def submit_earn(
        self,
        user_id: UUID,
        brand_id: UUID,
        bill_amount: Decimal,
        bill_date: datetime,
        receipt_ref: str | None = None,
    ) -> Transaction:
        brand = self._active_brand(brand_id)
        bill_amount = round_coins(bill_amount)
        bill_date = as_utc(bill_date)

        self._store.ensure_balance(user_id, lock=True)
        result = self._validator.validate_earn(user_id, brand_id, bill_amount, bill_date)
        if not result.is_valid:
            raise ValidationFailedError(result.errors, result.warnings)

        percentage = (
            brand.earning_percentage
            if brand.earning_percentage is not None
            else self.policy.default_earning_percentage
        )
        coins = round_coins(bill_amount * to_decimal(percentage) / Decimal(100))
        if coins <= 0:
            raise ValidationFailedError(["Calculated coin amount must be greater than 0"])

        txn = self._store.append_transaction(
            user_id=user_id,
            transaction_type=TransactionType.EARN,
            amount=coins,
            brand_id=brand_id,
            bill_amount=bill_amount,
            bill_date=bill_date,
            receipt_ref=receipt_ref,
        )
        logger.info(
            "earn_request_submitted",
            extra={
                "txn_id": str(txn.id),
                "brand_id": str(brand_id),
                "bill_amount": bill_amount,
                "coins": coins,
                "earning_percentage": percentage,
            },
        )
        self._record_submitted(txn.to_dto())
        return txn.to_dto()

    def submit_redeem(
        self,
        user_id: UUID,
        brand_id: UUID,
        bill_amount: Decimal,
        coins_to_redeem: Decimal,
    ) -> Transaction:
        brand = self._active_brand(brand_id)
        bill_amount = round_coins(bill_amount)
        coins = round_coins(coins_to_redeem)

        self._store.ensure_balance(user_id, lock=True)
        result = self._validator.validate_redeem(user_id, bill_amount, coins, brand)
        if not result.is_valid:
            raise ValidationFailedError(result.errors, result.warnings)

        txn = self._store.append_transaction(
            user_id=user_id,
            transaction_type=TransactionType.REDEEM,
            amount=coins,
            brand_id=brand_id,
            bill_amount=bill_amount,
        )
        logger.info(
            "redeem_request_submitted",
            extra={
                "txn_id": str(txn.id),
                "brand_id": str(brand_id),
                "bill_amount": bill_amount,
                "coins": coins,
            },
        )
        self._record_submitted(txn.to_dto())
        return txn.to_dto()

    def _active_brand(self, brand_id: UUID) -> BrandSnapshot:
        brand = self._brands.get(brand_id)
        if brand is None:
            raise BrandNotFoundError(brand_id)
        if not brand.is_active:
            raise BrandInactiveError(brand_id)
        return brand

    def _record_submitted(self, txn: Transaction) -> None:
        self._outbox.record(
            txn.user_id,
            NotificationType.TRANSACTION_SUBMITTED,
            {
                "transaction_id": str(txn.id),
                "type": txn.type.value,
                "amount": str(txn.amount),
                "status": txn.status.value,
            },
        )
        self._outbox.record(
            None,
            NotificationType.ADMIN_PENDING_COUNTS,
            {
                "pending_earn": self._queue.count_pending(TransactionType.EARN),
                "pending_redeem": self._queue.count_pending(TransactionType.REDEEM),
            },
        )

