"""
ValidationService -- rule checks for proposed earn and redeem requests.

Responsibility:
    Evaluates every rule for a request and returns all violations at once.
    Reads the ledger (balances, pending requests) and the ledger policy;
    writes nothing.

Architecture position:
    Kernel > Services.  Called by SubmissionService inside its unit of
    work, after the user's balance row is locked, so the counts it reads
    cannot change before the request is persisted.

Invariants enforced:
    - Checks never short-circuit; each rule appends to the error list.
    - Redeem ordering precondition: no PENDING earn for the user.  It is
      checked again at approval time by ApprovalService.

Failure modes:
    None raised.  Callers turn a non-empty ``errors`` into
    ``ValidationFailedError``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from coin_kernel.db.types import ZERO
from coin_kernel.domain.brand import BrandSnapshot
from coin_kernel.domain.clock import Clock, as_utc
from coin_kernel.domain.ledger import (
    TransactionStatus,
    TransactionType,
    ValidationResult,
)
from coin_kernel.domain.policy import LedgerPolicy
from coin_kernel.logging_config import get_logger
from coin_kernel.services.base import BaseService
from coin_kernel.services.ledger_store import LedgerStore

logger = get_logger("services.validation")

PENDING_EARN_MESSAGE = (
    "You have pending earn requests. "
    "Please wait for them to be processed before redeeming"
)
INSUFFICIENT_BALANCE_MESSAGE = "Insufficient coin balance"


def _fmt(value: Decimal) -> str:
    """Render 100.00 as 100 and 99.50 as 99.5 in messages."""
    return format(value.normalize(), "f")


class ValidationService(BaseService):
    """Stateless earn/redeem request validation."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: LedgerPolicy | None = None,
        store: LedgerStore | None = None,
    ):
        super().__init__(session, clock)
        self.policy = policy or LedgerPolicy()
        self._store = store or LedgerStore(session, self.clock)

    def validate_earn(
        self,
        user_id: UUID,
        brand_id: UUID,
        bill_amount: Decimal,
        bill_date: datetime,
    ) -> ValidationResult:
        policy = self.policy
        now = self.clock.now()
        errors: list[str] = []

        if bill_amount < policy.min_bill_amount:
            errors.append(f"Bill amount must be at least {_fmt(policy.min_bill_amount)}")

        bill_date = as_utc(bill_date)
        if bill_date > now:
            errors.append("Bill date cannot be in the future")

        # Whole days, floored
        bill_age_days = (now - bill_date).days
        if bill_age_days > policy.max_bill_age_days:
            errors.append(
                f"Bill is too old. Maximum age allowed is {policy.max_bill_age_days} days"
            )

        recent = self._store.latest_transaction(
            user_id, brand_id, TransactionType.EARN, TransactionStatus.PENDING,
        )
        if recent is not None:
            minutes_since = int((now - recent.created_at).total_seconds() // 60)
            cooldown = policy.min_time_between_submissions_minutes
            if minutes_since < cooldown:
                errors.append(
                    f"Please wait {cooldown - minutes_since} minutes "
                    "before submitting another request"
                )

        pending = self._store.count_transactions(user_id, TransactionStatus.PENDING)
        if pending >= policy.max_pending_requests:
            errors.append(
                f"You have reached the maximum of {policy.max_pending_requests} "
                "pending requests"
            )

        result = ValidationResult(errors=tuple(errors))
        self._log_result("earn", user_id, result)
        return result

    def validate_redeem(
        self,
        user_id: UUID,
        bill_amount: Decimal,
        coins_to_redeem: Decimal,
        brand: BrandSnapshot | None = None,
    ) -> ValidationResult:
        policy = self.policy
        errors: list[str] = []

        if coins_to_redeem <= 0:
            errors.append("Redemption amount must be greater than 0")

        row = self._store.find_balance(user_id)
        balance = row.balance if row is not None else ZERO
        if balance < coins_to_redeem:
            errors.append(INSUFFICIENT_BALANCE_MESSAGE)
        if balance < policy.min_balance_for_redemption:
            errors.append(
                f"A minimum balance of {_fmt(policy.min_balance_for_redemption)} "
                "coins is required to redeem"
            )

        pending_earns = self._store.count_transactions(
            user_id, TransactionStatus.PENDING, TransactionType.EARN,
        )
        if pending_earns > 0:
            errors.append(PENDING_EARN_MESSAGE)

        if bill_amount < policy.min_bill_amount:
            errors.append(f"Bill amount must be at least {_fmt(policy.min_bill_amount)}")

        if brand is not None and not (
            brand.min_redemption_amount <= coins_to_redeem <= brand.max_redemption_amount
        ):
            errors.append(
                f"Redemption amount must be between {_fmt(brand.min_redemption_amount)} "
                f"and {_fmt(brand.max_redemption_amount)} coins"
            )

        result = ValidationResult(errors=tuple(errors))
        self._log_result("redeem", user_id, result)
        return result

    def _log_result(self, kind: str, user_id: UUID, result: ValidationResult) -> None:
        if result.is_valid:
            logger.debug("request_validated", extra={"kind": kind})
        else:
            logger.info(
                "request_validation_failed",
                extra={
                    "kind": kind,
                    "request_user_id": str(user_id),
                    "errors": list(result.errors),
                },
            )
