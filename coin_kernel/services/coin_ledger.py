"""
coin_kernel.services.coin_ledger -- Public entry point and unit-of-work owner.

Responsibility:
    Exposes every ledger operation as one method.  Each call opens its own
    session, wires the services for that unit of work, commits on success
    and rolls back on failure.  Notifications recorded during the unit are
    dispatched only after the commit.

Architecture position:
    Kernel > Services -- the top of the kernel.  The only place that
    commits.  Services underneath flush only.

Invariants enforced:
    - One atomic unit per public operation: the precondition check, the
      status change and the balance mutation commit together or not at
      all.
    - Storage failures never leak raw SQLAlchemy exceptions: they surface
      as StorageError, or TransientStorageError once retries of an
      OperationalError (lock timeout, deadlock, lost connection) run out.
      Retrying is safe because every write re-checks status under lock.
    - Notification dispatch failures are logged and never raised.

Usage:
    from coin_config import get_active_config
    from coin_config.bridges import build_coin_ledger
    from coin_kernel.db import get_session_factory

    ledger = build_coin_ledger(get_active_config(), get_session_factory(), brands)
    txn = ledger.submit_earn(user_id, brand_id, Decimal("1000"), bill_date)
    ledger.approve_earn(txn.id, admin_id)
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TypeVar
from uuid import UUID

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from coin_kernel.domain.brand import BrandDirectory
from coin_kernel.domain.clock import Clock, SystemClock
from coin_kernel.domain.ledger import (
    Balance,
    BalanceSummary,
    Page,
    Transaction,
    TransactionStats,
    TransactionType,
)
from coin_kernel.domain.notifications import (
    NotificationDispatcher,
    NullNotificationDispatcher,
)
from coin_kernel.domain.payment import ExchangePolicy, PaymentStats, PaymentSummary
from coin_kernel.domain.policy import LedgerPolicy
from coin_kernel.exceptions import CoinKernelError, StorageError, TransientStorageError
from coin_kernel.logging_config import LogContext, get_logger
from coin_kernel.selectors.balance_selector import BalanceProjector
from coin_kernel.selectors.payment_selector import PaymentSelector
from coin_kernel.selectors.transaction_selector import TransactionSelector
from coin_kernel.services.approval_service import ApprovalService
from coin_kernel.services.bonus_service import BonusService
from coin_kernel.services.ledger_store import LedgerStore
from coin_kernel.services.notification_service import NotificationOutbox
from coin_kernel.services.payment_service import PaymentService
from coin_kernel.services.submission_service import SubmissionService

logger = get_logger("services.coin_ledger")

R = TypeVar("R")


@dataclass
class LedgerUnit:
    """Services bound to one session and one outbox."""

    session: Session
    outbox: NotificationOutbox
    store: LedgerStore
    submission: SubmissionService
    approval: ApprovalService
    payment: PaymentService
    bonus: BonusService
    balances: BalanceProjector
    transactions: TransactionSelector
    payments: PaymentSelector


class CoinLedger:
    """Coin ledger and approval engine."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        brands: BrandDirectory,
        clock: Clock | None = None,
        policy: LedgerPolicy | None = None,
        exchange_policy: ExchangePolicy | None = None,
        dispatcher: NotificationDispatcher | None = None,
        max_retries: int = 3,
        retry_backoff_seconds: float = 0.05,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        self._session_factory = session_factory
        self._brands = brands
        self._clock = clock or SystemClock()
        self.policy = policy or LedgerPolicy()
        self.exchange_policy = exchange_policy or ExchangePolicy()
        self.dispatcher = dispatcher or NullNotificationDispatcher()
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff_seconds

    @property
    def clock(self) -> Clock:
        return self._clock

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def _unit(self, session: Session) -> LedgerUnit:
        outbox = NotificationOutbox()
        return LedgerUnit(
            session=session,
            outbox=outbox,
            store=LedgerStore(session, self._clock),
            submission=SubmissionService(
                session, self._brands, self._clock, self.policy, outbox,
            ),
            approval=ApprovalService(session, self._clock, outbox),
            payment=PaymentService(session, self._clock, self.exchange_policy, outbox),
            bonus=BonusService(session, self._clock, self.policy, outbox),
            balances=BalanceProjector(session),
            transactions=TransactionSelector(session),
            payments=PaymentSelector(session),
        )

    def _run(
        self,
        operation: str,
        fn: Callable[[LedgerUnit], R],
        **log_fields,
    ) -> R:
        """Run ``fn`` in a fresh unit of work, retrying transient failures."""
        with LogContext.bind(operation=operation, **log_fields):
            attempt = 0
            while True:
                with self._session_factory() as session:
                    unit = self._unit(session)
                    try:
                        result = fn(unit)
                        session.commit()
                    except CoinKernelError:
                        session.rollback()
                        unit.outbox.discard()
                        raise
                    except OperationalError as exc:
                        session.rollback()
                        unit.outbox.discard()
                        if attempt >= self._max_retries:
                            logger.error(
                                "transient_storage_retries_exhausted",
                                extra={"attempts": attempt + 1},
                            )
                            raise TransientStorageError(operation, str(exc.orig)) from exc
                        attempt += 1
                        logger.warning(
                            "transient_storage_retry",
                            extra={"attempt": attempt, "error": str(exc.orig)},
                        )
                        time.sleep(self._retry_backoff * attempt)
                        continue
                    except SQLAlchemyError as exc:
                        session.rollback()
                        unit.outbox.discard()
                        logger.error("storage_error", exc_info=True)
                        raise StorageError(operation, str(exc)) from exc

                unit.outbox.dispatch(self.dispatcher)
                return result

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit_earn(
        self,
        user_id: UUID,
        brand_id: UUID,
        bill_amount: Decimal,
        bill_date: datetime,
        receipt_ref: str | None = None,
    ) -> Transaction:
        return self._run(
            "submit_earn",
            lambda u: u.submission.submit_earn(
                user_id, brand_id, bill_amount, bill_date, receipt_ref,
            ),
            user_id=user_id,
        )

    def submit_redeem(
        self,
        user_id: UUID,
        brand_id: UUID,
        bill_amount: Decimal,
        coins_to_redeem: Decimal,
    ) -> Transaction:
        return self._run(
            "submit_redeem",
            lambda u: u.submission.submit_redeem(
                user_id, brand_id, bill_amount, coins_to_redeem,
            ),
            user_id=user_id,
        )

    # ------------------------------------------------------------------
    # Approval
    # ------------------------------------------------------------------

    def approve_earn(
        self,
        transaction_id: UUID,
        approver_id: UUID,
        notes: str | None = None,
    ) -> Transaction:
        return self._run(
            "approve_earn",
            lambda u: u.approval.approve_earn(transaction_id, approver_id, notes),
            transaction_id=transaction_id,
            actor_id=approver_id,
        )

    def reject_earn(
        self,
        transaction_id: UUID,
        approver_id: UUID,
        notes: str | None,
    ) -> Transaction:
        return self._run(
            "reject_earn",
            lambda u: u.approval.reject_earn(transaction_id, approver_id, notes),
            transaction_id=transaction_id,
            actor_id=approver_id,
        )

    def approve_redeem(
        self,
        transaction_id: UUID,
        approver_id: UUID,
        notes: str | None = None,
    ) -> Transaction:
        return self._run(
            "approve_redeem",
            lambda u: u.approval.approve_redeem(transaction_id, approver_id, notes),
            transaction_id=transaction_id,
            actor_id=approver_id,
        )

    def reject_redeem(
        self,
        transaction_id: UUID,
        approver_id: UUID,
        notes: str | None,
    ) -> Transaction:
        return self._run(
            "reject_redeem",
            lambda u: u.approval.reject_redeem(transaction_id, approver_id, notes),
            transaction_id=transaction_id,
            actor_id=approver_id,
        )

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def process_payment(
        self,
        transaction_id: UUID,
        approver_id: UUID,
        payment_reference: str,
        method: str,
        amount: Decimal,
        notes: str | None = None,
    ) -> Transaction:
        return self._run(
            "process_payment",
            lambda u: u.payment.process_payment(
                transaction_id, approver_id, payment_reference, method, amount, notes,
            ),
            transaction_id=transaction_id,
            actor_id=approver_id,
        )

    def get_payment_summary(self, transaction_id: UUID) -> PaymentSummary:
        return self._run(
            "get_payment_summary",
            lambda u: u.payments.get_payment_summary(transaction_id),
            transaction_id=transaction_id,
        )

    def get_paid_transactions(
        self,
        page: int = 1,
        limit: int = 20,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> Page[Transaction]:
        return self._run(
            "get_paid_transactions",
            lambda u: u.payments.get_paid_transactions(page, limit, start, end),
        )

    def get_payment_stats(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> PaymentStats:
        return self._run(
            "get_payment_stats",
            lambda u: u.payments.get_payment_stats(start, end),
        )

    # ------------------------------------------------------------------
    # Balances and queries
    # ------------------------------------------------------------------

    def get_balance(self, user_id: UUID) -> Balance:
        """Current balance; creates a zero balance on first access."""
        return self._run(
            "get_balance",
            lambda u: u.store.ensure_balance(user_id, lock=False).to_dto(),
            user_id=user_id,
        )

    def get_balance_summary(self, user_id: UUID) -> BalanceSummary:
        def _summary(u: LedgerUnit) -> BalanceSummary:
            u.store.ensure_balance(user_id, lock=False)
            return u.balances.get_balance_summary(user_id)

        return self._run("get_balance_summary", _summary, user_id=user_id)

    def get_transaction_history(
        self,
        user_id: UUID,
        page: int = 1,
        limit: int = 20,
    ) -> Page[Transaction]:
        return self._run(
            "get_transaction_history",
            lambda u: u.balances.get_transaction_history(user_id, page, limit),
            user_id=user_id,
        )

    def get_transaction(self, transaction_id: UUID) -> Transaction:
        return self._run(
            "get_transaction",
            lambda u: u.transactions.get_transaction(transaction_id),
            transaction_id=transaction_id,
        )

    def get_pending_transactions(
        self,
        page: int = 1,
        limit: int = 20,
        transaction_type: TransactionType | None = None,
    ) -> Page[Transaction]:
        return self._run(
            "get_pending_transactions",
            lambda u: u.transactions.get_pending_transactions(page, limit, transaction_type),
        )

    def get_transaction_stats(self) -> TransactionStats:
        return self._run(
            "get_transaction_stats",
            lambda u: u.transactions.get_transaction_stats(),
        )

    # ------------------------------------------------------------------
    # Welcome bonus and adjustments
    # ------------------------------------------------------------------

    def check_welcome_bonus_eligibility(self, user_id: UUID) -> bool:
        return self._run(
            "check_welcome_bonus_eligibility",
            lambda u: u.bonus.check_welcome_bonus_eligibility(user_id),
            user_id=user_id,
        )

    def grant_welcome_bonus(
        self,
        user_id: UUID,
        amount: Decimal | None = None,
        approver_id: UUID | None = None,
    ) -> Transaction:
        return self._run(
            "grant_welcome_bonus",
            lambda u: u.bonus.grant_welcome_bonus(user_id, amount, approver_id),
            user_id=user_id,
            actor_id=approver_id,
        )

    def apply_adjustment(
        self,
        user_id: UUID,
        amount: Decimal,
        reason: str,
        approver_id: UUID,
        description: str | None = None,
    ) -> Transaction:
        return self._run(
            "apply_adjustment",
            lambda u: u.bonus.apply_adjustment(
                user_id, amount, reason, approver_id, description,
            ),
            user_id=user_id,
            actor_id=approver_id,
        )
