"""
CoinLedger facade: end-to-end flows through the unit-of-work owner.

Every call commits its own unit of work (released into the test's outer
transaction), dispatches notifications after commit and maps storage
failures to typed errors.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from coin_kernel.domain.ledger import TransactionStatus, TransactionType
from coin_kernel.domain.notifications import NotificationType
from coin_kernel.exceptions import (
    AlreadyGrantedError,
    InvalidStateError,
    OrderingViolationError,
    StorageError,
    TransactionNotFoundError,
    TransientStorageError,
    ValidationFailedError,
)
from coin_kernel.selectors.transaction_selector import TransactionSelector
from coin_kernel.services.coin_ledger import CoinLedger
from coin_kernel.services.validation_service import INSUFFICIENT_BALANCE_MESSAGE


@pytest.fixture
def submit_earn(ledger, brand, user_id, deterministic_clock):
    def _submit(bill=Decimal("1000"), user=None):
        deterministic_clock.advance(10 * 60)
        return ledger.submit_earn(
            user or user_id, brand.id, bill, deterministic_clock.now() - timedelta(days=1),
        )
    return _submit


class TestRoundTrip:

    def test_earn_then_redeem(self, ledger, submit_earn, brand, user_id, admin_id):
        earn = submit_earn(Decimal("1000"))
        assert earn.status is TransactionStatus.PENDING
        assert earn.amount == Decimal("100.00")

        ledger.approve_earn(earn.id, admin_id)
        redeem = ledger.submit_redeem(user_id, brand.id, Decimal("200"), Decimal("40"))
        ledger.approve_redeem(redeem.id, admin_id)

        balance = ledger.get_balance(user_id)
        assert balance.balance == Decimal("60.00")
        assert balance.total_earned == Decimal("100.00")
        assert balance.total_redeemed == Decimal("40.00")
        assert balance.is_consistent

        history = ledger.get_transaction_history(user_id)
        assert history.total == 2
        assert [t.type for t in history.items] == [TransactionType.REDEEM, TransactionType.EARN]


class TestOrderingAndBonusFlows:

    def test_redeem_without_balance_creates_nothing(self, ledger, brand, user_id):
        with pytest.raises(ValidationFailedError) as exc_info:
            ledger.submit_redeem(user_id, brand.id, Decimal("500"), Decimal("50"))

        assert INSUFFICIENT_BALANCE_MESSAGE in exc_info.value.errors
        assert ledger.get_transaction_history(user_id).total == 0

    def _pending_redeem_and_earn(self, ledger, submit_earn, brand, user_id, admin_id):
        ledger.apply_adjustment(user_id, Decimal("500"), "opening balance", admin_id)
        redeem = ledger.submit_redeem(user_id, brand.id, Decimal("500"), Decimal("100"))
        earn = submit_earn(Decimal("800"))
        assert earn.amount == Decimal("80.00")
        return redeem, earn

    def test_pending_earn_blocks_redeem_until_approved(
        self, ledger, submit_earn, brand, user_id, admin_id,
    ):
        redeem, earn = self._pending_redeem_and_earn(
            ledger, submit_earn, brand, user_id, admin_id,
        )

        with pytest.raises(OrderingViolationError):
            ledger.approve_redeem(redeem.id, admin_id)
        assert ledger.get_transaction(redeem.id).status is TransactionStatus.PENDING

        ledger.approve_earn(earn.id, admin_id)
        assert ledger.get_balance(user_id).balance == Decimal("580.00")

        ledger.approve_redeem(redeem.id, admin_id)
        assert ledger.get_balance(user_id).balance == Decimal("480.00")

    def test_pending_earn_blocks_redeem_until_rejected(
        self, ledger, submit_earn, brand, user_id, admin_id,
    ):
        redeem, earn = self._pending_redeem_and_earn(
            ledger, submit_earn, brand, user_id, admin_id,
        )

        ledger.reject_earn(earn.id, admin_id, "receipt unreadable")
        ledger.approve_redeem(redeem.id, admin_id)

        assert ledger.get_balance(user_id).balance == Decimal("400.00")

    def test_welcome_bonus_once(self, ledger, user_id):
        ledger.grant_welcome_bonus(user_id)
        assert ledger.get_balance(user_id).balance == Decimal("100.00")

        with pytest.raises(AlreadyGrantedError):
            ledger.grant_welcome_bonus(user_id)

        assert ledger.get_balance(user_id).balance == Decimal("100.00")
        assert not ledger.check_welcome_bonus_eligibility(user_id)


class TestSettlement:

    def test_full_payment_flow(self, ledger, brand, user_id, admin_id, deterministic_clock):
        ledger.apply_adjustment(user_id, Decimal("500"), "opening balance", admin_id)
        redeem = ledger.submit_redeem(user_id, brand.id, Decimal("500"), Decimal("100"))
        ledger.approve_redeem(redeem.id, admin_id)
        deterministic_clock.advance(3600)

        paid = ledger.process_payment(redeem.id, admin_id, "PAY-1", "upi", Decimal("100"))
        assert paid.status is TransactionStatus.PAID

        summary = ledger.get_payment_summary(redeem.id)
        assert summary.payment_transaction_id == "PAY-1"
        assert summary.payment_info.method == "upi"
        assert summary.payment_info.amount == Decimal("100.00")

        window_start = deterministic_clock.now() - timedelta(minutes=1)
        listed = ledger.get_paid_transactions(start=window_start)
        assert [t.id for t in listed.items] == [redeem.id]

        stats = ledger.get_payment_stats()
        assert stats.total_paid == 1
        assert stats.total_amount == Decimal("100.00")
        assert stats.payment_methods == {"upi": 1}

        ledger_stats = ledger.get_transaction_stats()
        assert ledger_stats.total_redeemed == Decimal("100.00")
        assert ledger_stats.total_balance == Decimal("400.00")

    def test_naive_payment_window(self, ledger, captured_logs):
        listed = ledger.get_paid_transactions(start=datetime(2024, 1, 1))
        stats = ledger.get_payment_stats(start=datetime(2024, 1, 1), end=datetime(2024, 2, 1))

        assert listed.total == 0
        assert stats.total_paid == 0
        assert not any(r["message"] == "storage_error" for r in captured_logs())

    def test_unknown_transaction(self, ledger):
        with pytest.raises(TransactionNotFoundError):
            ledger.get_payment_summary(uuid4())


class TestBalanceQueries:

    def test_get_balance_creates_zero_row(self, ledger, user_id):
        balance = ledger.get_balance(user_id)
        assert balance.balance == Decimal("0.00")
        assert ledger.get_transaction_stats().total_users == 1

    def test_summary_counts_pending(self, ledger, submit_earn, user_id):
        submit_earn()
        submit_earn()

        summary = ledger.get_balance_summary(user_id)

        assert summary.pending_earn_count == 2
        assert summary.pending_redeem_count == 0
        assert summary.balance == Decimal("0.00")

    def test_pending_queue_by_type(self, ledger, submit_earn, brand, admin_id):
        submit_earn(user=uuid4())
        other = uuid4()
        ledger.apply_adjustment(other, Decimal("100"), "goodwill", admin_id)
        ledger.submit_redeem(other, brand.id, Decimal("100"), Decimal("20"))

        assert ledger.get_pending_transactions().total == 2
        redeems = ledger.get_pending_transactions(transaction_type=TransactionType.REDEEM)
        assert [t.user_id for t in redeems.items] == [other]


class TestNotifications:

    def test_dispatched_after_commit(self, ledger, submit_earn, recording_dispatcher, user_id):
        earn = submit_earn()

        submitted = recording_dispatcher.of_type(NotificationType.TRANSACTION_SUBMITTED)
        assert [e.payload["transaction_id"] for e in submitted] == [str(earn.id)]
        (counts,) = recording_dispatcher.of_type(NotificationType.ADMIN_PENDING_COUNTS)
        assert counts.user_id is None
        assert counts.payload["pending_earn"] == 1

    def test_failed_operation_dispatches_nothing(
        self, ledger, submit_earn, recording_dispatcher, admin_id,
    ):
        earn = submit_earn()
        ledger.approve_earn(earn.id, admin_id)
        recording_dispatcher.clear()

        with pytest.raises(InvalidStateError):
            ledger.approve_earn(earn.id, admin_id)

        assert recording_dispatcher.events == []

    def test_dispatcher_failure_does_not_fail_operation(
        self, rollback_session_factory, brands, deterministic_clock, user_id,
    ):
        class Broken:
            def notify(self, user_id, event_type, payload):
                raise RuntimeError("gateway timeout")

        ledger = CoinLedger(
            rollback_session_factory, brands, deterministic_clock, dispatcher=Broken(),
        )

        ledger.grant_welcome_bonus(user_id)

        assert ledger.get_balance(user_id).balance == Decimal("100.00")


class TestStorageFailures:

    @pytest.fixture
    def failing_stats(self, monkeypatch):
        calls = []

        def install(exc_factory, fail_times=None):
            def _stats(self):
                calls.append(1)
                if fail_times is None or len(calls) <= fail_times:
                    raise exc_factory()
                return original(self)

            original = TransactionSelector.get_transaction_stats
            monkeypatch.setattr(TransactionSelector, "get_transaction_stats", _stats)
            return calls

        return install

    @staticmethod
    def _locked():
        return OperationalError("SELECT 1", {}, Exception("database is locked"))

    def test_transient_failure_retried(self, ledger, failing_stats, captured_logs):
        calls = failing_stats(self._locked, fail_times=1)

        stats = ledger.get_transaction_stats()

        assert stats.pending_earn == 0
        assert len(calls) == 2
        assert any(r["message"] == "transient_storage_retry" for r in captured_logs())

    def test_retries_exhausted(
        self, rollback_session_factory, brands, deterministic_clock, failing_stats,
    ):
        ledger = CoinLedger(
            rollback_session_factory, brands, deterministic_clock,
            max_retries=2, retry_backoff_seconds=0,
        )
        calls = failing_stats(self._locked)

        with pytest.raises(TransientStorageError) as exc_info:
            ledger.get_transaction_stats()

        assert len(calls) == 3
        assert exc_info.value.retryable
        assert exc_info.value.operation == "get_transaction_stats"

    def test_other_errors_not_retried(self, ledger, failing_stats):
        calls = failing_stats(lambda: IntegrityError("INSERT", {}, Exception("constraint")))

        with pytest.raises(StorageError) as exc_info:
            ledger.get_transaction_stats()

        assert not isinstance(exc_info.value, TransientStorageError)
        assert len(calls) == 1

    def test_negative_retries_rejected(self, rollback_session_factory, brands):
        with pytest.raises(ValueError):
            CoinLedger(rollback_session_factory, brands, max_retries=-1)


def test_logs_carry_operation_context(ledger, submit_earn, admin_id, captured_logs):
    earn = submit_earn()
    ledger.approve_earn(earn.id, admin_id)

    (record,) = [r for r in captured_logs() if r["message"] == "earn_approved"]
    assert record["operation"] == "approve_earn"
    assert record["transaction_id"] == str(earn.id)
    assert record["actor_id"] == str(admin_id)
