"""SubmissionService: validated earn/redeem requests become PENDING rows."""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from coin_kernel.domain.brand import BrandSnapshot
from coin_kernel.domain.ledger import TransactionStatus, TransactionType
from coin_kernel.domain.notifications import NotificationType
from coin_kernel.exceptions import (
    BrandInactiveError,
    BrandNotFoundError,
    ValidationFailedError,
)
from coin_kernel.models.transaction import CoinTransaction
from coin_kernel.services.ledger_store import LedgerStore
from coin_kernel.services.submission_service import SubmissionService


@pytest.fixture
def submission(session, brands, deterministic_clock, outbox):
    return SubmissionService(session, brands, deterministic_clock, outbox=outbox)


@pytest.fixture
def store(session, deterministic_clock):
    return LedgerStore(session, deterministic_clock)


def _count_transactions(session, user_id) -> int:
    return session.execute(
        select(func.count()).select_from(CoinTransaction)
        .where(CoinTransaction.user_id == user_id)
    ).scalar_one()


class TestSubmitEarn:

    def test_coins_from_brand_percentage(self, submission, user_id, brand, deterministic_clock):
        txn = submission.submit_earn(
            user_id, brand.id, Decimal("1000"), deterministic_clock.now() - timedelta(days=1),
            receipt_ref="s3://receipts/1.jpg",
        )
        assert txn.type is TransactionType.EARN
        assert txn.status is TransactionStatus.PENDING
        assert txn.amount == Decimal("100.00")
        assert txn.bill_amount == Decimal("1000.00")
        assert txn.receipt_ref == "s3://receipts/1.jpg"
        assert txn.processed_at is None

    def test_default_percentage_when_brand_has_none(
        self, submission, user_id, default_rate_brand, deterministic_clock,
    ):
        txn = submission.submit_earn(
            user_id, default_rate_brand.id, Decimal("1000"), deterministic_clock.now(),
        )
        assert txn.amount == Decimal("300.00")

    def test_zero_percentage_brand_is_not_defaulted(
        self, submission, brands, user_id, deterministic_clock,
    ):
        no_reward = BrandSnapshot(
            id=uuid4(),
            is_active=True,
            earning_percentage=Decimal("0"),
            min_redemption_amount=Decimal("10"),
            max_redemption_amount=Decimal("1000"),
            name="No Rewards Outlet",
        )
        brands.add(no_reward)

        with pytest.raises(ValidationFailedError) as exc_info:
            submission.submit_earn(
                user_id, no_reward.id, Decimal("1000"), deterministic_clock.now(),
            )

        assert exc_info.value.errors == ("Calculated coin amount must be greater than 0",)

    def test_amount_rounded_half_up(self, submission, user_id, brand, deterministic_clock):
        txn = submission.submit_earn(
            user_id, brand.id, Decimal("333.35"), deterministic_clock.now(),
        )
        # 33.335 -> 33.34
        assert txn.amount == Decimal("33.34")

    def test_balance_untouched_until_approval(
        self, submission, store, user_id, brand, deterministic_clock,
    ):
        submission.submit_earn(user_id, brand.id, Decimal("1000"), deterministic_clock.now())
        assert store.find_balance(user_id).balance == Decimal("0.00")

    def test_unknown_brand(self, submission, user_id, deterministic_clock):
        with pytest.raises(BrandNotFoundError):
            submission.submit_earn(user_id, uuid4(), Decimal("1000"), deterministic_clock.now())

    def test_inactive_brand(self, submission, user_id, inactive_brand, deterministic_clock):
        with pytest.raises(BrandInactiveError):
            submission.submit_earn(
                user_id, inactive_brand.id, Decimal("1000"), deterministic_clock.now(),
            )

    def test_invalid_request_is_not_persisted(
        self, submission, session, user_id, brand, deterministic_clock,
    ):
        with pytest.raises(ValidationFailedError) as exc_info:
            submission.submit_earn(user_id, brand.id, Decimal("10"), deterministic_clock.now())

        assert exc_info.value.errors == ("Bill amount must be at least 100",)
        assert _count_transactions(session, user_id) == 0

    def test_records_user_and_admin_notifications(
        self, submission, outbox, user_id, brand, deterministic_clock,
    ):
        txn = submission.submit_earn(user_id, brand.id, Decimal("1000"), deterministic_clock.now())

        submitted, admin = outbox.pending
        assert submitted.event_type is NotificationType.TRANSACTION_SUBMITTED
        assert submitted.user_id == user_id
        assert submitted.payload["transaction_id"] == str(txn.id)
        assert admin.event_type is NotificationType.ADMIN_PENDING_COUNTS
        assert admin.user_id is None
        assert admin.payload["pending_earn"] >= 1


class TestSubmitRedeem:

    def test_creates_pending_redeem_without_debit(self, submission, store, user_id, brand):
        store.credit(user_id, Decimal("500"))

        txn = submission.submit_redeem(user_id, brand.id, Decimal("500"), Decimal("100"))

        assert txn.type is TransactionType.REDEEM
        assert txn.status is TransactionStatus.PENDING
        assert txn.amount == Decimal("100.00")
        assert store.find_balance(user_id).balance == Decimal("500.00")

    def test_insufficient_balance_creates_nothing(self, submission, session, user_id, brand):
        with pytest.raises(ValidationFailedError) as exc_info:
            submission.submit_redeem(user_id, brand.id, Decimal("500"), Decimal("50"))

        assert "Insufficient coin balance" in exc_info.value.errors
        assert _count_transactions(session, user_id) == 0

    def test_inactive_brand(self, submission, store, user_id, inactive_brand):
        store.credit(user_id, Decimal("500"))
        with pytest.raises(BrandInactiveError):
            submission.submit_redeem(user_id, inactive_brand.id, Decimal("500"), Decimal("100"))
