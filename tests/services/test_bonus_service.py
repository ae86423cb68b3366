"""Welcome bonus (at most once per user) and admin adjustments."""

from decimal import Decimal
from uuid import uuid4

import pytest

from coin_kernel.domain.ledger import TransactionStatus, TransactionType
from coin_kernel.domain.notifications import NotificationType
from coin_kernel.domain.policy import LedgerPolicy
from coin_kernel.exceptions import (
    AlreadyGrantedError,
    InsufficientBalanceError,
    InvalidAmountError,
    ValidationFailedError,
)
from coin_kernel.services.bonus_service import BonusService
from coin_kernel.services.ledger_store import LedgerStore


@pytest.fixture
def store(session, deterministic_clock):
    return LedgerStore(session, deterministic_clock)


@pytest.fixture
def bonus(session, deterministic_clock, outbox):
    return BonusService(session, deterministic_clock, LedgerPolicy(), outbox)


class TestWelcomeBonus:

    def test_grants_configured_amount(self, bonus, store, user_id):
        txn = bonus.grant_welcome_bonus(user_id)

        assert txn.type is TransactionType.WELCOME_BONUS
        assert txn.status is TransactionStatus.APPROVED
        assert txn.amount == Decimal("100.00")
        assert txn.processed_at is not None
        assert store.find_balance(user_id).balance == Decimal("100.00")

    def test_second_grant_fails_balance_unchanged(self, bonus, store, user_id):
        bonus.grant_welcome_bonus(user_id)

        with pytest.raises(AlreadyGrantedError):
            bonus.grant_welcome_bonus(user_id)

        assert store.find_balance(user_id).balance == Decimal("100.00")

    def test_eligibility(self, bonus, user_id):
        assert bonus.check_welcome_bonus_eligibility(user_id)
        bonus.grant_welcome_bonus(user_id)
        assert not bonus.check_welcome_bonus_eligibility(user_id)

    def test_explicit_amount(self, bonus, store, user_id):
        bonus.grant_welcome_bonus(user_id, Decimal("250"))
        assert store.find_balance(user_id).total_earned == Decimal("250.00")

    def test_policy_amount(self, session, deterministic_clock, store, user_id):
        service = BonusService(
            session, deterministic_clock, LedgerPolicy(welcome_bonus_amount=Decimal("25")),
        )
        service.grant_welcome_bonus(user_id)
        assert store.find_balance(user_id).balance == Decimal("25.00")

    def test_records_events(self, bonus, outbox, user_id):
        bonus.grant_welcome_bonus(user_id)
        kinds = [e.event_type for e in outbox.pending]
        assert kinds == [NotificationType.WELCOME_BONUS_GRANTED, NotificationType.BALANCE_UPDATED]


class TestAdjustment:

    def test_positive_adjustment_credits(self, bonus, store, user_id, admin_id):
        txn = bonus.apply_adjustment(user_id, Decimal("50"), "support goodwill", admin_id)

        assert txn.type is TransactionType.ADJUSTMENT
        assert txn.status is TransactionStatus.APPROVED
        assert txn.amount == Decimal("50.00")
        assert txn.processed_by_id == admin_id
        balance = store.find_balance(user_id)
        assert balance.total_earned == Decimal("50.00")
        assert balance.balance == Decimal("50.00")

    def test_negative_adjustment_debits(self, bonus, store, user_id, admin_id):
        store.credit(user_id, Decimal("100"))

        txn = bonus.apply_adjustment(user_id, Decimal("-30"), "duplicate credit", admin_id)

        assert txn.amount == Decimal("-30.00")
        balance = store.find_balance(user_id)
        assert balance.balance == Decimal("70.00")
        assert balance.total_redeemed == Decimal("30.00")

    def test_negative_adjustment_capped_at_balance(
        self, bonus, store, user_id, admin_id, captured_logs,
    ):
        store.credit(user_id, Decimal("100"))

        txn = bonus.apply_adjustment(user_id, Decimal("-150"), "fraud reversal", admin_id)

        assert txn.amount == Decimal("-100.00")
        assert "Requested adjustment: -150.00" in txn.admin_notes
        balance = store.find_balance(user_id)
        assert balance.balance == Decimal("0.00")
        assert balance.balance == balance.total_earned - balance.total_redeemed
        assert any(r["message"] == "adjustment_debit_capped" for r in captured_logs())

    def test_negative_adjustment_on_empty_balance(self, bonus, user_id, admin_id):
        with pytest.raises(InsufficientBalanceError):
            bonus.apply_adjustment(user_id, Decimal("-10"), "correction", admin_id)

    def test_zero_amount(self, bonus, user_id, admin_id):
        with pytest.raises(InvalidAmountError):
            bonus.apply_adjustment(user_id, Decimal("0"), "noop", admin_id)

    @pytest.mark.parametrize("reason", ["", "   "])
    def test_reason_required(self, bonus, user_id, admin_id, reason):
        with pytest.raises(ValidationFailedError):
            bonus.apply_adjustment(user_id, Decimal("10"), reason, admin_id)

    def test_description_kept_in_notes(self, bonus, user_id, admin_id):
        txn = bonus.apply_adjustment(
            uuid4(), Decimal("10"), "goodwill", admin_id, description="ticket 4411",
        )
        assert txn.admin_notes == "goodwill\n\nticket 4411"
