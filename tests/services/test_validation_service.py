"""
ValidationService rules for earn and redeem requests.

All violations are collected; nothing is written.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from coin_kernel.domain.ledger import TransactionType
from coin_kernel.domain.policy import LedgerPolicy
from coin_kernel.services.ledger_store import LedgerStore
from coin_kernel.services.validation_service import (
    INSUFFICIENT_BALANCE_MESSAGE,
    PENDING_EARN_MESSAGE,
    ValidationService,
)


@pytest.fixture
def store(session, deterministic_clock):
    return LedgerStore(session, deterministic_clock)


@pytest.fixture
def validator(session, deterministic_clock, store):
    return ValidationService(session, deterministic_clock, LedgerPolicy(), store)


def _pending_earn(store, user_id, brand_id, amount=Decimal("10")):
    return store.append_transaction(
        user_id=user_id,
        transaction_type=TransactionType.EARN,
        amount=amount,
        brand_id=brand_id,
        bill_amount=amount * 10,
    )


class TestValidateEarn:

    def test_valid_request(self, validator, user_id, brand, deterministic_clock):
        result = validator.validate_earn(
            user_id, brand.id, Decimal("1000"), deterministic_clock.now() - timedelta(days=1),
        )
        assert result.is_valid
        assert result.errors == ()

    def test_bill_below_minimum(self, validator, user_id, brand, deterministic_clock):
        result = validator.validate_earn(
            user_id, brand.id, Decimal("99.99"), deterministic_clock.now(),
        )
        assert result.errors == ("Bill amount must be at least 100",)

    def test_future_bill_date(self, validator, user_id, brand, deterministic_clock):
        result = validator.validate_earn(
            user_id, brand.id, Decimal("500"), deterministic_clock.now() + timedelta(hours=1),
        )
        assert "Bill date cannot be in the future" in result.errors

    def test_bill_too_old(self, validator, user_id, brand, deterministic_clock):
        result = validator.validate_earn(
            user_id, brand.id, Decimal("500"), deterministic_clock.now() - timedelta(days=31),
        )
        assert result.errors == ("Bill is too old. Maximum age allowed is 30 days",)

    def test_bill_age_counts_whole_days(self, validator, user_id, brand, deterministic_clock):
        # 30 days 23 hours is still 30 whole days
        bill_date = deterministic_clock.now() - timedelta(days=30, hours=23)
        result = validator.validate_earn(user_id, brand.id, Decimal("500"), bill_date)
        assert result.is_valid

    def test_naive_bill_date_treated_as_utc(self, validator, user_id, brand, deterministic_clock):
        naive = (deterministic_clock.now() - timedelta(days=2)).replace(tzinfo=None)
        assert isinstance(naive, datetime)
        result = validator.validate_earn(user_id, brand.id, Decimal("500"), naive)
        assert result.is_valid

    def test_cooldown_per_brand(self, validator, store, user_id, brand, deterministic_clock):
        _pending_earn(store, user_id, brand.id)
        deterministic_clock.advance(2 * 60)

        result = validator.validate_earn(
            user_id, brand.id, Decimal("500"), deterministic_clock.now(),
        )
        assert result.errors == ("Please wait 3 minutes before submitting another request",)

        other_brand = validator.validate_earn(
            user_id, uuid4(), Decimal("500"), deterministic_clock.now(),
        )
        assert other_brand.is_valid

    def test_cooldown_expires(self, validator, store, user_id, brand, deterministic_clock):
        _pending_earn(store, user_id, brand.id)
        deterministic_clock.advance(5 * 60)

        result = validator.validate_earn(
            user_id, brand.id, Decimal("500"), deterministic_clock.now(),
        )
        assert result.is_valid

    def test_max_pending_requests(self, validator, store, user_id, brand, deterministic_clock):
        for _ in range(5):
            _pending_earn(store, user_id, uuid4())

        result = validator.validate_earn(
            user_id, brand.id, Decimal("500"), deterministic_clock.now(),
        )
        assert result.errors == ("You have reached the maximum of 5 pending requests",)

    def test_errors_accumulate(self, validator, user_id, brand, deterministic_clock):
        result = validator.validate_earn(
            user_id, brand.id, Decimal("50"), deterministic_clock.now() + timedelta(days=1),
        )
        assert len(result.errors) == 2


class TestValidateRedeem:

    def test_valid_request(self, validator, store, user_id, brand):
        store.credit(user_id, Decimal("500"))
        result = validator.validate_redeem(user_id, Decimal("500"), Decimal("100"), brand)
        assert result.is_valid

    def test_zero_balance(self, validator, user_id, brand):
        result = validator.validate_redeem(user_id, Decimal("500"), Decimal("50"), brand)
        assert INSUFFICIENT_BALANCE_MESSAGE in result.errors
        assert "A minimum balance of 10 coins is required to redeem" in result.errors

    def test_more_than_balance(self, validator, store, user_id, brand):
        store.credit(user_id, Decimal("40"))
        result = validator.validate_redeem(user_id, Decimal("500"), Decimal("50"), brand)
        assert result.errors == (INSUFFICIENT_BALANCE_MESSAGE,)

    def test_pending_earn_blocks_redeem(self, validator, store, user_id, brand):
        store.credit(user_id, Decimal("500"))
        _pending_earn(store, user_id, brand.id)

        result = validator.validate_redeem(user_id, Decimal("500"), Decimal("100"), brand)
        assert result.errors == (PENDING_EARN_MESSAGE,)

    def test_non_positive_coins(self, validator, store, user_id):
        store.credit(user_id, Decimal("500"))
        result = validator.validate_redeem(user_id, Decimal("500"), Decimal("0"))
        assert result.errors == ("Redemption amount must be greater than 0",)

    def test_bill_below_minimum(self, validator, store, user_id, brand):
        store.credit(user_id, Decimal("500"))
        result = validator.validate_redeem(user_id, Decimal("20"), Decimal("100"), brand)
        assert result.errors == ("Bill amount must be at least 100",)

    @pytest.mark.parametrize("coins", [Decimal("5"), Decimal("1001")])
    def test_brand_redemption_range(self, validator, store, user_id, brand, coins):
        store.credit(user_id, Decimal("5000"))
        result = validator.validate_redeem(user_id, Decimal("500"), coins, brand)
        assert result.errors == ("Redemption amount must be between 10 and 1000 coins",)
