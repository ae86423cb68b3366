"""LedgerPolicy limits, coin rounding and read-side DTO helpers."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from coin_kernel.db.types import round_coins, to_decimal
from coin_kernel.domain.ledger import (
    Balance,
    Page,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from coin_kernel.domain.policy import LedgerPolicy

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestLedgerPolicy:

    def test_defaults(self):
        policy = LedgerPolicy()
        assert policy.min_bill_amount == Decimal("100")
        assert policy.max_bill_age_days == 30
        assert policy.min_time_between_submissions_minutes == 5
        assert policy.welcome_bonus_amount == Decimal("100")

    @pytest.mark.parametrize("field,value", [
        ("min_bill_amount", Decimal("-1")),
        ("max_bill_age_days", -1),
        ("max_pending_requests", 0),
        ("default_earning_percentage", Decimal("0")),
        ("default_earning_percentage", Decimal("101")),
        ("welcome_bonus_amount", Decimal("0")),
    ])
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValueError):
            LedgerPolicy(**{field: value})


class TestRounding:

    def test_half_up_to_two_places(self):
        assert round_coins(Decimal("33.335")) == Decimal("33.34")
        assert round_coins(Decimal("33.334")) == Decimal("33.33")

    def test_int_and_str_accepted(self):
        assert round_coins(100) == Decimal("100.00")
        assert round_coins("12.5") == Decimal("12.50")

    @pytest.mark.parametrize("value", [0.1, True])
    def test_float_and_bool_rejected(self, value):
        with pytest.raises(TypeError):
            to_decimal(value)


class TestDTOs:

    def test_balance_consistency(self):
        ok = Balance(uuid4(), Decimal("40"), Decimal("100"), Decimal("60"), NOW)
        drifted = Balance(uuid4(), Decimal("50"), Decimal("100"), Decimal("60"), NOW)
        assert ok.is_consistent
        assert not drifted.is_consistent

    def test_redeem_balance_effect_is_negative(self):
        txn = Transaction(
            id=uuid4(),
            user_id=uuid4(),
            type=TransactionType.REDEEM,
            status=TransactionStatus.PENDING,
            amount=Decimal("25.00"),
            created_at=NOW,
        )
        assert txn.balance_effect == Decimal("-25.00")

    @pytest.mark.parametrize("total,limit,pages", [(0, 20, 0), (20, 20, 1), (21, 20, 2)])
    def test_page_count(self, total, limit, pages):
        assert Page(items=(), total=total, page=1, limit=limit).total_pages == pages
