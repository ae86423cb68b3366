"""
Payment settlement domain types (``coin_kernel.domain.payment``).

Responsibility
--------------
Exchange policy for converting redeemed coins to a payout amount, the
payment metadata block appended to admin notes on settlement, and the
read-side payment DTOs.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* The expected payout is ``coins * rate`` and a settlement is accepted
  only when ``|paid - expected| <= tolerance``.
* Payment metadata is written as a single ``Payment Info: {json}`` block
  and parsed back with the same marker, so notes stay human-readable and
  machine-extractable.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from coin_kernel.domain.ledger import TransactionStatus

PAYMENT_INFO_MARKER = "Payment Info:"
_PAYMENT_INFO_RE = re.compile(r"Payment Info: (\{.*\})")


@dataclass(frozen=True)
class ExchangePolicy:
    """Coin to payout conversion.  1:1 unless configured otherwise."""

    rate: Decimal = Decimal("1")
    tolerance: Decimal = Decimal("0.01")

    def __post_init__(self) -> None:
        if self.rate <= 0:
            raise ValueError(f"Exchange rate must be positive, got {self.rate}")
        if self.tolerance < 0:
            raise ValueError(f"Tolerance must be non-negative, got {self.tolerance}")

    def expected_payout(self, coins: Decimal) -> Decimal:
        return coins * self.rate

    def matches(self, coins: Decimal, paid: Decimal) -> bool:
        return abs(paid - self.expected_payout(coins)) <= self.tolerance


@dataclass(frozen=True)
class PaymentInfo:
    """Payout metadata recorded when a redeem is marked PAID."""

    method: str
    amount: Decimal
    processed_by: UUID
    processed_at: datetime

    def to_json(self) -> str:
        return json.dumps({
            "method": self.method,
            "amount": str(self.amount),
            "processedBy": str(self.processed_by),
            "processedAt": self.processed_at.isoformat(),
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PaymentInfo:
        return cls(
            method=data["method"],
            amount=Decimal(str(data["amount"])),
            processed_by=UUID(data["processedBy"]),
            processed_at=datetime.fromisoformat(data["processedAt"]),
        )


def append_payment_info(notes: str | None, info: PaymentInfo) -> str:
    """Append the payment block to existing admin notes."""
    block = f"{PAYMENT_INFO_MARKER} {info.to_json()}"
    if notes:
        return f"{notes}\n\n{block}"
    return block


def extract_payment_info(notes: str | None) -> PaymentInfo | None:
    """Parse the payment block back out of admin notes.

    Returns None when the notes carry no block or the block is malformed.
    """
    if not notes:
        return None
    match = _PAYMENT_INFO_RE.search(notes)
    if match is None:
        return None
    try:
        return PaymentInfo.from_dict(json.loads(match.group(1)))
    except (ValueError, KeyError, TypeError):
        return None


@dataclass(frozen=True)
class PaymentSummary:
    """Settlement view of one redeem transaction."""

    transaction_id: UUID
    user_id: UUID
    amount: Decimal
    status: TransactionStatus
    payment_transaction_id: str | None
    payment_processed_at: datetime | None
    payment_info: PaymentInfo | None


@dataclass(frozen=True)
class PaymentStats:
    """Aggregates over settled redeems in a time window."""

    total_paid: int
    total_amount: Decimal
    average_amount: Decimal
    payment_methods: dict[str, int]
