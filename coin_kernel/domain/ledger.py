"""
Coin ledger domain types (``coin_kernel.domain.ledger``).

Responsibility
--------------
Pure value objects for the coin ledger: transaction kinds and statuses,
the per-kind lifecycle state machine, and the frozen DTOs returned by
services and selectors.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/`` or outer layers.

Invariants enforced
-------------------
* Lifecycle: ``TRANSITIONS`` is the only source of legal status changes.
  It is keyed by transaction type so an EARN can never reach PROCESSED
  and a REDEEM can never reach APPROVED.  Terminal states have no
  outgoing edges; there are no backward transitions.
* Sign convention: EARN, REDEEM and WELCOME_BONUS amounts are positive
  magnitudes; ADJUSTMENT amounts are signed and never zero.
* Balance identity: ``balance == total_earned - total_redeemed``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from math import ceil
from typing import Generic, TypeVar
from uuid import UUID


# =========================================================================
# Transaction kinds and lifecycle
# =========================================================================


class TransactionType(str, Enum):
    """What a ledger row does to the user's coins."""

    EARN = "earn"
    REDEEM = "redeem"
    WELCOME_BONUS = "welcome_bonus"
    ADJUSTMENT = "adjustment"


class TransactionStatus(str, Enum):
    """Transaction lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"
    PAID = "paid"


_S = TransactionStatus

TRANSITIONS: dict[TransactionType, dict[TransactionStatus, frozenset[TransactionStatus]]] = {
    TransactionType.EARN: {
        _S.PENDING: frozenset({_S.APPROVED, _S.REJECTED}),
        _S.APPROVED: frozenset(),
        _S.REJECTED: frozenset(),
    },
    TransactionType.REDEEM: {
        _S.PENDING: frozenset({_S.PROCESSED, _S.REJECTED}),
        _S.PROCESSED: frozenset({_S.PAID}),
        _S.REJECTED: frozenset(),
        _S.PAID: frozenset(),
    },
    # Created already APPROVED; no pending step.
    TransactionType.WELCOME_BONUS: {
        _S.APPROVED: frozenset(),
    },
    TransactionType.ADJUSTMENT: {
        _S.APPROVED: frozenset(),
    },
}

INITIAL_STATUS: dict[TransactionType, TransactionStatus] = {
    TransactionType.EARN: _S.PENDING,
    TransactionType.REDEEM: _S.PENDING,
    TransactionType.WELCOME_BONUS: _S.APPROVED,
    TransactionType.ADJUSTMENT: _S.APPROVED,
}

TERMINAL_STATUSES: dict[TransactionType, frozenset[TransactionStatus]] = {
    kind: frozenset(s for s, targets in edges.items() if not targets)
    for kind, edges in TRANSITIONS.items()
}


def can_transition(
    transaction_type: TransactionType,
    from_status: TransactionStatus,
    to_status: TransactionStatus,
) -> bool:
    """True if ``from_status -> to_status`` is legal for this kind."""
    edges = TRANSITIONS[transaction_type]
    return to_status in edges.get(from_status, frozenset())


def is_terminal(
    transaction_type: TransactionType,
    status: TransactionStatus,
) -> bool:
    return status in TERMINAL_STATUSES[transaction_type]


# =========================================================================
# Ledger DTOs
# =========================================================================


@dataclass(frozen=True)
class Balance:
    """Per-user coin balance snapshot."""

    user_id: UUID
    balance: Decimal
    total_earned: Decimal
    total_redeemed: Decimal
    last_updated: datetime

    @property
    def is_consistent(self) -> bool:
        return (
            self.balance == self.total_earned - self.total_redeemed
            and self.balance >= 0
        )


@dataclass(frozen=True)
class BalanceSummary:
    """Balance plus the user's outstanding request counts."""

    user_id: UUID
    balance: Decimal
    total_earned: Decimal
    total_redeemed: Decimal
    pending_earn_count: int
    pending_redeem_count: int
    last_updated: datetime


@dataclass(frozen=True)
class Transaction:
    """Immutable view of one ledger row."""

    id: UUID
    user_id: UUID
    type: TransactionType
    status: TransactionStatus
    amount: Decimal
    created_at: datetime
    brand_id: UUID | None = None
    bill_amount: Decimal | None = None
    bill_date: datetime | None = None
    receipt_ref: str | None = None
    admin_notes: str | None = None
    processed_at: datetime | None = None
    processed_by_id: UUID | None = None
    payment_transaction_id: str | None = None
    payment_processed_at: datetime | None = None

    @property
    def balance_effect(self) -> Decimal:
        """Signed change this row applies to the balance once resolved."""
        if self.type is TransactionType.REDEEM:
            return -self.amount
        return self.amount


T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a paginated query (1-based ``page``)."""

    items: tuple[T, ...]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return ceil(self.total / self.limit)


@dataclass(frozen=True)
class TransactionStats:
    """Admin dashboard aggregates over the whole ledger."""

    pending_earn: int
    pending_redeem: int
    total_earned: Decimal
    total_redeemed: Decimal
    total_balance: Decimal
    total_users: int


@dataclass(frozen=True)
class ValidationResult:
    """Accumulated outcome of the rule checks for one request."""

    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return not self.errors
