"""
Pure domain layer.

Immutable value objects, the transaction lifecycle state machine, and
the collaborator interfaces (clock, brand directory, notification
dispatcher).  No dependencies on the ORM or the database.
"""

from coin_kernel.domain.brand import BrandDirectory, BrandSnapshot, InMemoryBrandDirectory
from coin_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from coin_kernel.domain.ledger import (
    INITIAL_STATUS,
    TERMINAL_STATUSES,
    TRANSITIONS,
    Balance,
    BalanceSummary,
    Page,
    Transaction,
    TransactionStats,
    TransactionStatus,
    TransactionType,
    ValidationResult,
    can_transition,
    is_terminal,
)
from coin_kernel.domain.notifications import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    NotificationEvent,
    NotificationType,
    NullNotificationDispatcher,
    RecordingNotificationDispatcher,
)
from coin_kernel.domain.payment import (
    ExchangePolicy,
    PaymentInfo,
    PaymentStats,
    PaymentSummary,
    append_payment_info,
    extract_payment_info,
)
from coin_kernel.domain.policy import LedgerPolicy

__all__ = [
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Brand reference
    "BrandDirectory",
    "BrandSnapshot",
    "InMemoryBrandDirectory",
    # Ledger
    "INITIAL_STATUS",
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "Balance",
    "BalanceSummary",
    "Page",
    "Transaction",
    "TransactionStats",
    "TransactionStatus",
    "TransactionType",
    "ValidationResult",
    "can_transition",
    "is_terminal",
    # Notifications
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
    "NotificationEvent",
    "NotificationType",
    "NullNotificationDispatcher",
    "RecordingNotificationDispatcher",
    # Policy
    "LedgerPolicy",
    # Payment
    "ExchangePolicy",
    "PaymentInfo",
    "PaymentStats",
    "PaymentSummary",
    "append_payment_info",
    "extract_payment_info",
]
