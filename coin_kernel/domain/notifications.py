"""
Notification events (``coin_kernel.domain.notifications``).

Responsibility
--------------
Event types emitted by the ledger and the dispatcher interface that
delivers them.  Delivery is owned by an external collaborator; the kernel
only records events in an outbox during a unit of work and hands them to
the dispatcher after commit.

Architecture position
---------------------
**Kernel domain layer**.  ``LoggingNotificationDispatcher`` is the only
implementation here with a side effect (a log line).
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from coin_kernel.logging_config import get_logger

logger = get_logger("notifications")


class NotificationType(str, Enum):
    TRANSACTION_SUBMITTED = "transaction_submitted"
    TRANSACTION_APPROVED = "transaction_approved"
    TRANSACTION_REJECTED = "transaction_rejected"
    REDEEM_PROCESSED = "redeem_processed"
    PAYMENT_PROCESSED = "payment_processed"
    WELCOME_BONUS_GRANTED = "welcome_bonus_granted"
    ADJUSTMENT_APPLIED = "adjustment_applied"
    BALANCE_UPDATED = "balance_updated"
    ADMIN_PENDING_COUNTS = "admin_pending_counts"


@dataclass(frozen=True)
class NotificationEvent:
    """One fire-and-forget message.

    ``user_id`` is None for admin-channel events.
    """

    user_id: UUID | None
    event_type: NotificationType
    payload: dict[str, Any] = field(default_factory=dict)


class NotificationDispatcher(Protocol):
    """Best-effort delivery.  Return value is ignored; may raise."""

    def notify(
        self,
        user_id: UUID | None,
        event_type: NotificationType,
        payload: dict[str, Any],
    ) -> None: ...


class NullNotificationDispatcher:
    """Drops every event."""

    def notify(self, user_id, event_type, payload) -> None:
        return None


class LoggingNotificationDispatcher:
    """Writes each event to the structured log instead of delivering it."""

    def notify(self, user_id, event_type, payload) -> None:
        logger.info(
            "notification_emitted",
            extra={
                "notify_user_id": user_id,
                "event_type": event_type,
                "payload": payload,
            },
        )


class RecordingNotificationDispatcher:
    """Keeps delivered events in memory.  Thread-safe."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[NotificationEvent] = []

    def notify(self, user_id, event_type, payload) -> None:
        with self._lock:
            self._events.append(NotificationEvent(user_id, event_type, dict(payload)))

    @property
    def events(self) -> list[NotificationEvent]:
        with self._lock:
            return list(self._events)

    def of_type(self, event_type: NotificationType) -> list[NotificationEvent]:
        return [e for e in self.events if e.event_type is event_type]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
