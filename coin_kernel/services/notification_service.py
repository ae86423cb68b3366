"""
NotificationOutbox -- post-commit delivery of ledger events.

Responsibility:
    Collects ``NotificationEvent`` objects while a unit of work runs and
    hands them to a ``NotificationDispatcher`` only after the unit has
    committed.  A rolled-back unit discards its events.

Architecture position:
    Kernel > Services.  Owned per unit of work by ``CoinLedger``.

Invariants enforced:
    - Nothing is delivered for work that did not commit.
    - Delivery failures never propagate: each failure is logged
      (``notification_dispatch_failed``) and the remaining events are
      still attempted.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from coin_kernel.domain.notifications import (
    NotificationDispatcher,
    NotificationEvent,
    NotificationType,
)
from coin_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


class NotificationOutbox:
    """In-memory outbox for one unit of work."""

    def __init__(self) -> None:
        self._events: list[NotificationEvent] = []

    def record(
        self,
        user_id: UUID | None,
        event_type: NotificationType,
        payload: dict[str, Any] | None = None,
    ) -> None:
        self._events.append(NotificationEvent(user_id, event_type, payload or {}))

    @property
    def pending(self) -> tuple[NotificationEvent, ...]:
        return tuple(self._events)

    def discard(self) -> None:
        if self._events:
            logger.debug("notifications_discarded", extra={"count": len(self._events)})
        self._events.clear()

    def dispatch(self, dispatcher: NotificationDispatcher) -> int:
        """
        Deliver every recorded event, then empty the outbox.

        Returns:
            Number of events delivered without error.
        """
        events, self._events = self._events, []
        delivered = 0
        for event in events:
            try:
                dispatcher.notify(event.user_id, event.event_type, event.payload)
                delivered += 1
            except Exception:
                logger.warning(
                    "notification_dispatch_failed",
                    extra={
                        "notify_user_id": event.user_id,
                        "event_type": event.event_type,
                    },
                    exc_info=True,
                )
        return delivered
