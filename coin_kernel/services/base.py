"""
BaseService -- abstract base for all coin kernel write services.

Responsibility:
    Provides the common constructor and session-handling contract.  All
    concrete services receive a SQLAlchemy ``Session`` that they use via
    ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit.  The caller (``CoinLedger`` or a test harness) owns
    commit/rollback, which is what makes an approval's status change and
    balance mutation one atomic unit.
"""

from abc import ABC

from sqlalchemy.orm import Session

from coin_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read projections -- those belong in
          ``coin_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source.  Defaults to SystemClock.
        """
        self.session = session
        self.clock = clock or SystemClock()
