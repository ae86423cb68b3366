"""Services for the coin kernel (write side)."""

from coin_kernel.services.approval_service import ApprovalService
from coin_kernel.services.bonus_service import BonusService
from coin_kernel.services.coin_ledger import CoinLedger, LedgerUnit
from coin_kernel.services.ledger_store import LedgerStore
from coin_kernel.services.notification_service import NotificationOutbox
from coin_kernel.services.payment_service import PaymentService
from coin_kernel.services.submission_service import SubmissionService
from coin_kernel.services.validation_service import ValidationService

__all__ = [
    "ApprovalService",
    "BonusService",
    "CoinLedger",
    "LedgerStore",
    "LedgerUnit",
    "NotificationOutbox",
    "PaymentService",
    "SubmissionService",
    "ValidationService",
]
