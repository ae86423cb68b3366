"""
Typed Exception Hierarchy for the Coin Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the API layer, admin tooling, tests) must be able to react to a
failure without parsing message strings.  Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA attributes (ids, amounts, statuses)

Example - WRONG way to handle errors:
    try:
        ledger.approve_redeem(txn_id, admin_id)
    except Exception as e:
        if "pending earn" in str(e):  # FRAGILE - message might change
            retry_later()

Example - RIGHT way:
    try:
        ledger.approve_redeem(txn_id, admin_id)
    except OrderingViolationError as e:
        api_response(code=e.code, pending=e.pending_earn_count)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CoinKernelError (base)
    |
    +-- ValidationFailedError
    |   +-- MissingRejectionNotesError
    |   +-- InvalidPaymentDetailsError
    |
    +-- InvalidAmountError
    |
    +-- TransactionStateError
    |   +-- InvalidStateError
    |   +-- OrderingViolationError
    |
    +-- BalanceError
    |   +-- InsufficientBalanceError
    |
    +-- PaymentError
    |   +-- AmountMismatchError
    |   +-- DuplicatePaymentReferenceError
    |
    +-- AlreadyGrantedError
    |
    +-- NotFoundError
    |   +-- TransactionNotFoundError
    |   +-- BrandNotFoundError
    |
    +-- BrandInactiveError
    |
    +-- StorageError
        +-- TransientStorageError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | Retryable
----------------|-------------------------------|---------------------------
Validation      | VALIDATION_FAILED             | no (fix the request)
                | REJECTION_NOTES_REQUIRED      | no
                | INVALID_PAYMENT_DETAILS       | no
                | INVALID_AMOUNT                | no
----------------|-------------------------------|---------------------------
State           | INVALID_STATE                 | no (same arguments)
                | ORDERING_VIOLATION            | later, after earns resolve
----------------|-------------------------------|---------------------------
Balance         | INSUFFICIENT_BALANCE          | only if balance changes
----------------|-------------------------------|---------------------------
Payment         | AMOUNT_MISMATCH               | no (correct the amount)
                | DUPLICATE_PAYMENT_REFERENCE   | no (new reference)
----------------|-------------------------------|---------------------------
Bonus           | WELCOME_BONUS_ALREADY_GRANTED | no
----------------|-------------------------------|---------------------------
Lookup          | TRANSACTION_NOT_FOUND         | no
                | BRAND_NOT_FOUND               | no
                | BRAND_INACTIVE                | no
----------------|-------------------------------|---------------------------
Storage         | STORAGE_ERROR                 | no
                | STORAGE_TRANSIENT             | yes
"""

from decimal import Decimal
from typing import Iterable
from uuid import UUID


class CoinKernelError(Exception):
    """Base exception for all coin kernel errors."""

    code: str = "COIN_KERNEL_ERROR"


# Validation exceptions


class ValidationFailedError(CoinKernelError):
    """One or more request rules were violated.

    All violations are collected; ``errors`` holds every message so the
    caller can surface them at once.
    """

    code: str = "VALIDATION_FAILED"

    def __init__(
        self,
        errors: Iterable[str],
        warnings: Iterable[str] = (),
    ):
        self.errors = tuple(errors)
        self.warnings = tuple(warnings)
        super().__init__("Validation failed: " + "; ".join(self.errors))


class MissingRejectionNotesError(ValidationFailedError):
    """Rejecting a transaction requires an explanation."""

    code: str = "REJECTION_NOTES_REQUIRED"

    def __init__(self, transaction_id: UUID):
        self.transaction_id = transaction_id
        super().__init__(["Admin notes are required for rejection"])


class InvalidPaymentDetailsError(ValidationFailedError):
    """Payment reference, method or amount is missing or malformed."""

    code: str = "INVALID_PAYMENT_DETAILS"


class InvalidAmountError(CoinKernelError):
    """Amount is zero or has the wrong sign for the operation."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: Decimal, reason: str = "amount must be non-zero"):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount}: {reason}")


# Transaction state exceptions


class TransactionStateError(CoinKernelError):
    """Base exception for transaction lifecycle violations."""

    code: str = "TRANSACTION_STATE_ERROR"


class InvalidStateError(TransactionStateError):
    """Operation attempted on a transaction not in the required state."""

    code: str = "INVALID_STATE"

    def __init__(
        self,
        transaction_id: UUID,
        status: str,
        expected: str,
        transaction_type: str | None = None,
    ):
        self.transaction_id = transaction_id
        self.status = status
        self.expected = expected
        self.transaction_type = transaction_type
        kind = f"{transaction_type} " if transaction_type else ""
        super().__init__(
            f"Transaction {transaction_id} is {kind}{status}, expected {expected}"
        )


class OrderingViolationError(TransactionStateError):
    """Redeem approval blocked by the user's unresolved earn requests."""

    code: str = "ORDERING_VIOLATION"

    def __init__(
        self,
        transaction_id: UUID,
        user_id: UUID,
        pending_earn_count: int,
    ):
        self.transaction_id = transaction_id
        self.user_id = user_id
        self.pending_earn_count = pending_earn_count
        super().__init__(
            f"Redeem {transaction_id} cannot be processed: user {user_id} "
            f"has {pending_earn_count} pending earn request(s)"
        )


# Balance exceptions


class BalanceError(CoinKernelError):
    """Base exception for balance errors."""

    code: str = "BALANCE_ERROR"


class InsufficientBalanceError(BalanceError):
    """Debit exceeds the user's available balance."""

    code: str = "INSUFFICIENT_BALANCE"

    def __init__(self, user_id: UUID, requested: Decimal, available: Decimal):
        self.user_id = user_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient coin balance for user {user_id}: "
            f"requested {requested}, available {available}"
        )


# Payment exceptions


class PaymentError(CoinKernelError):
    """Base exception for payment settlement errors."""

    code: str = "PAYMENT_ERROR"


class AmountMismatchError(PaymentError):
    """Paid amount differs from the expected payout."""

    code: str = "AMOUNT_MISMATCH"

    def __init__(
        self,
        transaction_id: UUID,
        expected: Decimal,
        received: Decimal,
        tolerance: Decimal,
    ):
        self.transaction_id = transaction_id
        self.expected = expected
        self.received = received
        self.tolerance = tolerance
        super().__init__(
            f"Payment amount mismatch for {transaction_id}: "
            f"expected {expected}, received {received}"
        )


class DuplicatePaymentReferenceError(PaymentError):
    """Payment reference already recorded on another transaction."""

    code: str = "DUPLICATE_PAYMENT_REFERENCE"

    def __init__(self, payment_reference: str):
        self.payment_reference = payment_reference
        super().__init__(
            f"Payment transaction ID {payment_reference} already exists"
        )


# Bonus exceptions


class AlreadyGrantedError(CoinKernelError):
    """Welcome bonus was already issued to this user."""

    code: str = "WELCOME_BONUS_ALREADY_GRANTED"

    def __init__(self, user_id: UUID):
        self.user_id = user_id
        super().__init__(f"User {user_id} already received welcome bonus")


# Lookup exceptions


class NotFoundError(CoinKernelError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class TransactionNotFoundError(NotFoundError):
    """Transaction id does not exist."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: UUID):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class BrandNotFoundError(NotFoundError):
    """Brand id is unknown to the brand directory."""

    code: str = "BRAND_NOT_FOUND"

    def __init__(self, brand_id: UUID):
        self.brand_id = brand_id
        super().__init__(f"Brand not found: {brand_id}")


class BrandInactiveError(CoinKernelError):
    """Brand exists but is not accepting submissions."""

    code: str = "BRAND_INACTIVE"

    def __init__(self, brand_id: UUID):
        self.brand_id = brand_id
        super().__init__(f"Brand is not active: {brand_id}")


# Storage exceptions


class StorageError(CoinKernelError):
    """Ledger store failure; the unit of work was rolled back."""

    code: str = "STORAGE_ERROR"
    retryable: bool = False

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage failure during {operation}: {detail}")


class TransientStorageError(StorageError):
    """Lock timeout, deadlock or lost connection. Safe to retry."""

    code: str = "STORAGE_TRANSIENT"
    retryable: bool = True
