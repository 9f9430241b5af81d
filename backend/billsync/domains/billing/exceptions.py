"""Billing domain exceptions."""

from typing import Optional

from billsync.core.exceptions import BillsyncException, InvalidStateError, NotFoundException
from billsync.schemas.billing_event import BillingErrorCode, BillingUpdateResult


class BillingValidationError(BillsyncException):
    """Raised before any store access when a billing request is incomplete."""

    def __init__(
        self, message: str = "Invalid billing update request", fields: Optional[list[str]] = None
    ):
        """Initialize with a message and the offending field names."""
        self.message = message
        self.fields = list(fields or [])
        super().__init__(self.message)


class BillingAccountNotFoundError(NotFoundException):
    """Raised when no billing account exists for an external user id."""

    def __init__(self, message: str = "User not found"):
        """Initialize with default message."""
        super().__init__(message)


class ConcurrencyConflictError(InvalidStateError):
    """Raised when the conditional write still conflicts after its retry."""

    def __init__(self, message: str = "Concurrent update conflict"):
        """Initialize with default message."""
        super().__init__(message)


def raise_for_result(result: BillingUpdateResult) -> None:
    """Raise the domain exception matching a failed result; no-op on success.

    Callers that rely on provider redelivery (the webhook route) use this to turn
    a failed result into a non-2xx response.
    """
    if result.success:
        return
    if result.error_code == BillingErrorCode.NOT_FOUND:
        raise BillingAccountNotFoundError(result.error or "User not found")
    if result.error_code == BillingErrorCode.CONCURRENCY_CONFLICT:
        raise ConcurrencyConflictError(result.error or "Concurrent update conflict")
    raise InvalidStateError(result.error or "Failed to update billing status")
