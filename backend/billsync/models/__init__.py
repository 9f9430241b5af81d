"""Models for the application."""

from ._base import Base
from .billing_account import BillingAccount
from .billing_audit_log import BillingAuditLog

__all__ = [
    "Base",
    "BillingAccount",
    "BillingAuditLog",
]
