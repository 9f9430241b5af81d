"""Pydantic schemas for billing accounts, events and audit entries."""

from .billing_account import (
    BillingAccountCreate,
    BillingAccountStatus,
    BillingPlan,
)
from .billing_audit_log import BillingAuditLogCreate, BillingAuditLogEntry
from .billing_event import (
    BillingErrorCode,
    BillingEventType,
    BillingUpdateRequest,
    BillingUpdateResult,
)

__all__ = [
    "BillingAccountCreate",
    "BillingAccountStatus",
    "BillingAuditLogCreate",
    "BillingAuditLogEntry",
    "BillingErrorCode",
    "BillingEventType",
    "BillingPlan",
    "BillingUpdateRequest",
    "BillingUpdateResult",
]
