"""CRUD singletons for the billsync models."""

from billsync.models.billing_account import BillingAccount
from billsync.models.billing_audit_log import BillingAuditLog

from .crud_billing_account import CRUDBillingAccount
from .crud_billing_audit_log import CRUDBillingAuditLog

billing_account = CRUDBillingAccount(BillingAccount)
billing_audit_log = CRUDBillingAuditLog(BillingAuditLog)

__all__ = [
    "billing_account",
    "billing_audit_log",
]
