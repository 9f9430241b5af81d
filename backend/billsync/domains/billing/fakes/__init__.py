"""In-memory fakes for the billing domain protocols."""

from billsync.domains.billing.fakes.repository import (
    FakeBillingAccountRepository,
    FakeBillingAuditLogRepository,
)

__all__ = ["FakeBillingAccountRepository", "FakeBillingAuditLogRepository"]
