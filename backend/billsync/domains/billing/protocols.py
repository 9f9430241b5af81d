"""Billing domain protocols.

BillingSyncProtocol is the only thing the webhook route and reconciliation job need injected.
"""

from typing import Any, Mapping, Protocol, Union, runtime_checkable

from sqlalchemy.ext.asyncio import AsyncSession

from billsync.schemas.billing_account import BillingAccountStatus
from billsync.schemas.billing_audit_log import BillingAuditLogEntry
from billsync.schemas.billing_event import BillingUpdateRequest, BillingUpdateResult


@runtime_checkable
class BillingSyncProtocol(Protocol):
    """Public billing synchronization interface."""

    async def update_billing_status(
        self,
        db: AsyncSession,
        request: Union[BillingUpdateRequest, Mapping[str, Any]],
    ) -> BillingUpdateResult:
        """Apply one billing event to the user's account."""
        ...

    async def ensure_account(self, db: AsyncSession, external_user_id: str) -> BillingAccountStatus:
        """Return the user's billing account, provisioning a free one if missing."""
        ...

    async def get_billing_status(
        self, db: AsyncSession, external_user_id: str
    ) -> BillingAccountStatus:
        """Get the user's current billing state."""
        ...

    async def get_audit_history(
        self, db: AsyncSession, external_user_id: str, limit: int = 50
    ) -> list[BillingAuditLogEntry]:
        """Get the user's applied billing transitions, newest first."""
        ...
