"""CRUD operations for the BillingAuditLog model."""

from typing import List
from uuid import UUID

from sqlalchemy import desc, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from billsync.crud._base import CRUDBase
from billsync.models.billing_audit_log import BillingAuditLog
from billsync.schemas.billing_audit_log import BillingAuditLogCreate


class CRUDBillingAuditLog(CRUDBase[BillingAuditLog, BillingAuditLogCreate]):
    """Insert and read operations for the append-only billing audit log."""

    async def get_multi_by_account(
        self,
        db: AsyncSession,
        *,
        account_id: UUID,
        limit: int = 50,
    ) -> List[BillingAuditLog]:
        """Get audit entries for an account, newest first.

        Args:
            db: Database session
            account_id: Billing account primary key
            limit: Maximum number of entries to return

        Returns:
            Audit entries ordered by created_at descending
        """
        query = (
            select(self.model)
            .where(self.model.account_id == account_id)
            .order_by(desc(self.model.created_at))
            .limit(limit)
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    async def exists_for_provider_event(
        self,
        db: AsyncSession,
        *,
        account_id: UUID,
        provider_event_id: str,
    ) -> bool:
        """Check whether an event id has already been applied to an account."""
        query = select(
            exists().where(
                self.model.account_id == account_id,
                self.model.provider_event_id == provider_event_id,
            )
        )
        result = await db.execute(query)
        return bool(result.scalar())
