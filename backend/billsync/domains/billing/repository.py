"""Billing repositories and protocols."""

from datetime import datetime
from typing import Any, Optional, Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from billsync import crud
from billsync.models import BillingAccount, BillingAuditLog
from billsync.schemas.billing_account import BillingAccountCreate
from billsync.schemas.billing_audit_log import BillingAuditLogCreate


class BillingAccountRepositoryProtocol(Protocol):
    """Access to billing account rows. The only write path is the conditional update."""

    async def get_by_external_user_id(
        self, db: AsyncSession, *, external_user_id: str
    ) -> Optional[BillingAccount]:
        """Get billing account by external user ID."""
        ...

    async def conditional_update(
        self,
        db: AsyncSession,
        *,
        account_id: UUID,
        expected_version: int,
        values: dict[str, Any],
        updated_at: datetime,
    ) -> Optional[BillingAccount]:
        """Version-checked update. Returns the updated row, or None on conflict."""
        ...

    async def create(self, db: AsyncSession, *, obj_in: BillingAccountCreate) -> BillingAccount:
        """Create a billing account at version 1."""
        ...


class BillingAccountRepository(BillingAccountRepositoryProtocol):
    """Delegates to the crud.billing_account singleton."""

    async def get_by_external_user_id(
        self, db: AsyncSession, *, external_user_id: str
    ) -> Optional[BillingAccount]:
        """Get billing account by external user ID."""
        return await crud.billing_account.get_by_external_user_id(
            db, external_user_id=external_user_id
        )

    async def conditional_update(
        self,
        db: AsyncSession,
        *,
        account_id: UUID,
        expected_version: int,
        values: dict[str, Any],
        updated_at: datetime,
    ) -> Optional[BillingAccount]:
        """Version-checked update. Returns the updated row, or None on conflict."""
        return await crud.billing_account.conditional_update(
            db,
            account_id=account_id,
            expected_version=expected_version,
            values=values,
            updated_at=updated_at,
        )

    async def create(self, db: AsyncSession, *, obj_in: BillingAccountCreate) -> BillingAccount:
        """Create a billing account at version 1."""
        return await crud.billing_account.create(db, obj_in=obj_in)


class BillingAuditLogRepositoryProtocol(Protocol):
    """Append-only access to the billing audit log."""

    async def create(self, db: AsyncSession, *, obj_in: BillingAuditLogCreate) -> BillingAuditLog:
        """Append an audit entry."""
        ...

    async def get_multi_by_account(
        self, db: AsyncSession, *, account_id: UUID, limit: int = 50
    ) -> list[BillingAuditLog]:
        """Get audit entries for an account, newest first."""
        ...

    async def exists_for_provider_event(
        self, db: AsyncSession, *, account_id: UUID, provider_event_id: str
    ) -> bool:
        """Check whether a provider event id already has an audit entry."""
        ...


class BillingAuditLogRepository(BillingAuditLogRepositoryProtocol):
    """Delegates to the crud.billing_audit_log singleton."""

    async def create(self, db: AsyncSession, *, obj_in: BillingAuditLogCreate) -> BillingAuditLog:
        """Append an audit entry."""
        return await crud.billing_audit_log.create(db, obj_in=obj_in)

    async def get_multi_by_account(
        self, db: AsyncSession, *, account_id: UUID, limit: int = 50
    ) -> list[BillingAuditLog]:
        """Get audit entries for an account, newest first."""
        return await crud.billing_audit_log.get_multi_by_account(
            db, account_id=account_id, limit=limit
        )

    async def exists_for_provider_event(
        self, db: AsyncSession, *, account_id: UUID, provider_event_id: str
    ) -> bool:
        """Check whether a provider event id already has an audit entry."""
        return await crud.billing_audit_log.exists_for_provider_event(
            db, account_id=account_id, provider_event_id=provider_event_id
        )
