"""CRUD operations for the BillingAccount model."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from billsync.crud._base import CRUDBase
from billsync.models.billing_account import BillingAccount
from billsync.schemas.billing_account import BillingAccountCreate


class CRUDBillingAccount(CRUDBase[BillingAccount, BillingAccountCreate]):
    """CRUD operations for the BillingAccount model.

    Billing fields change only through :meth:`conditional_update`; there is no generic
    ``update`` or ``remove`` and accounts are never deleted here.
    """

    async def get_by_external_user_id(
        self,
        db: AsyncSession,
        *,
        external_user_id: str,
    ) -> Optional[BillingAccount]:
        """Get the billing account for an identity-provider user id.

        ``populate_existing`` forces a fresh read even when the row is already in the
        session's identity map, which is what a post-conflict re-read needs.

        Args:
            db: Database session
            external_user_id: Identity-provider user id

        Returns:
            The billing account or None
        """
        query = (
            select(self.model)
            .where(self.model.external_user_id == external_user_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def conditional_update(
        self,
        db: AsyncSession,
        *,
        account_id: UUID,
        expected_version: int,
        values: dict[str, Any],
        updated_at: datetime,
    ) -> Optional[BillingAccount]:
        """Apply ``values`` only if the row still carries ``expected_version``.

        Issues ``UPDATE billing_account SET ..., billing_version = billing_version + 1
        WHERE id = :account_id AND billing_version = :expected_version RETURNING *``
        and commits on success. When zero rows match, the transaction is rolled back
        and None is returned so the caller can re-read and retry.

        Args:
            db: Database session
            account_id: Billing account primary key
            expected_version: Version observed when the row was read
            values: Column values to set (billing_version is managed here)
            updated_at: Wall-clock time recorded in billing_updated_at

        Returns:
            The updated billing account, or None on a version conflict
        """
        stmt = (
            update(self.model)
            .where(
                self.model.id == account_id,
                self.model.billing_version == expected_version,
            )
            .values(
                **values,
                billing_version=self.model.billing_version + 1,
                billing_updated_at=updated_at,
                modified_at=updated_at,
            )
            .returning(self.model)
            # The caller already holds this row in the identity map from its read
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        result = await db.execute(stmt)
        row = result.scalars().first()
        if row is None:
            await db.rollback()
            return None
        await db.commit()
        return row
