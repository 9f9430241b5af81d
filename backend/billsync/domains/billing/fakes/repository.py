"""Fake billing repositories for testing."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from billsync.models import BillingAccount, BillingAuditLog

_ACCOUNT_FIELDS = (
    "id",
    "created_at",
    "modified_at",
    "external_user_id",
    "is_pro",
    "plan",
    "payment_customer_id",
    "payment_subscription_id",
    "billing_version",
    "last_billing_event_at",
    "billing_updated_at",
)


def _clone(account: BillingAccount) -> BillingAccount:
    """Detached copy of a stored row, like a fresh SELECT in another session."""
    return BillingAccount(**{name: getattr(account, name) for name in _ACCOUNT_FIELDS})


class FakeBillingAccountRepository:
    """In-memory fake for BillingAccountRepositoryProtocol.

    Reads hand out copies and yield to the event loop, so two coroutines started
    with ``asyncio.gather`` both observe the same version before either writes.
    ``inject_conflicts(n)`` simulates a foreign writer bumping the version right
    before each of the next ``n`` conditional updates.
    """

    def __init__(self) -> None:
        """Initialize with empty store and call log."""
        self._store: dict[str, BillingAccount] = {}
        self._calls: list[tuple] = []
        self._pending_conflicts = 0
        self.update_attempts = 0
        self.successful_writes = 0

    def seed(self, account: BillingAccount) -> None:
        """Populate store with test data."""
        self._store[account.external_user_id] = account

    def stored(self, external_user_id: str) -> Optional[BillingAccount]:
        """Return the stored row itself (not a copy) for assertions."""
        return self._store.get(external_user_id)

    def inject_conflicts(self, count: int) -> None:
        """Make the next ``count`` conditional updates lose to a concurrent writer."""
        self._pending_conflicts = count

    async def get_by_external_user_id(
        self, db: AsyncSession, *, external_user_id: str
    ) -> Optional[BillingAccount]:
        """Get billing account by external user ID."""
        self._calls.append(("get_by_external_user_id", db, external_user_id))
        account = self._store.get(external_user_id)
        copy = _clone(account) if account is not None else None
        await asyncio.sleep(0)
        return copy

    async def conditional_update(
        self,
        db: AsyncSession,
        *,
        account_id: UUID,
        expected_version: int,
        values: dict[str, Any],
        updated_at: datetime,
    ) -> Optional[BillingAccount]:
        """Version-checked update against the in-memory row."""
        self._calls.append(("conditional_update", db, account_id, expected_version, values))
        self.update_attempts += 1
        account = next((a for a in self._store.values() if a.id == account_id), None)
        if account is None:
            return None

        if self._pending_conflicts > 0:
            self._pending_conflicts -= 1
            account.billing_version += 1

        if account.billing_version != expected_version:
            return None

        for key, value in values.items():
            setattr(account, key, value)
        account.billing_version = expected_version + 1
        account.billing_updated_at = updated_at
        account.modified_at = updated_at
        self.successful_writes += 1
        return _clone(account)

    async def create(self, db: AsyncSession, *, obj_in: Any) -> BillingAccount:
        """Create a billing account (fake)."""
        self._calls.append(("create", db, obj_in))
        now = datetime.now(timezone.utc)
        account = BillingAccount(
            id=uuid4(),
            created_at=now,
            modified_at=now,
            external_user_id=obj_in.external_user_id,
            is_pro=False,
            plan="free",
            payment_customer_id=obj_in.payment_customer_id,
            payment_subscription_id=None,
            billing_version=1,
            last_billing_event_at=None,
            billing_updated_at=None,
        )
        self._store[account.external_user_id] = account
        return _clone(account)


class FakeBillingAuditLogRepository:
    """In-memory fake for BillingAuditLogRepositoryProtocol."""

    def __init__(self) -> None:
        """Initialize with empty store and call log."""
        self._store: list[BillingAuditLog] = []
        self._calls: list[tuple] = []
        self.fail_with: Optional[Exception] = None

    @property
    def entries(self) -> list[BillingAuditLog]:
        """Stored entries in insertion order."""
        return list(self._store)

    async def create(self, db: AsyncSession, *, obj_in: Any) -> BillingAuditLog:
        """Append an audit entry (fake). Raises ``fail_with`` when set."""
        self._calls.append(("create", db, obj_in))
        if self.fail_with is not None:
            raise self.fail_with
        now = datetime.now(timezone.utc)
        entry = BillingAuditLog(id=uuid4(), created_at=now, modified_at=now, **obj_in.model_dump())
        self._store.append(entry)
        await asyncio.sleep(0)
        return entry

    async def get_multi_by_account(
        self, db: AsyncSession, *, account_id: UUID, limit: int = 50
    ) -> list[BillingAuditLog]:
        """Get audit entries for an account, newest first."""
        self._calls.append(("get_multi_by_account", db, account_id, limit))
        matching = [e for e in self._store if e.account_id == account_id]
        return list(reversed(matching))[:limit]

    async def exists_for_provider_event(
        self, db: AsyncSession, *, account_id: UUID, provider_event_id: str
    ) -> bool:
        """Check whether a provider event id already has an audit entry."""
        self._calls.append(("exists_for_provider_event", db, account_id, provider_event_id))
        return any(
            e.account_id == account_id and e.provider_event_id == provider_event_id
            for e in self._store
        )
