"""Billing domain test fixtures and helpers.

Provides pre-built helpers for ORM models, requests and service wiring
against the in-memory fakes.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from unittest.mock import AsyncMock
from uuid import UUID

import pytest

from billsync.adapters.metrics import FakeBillingSyncMetrics
from billsync.domains.billing.fakes.repository import (
    FakeBillingAccountRepository,
    FakeBillingAuditLogRepository,
)
from billsync.domains.billing.service import BillingSyncService
from billsync.models import BillingAccount
from billsync.schemas.billing_event import BillingUpdateRequest

# Default test IDs
DEFAULT_ACCOUNT_ID = UUID("00000000-0000-0000-0000-000000000001")
DEFAULT_USER_ID = "user_test_123"

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(minutes=5)
T2 = T1 + timedelta(minutes=5)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_account_model(
    external_user_id: str = DEFAULT_USER_ID, **overrides: Any
) -> BillingAccount:
    """Return a BillingAccount ORM model with sensible defaults (free, version 1)."""
    now = datetime.now(timezone.utc)
    defaults = dict(
        id=DEFAULT_ACCOUNT_ID,
        created_at=now,
        modified_at=now,
        external_user_id=external_user_id,
        is_pro=False,
        plan="free",
        payment_customer_id=None,
        payment_subscription_id=None,
        billing_version=1,
        last_billing_event_at=None,
        billing_updated_at=None,
    )
    defaults.update(overrides)
    return BillingAccount(**defaults)


def _make_request(
    event_type: str = "subscription_created",
    *,
    is_pro: bool = True,
    event_timestamp: Optional[datetime] = None,
    external_user_id: str = DEFAULT_USER_ID,
    event_id: str = "evt_test",
    **overrides: Any,
) -> BillingUpdateRequest:
    """Return a BillingUpdateRequest; only explicitly passed optional fields are 'set'."""
    return BillingUpdateRequest(
        external_user_id=external_user_id,
        is_pro=is_pro,
        event_id=event_id,
        event_type=event_type,
        event_timestamp=event_timestamp,
        **overrides,
    )


def _make_service(
    account_repo: Optional[FakeBillingAccountRepository] = None,
    audit_repo: Optional[FakeBillingAuditLogRepository] = None,
    metrics: Optional[FakeBillingSyncMetrics] = None,
    reject_duplicate_event_ids: bool = False,
) -> BillingSyncService:
    """Build a BillingSyncService wired to fakes."""
    return BillingSyncService(
        account_repo=account_repo or FakeBillingAccountRepository(),
        audit_repo=audit_repo or FakeBillingAuditLogRepository(),
        metrics=metrics or FakeBillingSyncMetrics(),
        reject_duplicate_event_ids=reject_duplicate_event_ids,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db():
    """Stand-in AsyncSession; the fakes never touch it beyond rollback/commit."""
    return AsyncMock()


@pytest.fixture
def account_repo():
    return FakeBillingAccountRepository()


@pytest.fixture
def audit_repo():
    return FakeBillingAuditLogRepository()


@pytest.fixture
def metrics():
    return FakeBillingSyncMetrics()


@pytest.fixture
def service(account_repo, audit_repo, metrics):
    return _make_service(account_repo, audit_repo, metrics)
