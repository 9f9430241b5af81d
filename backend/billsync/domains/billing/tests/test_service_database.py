"""BillingSyncService against the crud-backed repositories and a real session."""

import pytest

from billsync.adapters.metrics import FakeBillingSyncMetrics
from billsync.domains.billing.repository import (
    BillingAccountRepository,
    BillingAuditLogRepository,
)
from billsync.domains.billing.service import BillingSyncService
from billsync.domains.billing.tests.conftest import DEFAULT_USER_ID, T1, T2, _make_request
from billsync.models import BillingAccount


async def _seed_free_account(db) -> None:
    db.add(
        BillingAccount(
            external_user_id=DEFAULT_USER_ID,
            is_pro=False,
            plan="free",
            billing_version=1,
            payment_customer_id="cus_1",
        )
    )
    await db.commit()


def _make_db_service() -> BillingSyncService:
    return BillingSyncService(
        account_repo=BillingAccountRepository(),
        audit_repo=BillingAuditLogRepository(),
        metrics=FakeBillingSyncMetrics(),
    )


@pytest.mark.asyncio
async def test_applied_event_reports_new_version_and_audits_new_state(sqlite_db):
    await _seed_free_account(sqlite_db)
    service = _make_db_service()

    result = await service.update_billing_status(
        sqlite_db, _make_request("subscription_created", is_pro=True, event_timestamp=T1)
    )

    assert result.success is True
    assert result.updated_version == 2

    status = await service.get_billing_status(sqlite_db, DEFAULT_USER_ID)
    assert status.billing_version == 2
    assert status.is_pro is True
    assert status.plan == "pro"

    [entry] = await service.get_audit_history(sqlite_db, DEFAULT_USER_ID)
    assert entry.previous_state["is_pro"] is False
    assert entry.previous_state["plan"] == "free"
    assert entry.new_state["is_pro"] is True
    assert entry.new_state["plan"] == "pro"
    assert entry.audit_metadata["billing_version"] == 2


@pytest.mark.asyncio
async def test_sequential_events_advance_version_by_one_each(sqlite_db):
    await _seed_free_account(sqlite_db)
    service = _make_db_service()

    first = await service.update_billing_status(
        sqlite_db,
        _make_request("subscription_created", event_timestamp=T1, event_id="evt_1"),
    )
    second = await service.update_billing_status(
        sqlite_db,
        _make_request(
            "subscription_deleted", is_pro=False, event_timestamp=T2, event_id="evt_2"
        ),
    )

    assert (first.updated_version, second.updated_version) == (2, 3)
    history = await service.get_audit_history(sqlite_db, DEFAULT_USER_ID)
    by_version = {e.audit_metadata["billing_version"]: e for e in history}
    assert sorted(by_version) == [2, 3]
    assert by_version[3].new_state["is_pro"] is False
    assert by_version[3].new_state["payment_customer_id"] == "cus_1"
