"""Unit tests for BillingSyncService (orchestration against fakes)."""

import asyncio
from datetime import timedelta

import pytest

from billsync.domains.billing.exceptions import (
    BillingAccountNotFoundError,
    BillingValidationError,
    ConcurrencyConflictError,
    raise_for_result,
)
from billsync.domains.billing.service import (
    CONCURRENCY_CONFLICT,
    UPDATE_FAILED,
    USER_NOT_FOUND,
)
from billsync.domains.billing.tests.conftest import (
    DEFAULT_USER_ID,
    T0,
    T1,
    T2,
    _make_account_model,
    _make_request,
    _make_service,
)
from billsync.domains.billing.types import (
    DUPLICATE_EVENT_REASON,
    STALE_EVENT_REASON,
    STALE_ON_RETRY_REASON,
)
from billsync.schemas.billing_event import BillingErrorCode, BillingUpdateResult


def _state(account):
    return (
        account.is_pro,
        account.plan,
        account.payment_customer_id,
        account.payment_subscription_id,
        account.billing_version,
        account.last_billing_event_at,
    )


# ===========================================================================
# Scenarios
# ===========================================================================


@pytest.mark.asyncio
async def test_scenario_a_subscription_created(db, service, account_repo, audit_repo):
    account_repo.seed(_make_account_model())

    result = await service.update_billing_status(
        db,
        _make_request(
            "subscription_created",
            is_pro=True,
            payment_customer_id="c1",
            payment_subscription_id="s1",
            event_timestamp=T1,
        ),
    )

    assert result == BillingUpdateResult(success=True, updated_version=2)
    stored = account_repo.stored(DEFAULT_USER_ID)
    assert stored.is_pro is True
    assert stored.plan == "pro"
    assert stored.billing_version == 2
    assert stored.last_billing_event_at == T1
    assert len(audit_repo.entries) == 1
    entry = audit_repo.entries[0]
    assert entry.previous_state["is_pro"] is False
    assert entry.new_state["is_pro"] is True
    assert entry.provider_event_id == "evt_test"
    assert entry.source == "webhook"


@pytest.mark.asyncio
async def test_scenario_b_stale_delete_is_skipped(db, service, account_repo, audit_repo, metrics):
    account_repo.seed(
        _make_account_model(
            is_pro=True,
            plan="pro",
            payment_customer_id="c1",
            payment_subscription_id="s1",
            billing_version=2,
            last_billing_event_at=T1,
        )
    )
    before = _state(account_repo.stored(DEFAULT_USER_ID))

    result = await service.update_billing_status(
        db, _make_request("subscription_deleted", is_pro=False, event_timestamp=T0)
    )

    assert result.success is True
    assert result.skipped is True
    assert result.reason == STALE_EVENT_REASON
    assert result.updated_version is None
    assert _state(account_repo.stored(DEFAULT_USER_ID)) == before
    assert account_repo.update_attempts == 0
    assert audit_repo.entries == []
    assert metrics.outcomes() == ["skipped"]


@pytest.mark.asyncio
async def test_scenario_c_newer_delete_applies(db, service, account_repo, audit_repo):
    account_repo.seed(
        _make_account_model(
            is_pro=True,
            plan="pro",
            payment_customer_id="c1",
            payment_subscription_id="s1",
            billing_version=2,
            last_billing_event_at=T1,
        )
    )

    result = await service.update_billing_status(
        db, _make_request("subscription_deleted", is_pro=False, event_timestamp=T2)
    )

    assert result == BillingUpdateResult(success=True, updated_version=3)
    stored = account_repo.stored(DEFAULT_USER_ID)
    assert stored.is_pro is False
    assert stored.plan == "free"
    assert stored.payment_subscription_id is None
    assert stored.payment_customer_id == "c1"
    assert stored.billing_version == 3
    assert stored.last_billing_event_at == T2
    assert len(audit_repo.entries) == 1


@pytest.mark.asyncio
async def test_scenario_d_concurrent_writers(db, service, account_repo, audit_repo, metrics):
    account_repo.seed(
        _make_account_model(
            is_pro=True,
            plan="pro",
            payment_subscription_id="s1",
            billing_version=3,
            last_billing_event_at=T1,
        )
    )

    first, second = await asyncio.gather(
        service.update_billing_status(
            db,
            _make_request(
                "subscription_updated", is_pro=True, event_timestamp=T2, event_id="evt_a"
            ),
        ),
        service.update_billing_status(
            db,
            _make_request(
                "subscription_updated", is_pro=True, event_timestamp=T2, event_id="evt_b"
            ),
        ),
    )

    assert first == BillingUpdateResult(success=True, updated_version=4)
    assert second == BillingUpdateResult(success=True, updated_version=5)
    assert account_repo.stored(DEFAULT_USER_ID).billing_version == 5
    assert account_repo.update_attempts == 3
    assert metrics.cas_conflicts == [1]
    assert len(audit_repo.entries) == 2
    retried = [e for e in audit_repo.entries if e.audit_metadata.get("retried")]
    assert [e.provider_event_id for e in retried] == ["evt_b"]
    assert retried[0].audit_metadata["billing_version"] == 5


@pytest.mark.asyncio
async def test_scenario_e_unknown_user(db, service, audit_repo, metrics):
    result = await service.update_billing_status(
        db, _make_request(external_user_id="user_missing")
    )

    assert result.success is False
    assert result.error == USER_NOT_FOUND
    assert result.error_code == BillingErrorCode.NOT_FOUND
    assert audit_repo.entries == []
    assert metrics.outcomes() == ["not_found"]


# ===========================================================================
# Properties
# ===========================================================================


@pytest.mark.asyncio
async def test_versions_increase_by_one_per_applied_event(db, service, account_repo, audit_repo):
    account_repo.seed(_make_account_model())
    events = [
        ("subscription_created", True, T0),
        ("payment_failed", False, T1),
        ("subscription_updated", True, T2),
        ("subscription_deleted", False, T2 + timedelta(minutes=1)),
    ]

    versions = []
    for event_type, is_pro, ts in events:
        result = await service.update_billing_status(
            db, _make_request(event_type, is_pro=is_pro, event_timestamp=ts)
        )
        versions.append(result.updated_version)

    assert versions == [2, 3, 4, 5]
    assert len(audit_repo.entries) == 4
    for entry, version in zip(audit_repo.entries, versions):
        assert entry.audit_metadata["billing_version"] == version


@pytest.mark.asyncio
async def test_equal_timestamp_is_processed(db, service, account_repo):
    account_repo.seed(_make_account_model(billing_version=2, last_billing_event_at=T1))

    result = await service.update_billing_status(db, _make_request(event_timestamp=T1))

    assert result.skipped is None
    assert result.updated_version == 3


@pytest.mark.asyncio
async def test_audit_states_match_rows(db, service, account_repo, audit_repo):
    account_repo.seed(
        _make_account_model(
            is_pro=True, plan="pro", payment_customer_id="c1", payment_subscription_id="s1"
        )
    )

    await service.update_billing_status(
        db,
        _make_request(
            "payment_failed", is_pro=False, subscription_status="unpaid", event_timestamp=T1
        ),
    )

    entry = audit_repo.entries[0]
    stored = account_repo.stored(DEFAULT_USER_ID)
    assert entry.previous_state == {
        "is_pro": True,
        "plan": "pro",
        "payment_customer_id": "c1",
        "payment_subscription_id": "s1",
    }
    assert entry.new_state == {
        "is_pro": stored.is_pro,
        "plan": stored.plan,
        "payment_customer_id": stored.payment_customer_id,
        "payment_subscription_id": stored.payment_subscription_id,
    }
    assert stored.is_pro is False


@pytest.mark.asyncio
async def test_conflict_after_retry_is_surfaced(db, service, account_repo, audit_repo, metrics):
    account_repo.seed(_make_account_model(billing_version=3))
    account_repo.inject_conflicts(2)

    result = await service.update_billing_status(db, _make_request(event_timestamp=T1))

    assert result.success is False
    assert result.error == CONCURRENCY_CONFLICT
    assert result.error_code == BillingErrorCode.CONCURRENCY_CONFLICT
    assert account_repo.update_attempts == 2
    assert audit_repo.entries == []
    assert metrics.outcomes() == ["conflict"]
    with pytest.raises(ConcurrencyConflictError):
        raise_for_result(result)


@pytest.mark.asyncio
async def test_newer_event_during_retry_skips(db, service, account_repo, audit_repo):
    account_repo.seed(_make_account_model(billing_version=1, last_billing_event_at=T0))

    async def competing_write():
        stored = account_repo.stored(DEFAULT_USER_ID)
        stored.billing_version = 2
        stored.last_billing_event_at = T2

    # Interleave: our read happens, then the competitor commits, then our write
    real_get = account_repo.get_by_external_user_id
    calls = {"n": 0}

    async def get_then_compete(db, *, external_user_id):
        account = await real_get(db, external_user_id=external_user_id)
        calls["n"] += 1
        if calls["n"] == 1:
            await competing_write()
        return account

    account_repo.get_by_external_user_id = get_then_compete

    result = await service.update_billing_status(db, _make_request(event_timestamp=T1))

    assert result == BillingUpdateResult(success=True, skipped=True, reason=STALE_ON_RETRY_REASON)
    assert account_repo.stored(DEFAULT_USER_ID).last_billing_event_at == T2
    assert audit_repo.entries == []


# ===========================================================================
# Edge cases
# ===========================================================================


@pytest.mark.asyncio
async def test_audit_failure_does_not_fail_update(db, service, account_repo, audit_repo, metrics):
    account_repo.seed(_make_account_model())
    audit_repo.fail_with = RuntimeError("audit table unavailable")

    result = await service.update_billing_status(db, _make_request(event_timestamp=T1))

    assert result == BillingUpdateResult(success=True, updated_version=2)
    assert account_repo.stored(DEFAULT_USER_ID).is_pro is True
    assert metrics.audit_failures == ["subscription_created"]
    assert metrics.outcomes() == ["applied"]


@pytest.mark.asyncio
async def test_unrecognized_event_type_still_applies(db, service, account_repo, audit_repo):
    account_repo.seed(_make_account_model())

    result = await service.update_billing_status(
        db, _make_request("subscription_paused", is_pro=False, payment_customer_id="c9")
    )

    assert result.success is True
    assert result.updated_version == 2
    assert account_repo.stored(DEFAULT_USER_ID).payment_customer_id == "c9"
    assert audit_repo.entries[0].event_type == "subscription_paused"


@pytest.mark.asyncio
async def test_store_error_becomes_structured_failure(db, service, account_repo, metrics):
    async def broken(db, *, external_user_id):
        raise ConnectionError("database unreachable")

    account_repo.get_by_external_user_id = broken

    result = await service.update_billing_status(db, _make_request())

    assert result.success is False
    assert result.error == UPDATE_FAILED
    assert result.error_code == BillingErrorCode.INTERNAL
    assert metrics.outcomes() == ["error"]
    db.rollback.assert_awaited()


@pytest.mark.asyncio
async def test_source_and_metadata_are_recorded(db, service, account_repo, audit_repo):
    account_repo.seed(_make_account_model())

    await service.update_billing_status(
        db,
        _make_request(
            "reconciliation_fix",
            is_pro=True,
            source="reconciliation",
            metadata={"job_run": "nightly"},
        ),
    )

    entry = audit_repo.entries[0]
    assert entry.source == "reconciliation"
    assert entry.audit_metadata["job_run"] == "nightly"
    assert entry.audit_metadata["external_user_id"] == DEFAULT_USER_ID


@pytest.mark.asyncio
async def test_mapping_request_is_accepted(db, service, account_repo):
    account_repo.seed(_make_account_model())

    result = await service.update_billing_status(
        db,
        {
            "external_user_id": DEFAULT_USER_ID,
            "is_pro": True,
            "event_id": "evt_map",
            "event_type": "subscription_created",
        },
    )

    assert result.updated_version == 2


@pytest.mark.asyncio
async def test_duplicate_event_ids_rejected_when_enabled(db, account_repo, audit_repo, metrics):
    service = _make_service(account_repo, audit_repo, metrics, reject_duplicate_event_ids=True)
    account_repo.seed(_make_account_model())

    first = await service.update_billing_status(db, _make_request(event_id="evt_dup"))
    second = await service.update_billing_status(db, _make_request(event_id="evt_dup"))

    assert first.updated_version == 2
    assert second == BillingUpdateResult(success=True, skipped=True, reason=DUPLICATE_EVENT_REASON)
    assert len(audit_repo.entries) == 1


@pytest.mark.asyncio
async def test_duplicate_event_ids_applied_by_default(db, service, account_repo, audit_repo):
    account_repo.seed(_make_account_model())

    await service.update_billing_status(db, _make_request(event_id="evt_dup"))
    second = await service.update_billing_status(db, _make_request(event_id="evt_dup"))

    assert second.updated_version == 3
    assert len(audit_repo.entries) == 2


# ===========================================================================
# Validation
# ===========================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["external_user_id", "is_pro", "event_id", "event_type"])
async def test_missing_required_field_raises_before_store(db, service, account_repo, missing):
    payload = {
        "external_user_id": DEFAULT_USER_ID,
        "is_pro": True,
        "event_id": "evt_1",
        "event_type": "subscription_created",
    }
    payload.pop(missing)

    with pytest.raises(BillingValidationError) as exc_info:
        await service.update_billing_status(db, payload)

    assert missing in exc_info.value.fields
    assert account_repo._calls == []


@pytest.mark.asyncio
async def test_blank_required_field_raises(db, service, account_repo, metrics):
    with pytest.raises(BillingValidationError) as exc_info:
        await service.update_billing_status(db, _make_request(event_id="  "))

    assert exc_info.value.fields == ["event_id"]
    assert account_repo._calls == []
    assert metrics.outcomes() == ["invalid"]


# ===========================================================================
# Reads and provisioning
# ===========================================================================


@pytest.mark.asyncio
async def test_ensure_account_provisions_free_account(db, service, account_repo):
    status = await service.ensure_account(db, "user_new")

    assert status.external_user_id == "user_new"
    assert status.is_pro is False
    assert status.plan == "free"
    assert status.billing_version == 1
    assert status.last_billing_event_at is None


@pytest.mark.asyncio
async def test_ensure_account_returns_existing(db, service, account_repo):
    account_repo.seed(_make_account_model(is_pro=True, plan="pro", billing_version=7))

    status = await service.ensure_account(db, DEFAULT_USER_ID)

    assert status.billing_version == 7
    assert not [c for c in account_repo._calls if c[0] == "create"]


@pytest.mark.asyncio
async def test_get_billing_status(db, service, account_repo):
    account_repo.seed(_make_account_model(is_pro=True, plan="pro", billing_version=4))

    status = await service.get_billing_status(db, DEFAULT_USER_ID)

    assert status.is_pro is True
    assert status.billing_version == 4


@pytest.mark.asyncio
async def test_get_billing_status_unknown_user(db, service):
    with pytest.raises(BillingAccountNotFoundError):
        await service.get_billing_status(db, "user_missing")


@pytest.mark.asyncio
async def test_get_audit_history_newest_first(db, service, account_repo):
    account_repo.seed(_make_account_model())
    await service.update_billing_status(
        db, _make_request("subscription_created", event_timestamp=T0, event_id="evt_1")
    )
    await service.update_billing_status(
        db,
        _make_request("subscription_deleted", is_pro=False, event_timestamp=T1, event_id="evt_2"),
    )

    history = await service.get_audit_history(db, DEFAULT_USER_ID)

    assert [e.provider_event_id for e in history] == ["evt_2", "evt_1"]
    assert history[0].new_state["is_pro"] is False

    limited = await service.get_audit_history(db, DEFAULT_USER_ID, limit=1)
    assert len(limited) == 1


@pytest.mark.asyncio
async def test_get_audit_history_unknown_user(db, service):
    with pytest.raises(BillingAccountNotFoundError):
        await service.get_audit_history(db, "user_missing")
