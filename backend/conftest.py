"""Root conftest for pytest configuration and shared fixtures.

Loaded before the colocated domain and adapter tests under billsync/,
making its fixtures available to all of them.
"""

import os

import pytest
import pytest_asyncio

# Register pytest-asyncio plugin at the root level
pytest_plugins = ("pytest_asyncio",)

# ---------------------------------------------------------------------------
# Environment variables, set before any billsync module import.
# Uses setdefault so real env vars (CI, e2e) are never overridden.
# ---------------------------------------------------------------------------
os.environ.setdefault("POSTGRES_HOST", "localhost")
os.environ.setdefault("POSTGRES_USER", "test_user")
os.environ.setdefault("POSTGRES_PASSWORD", "test_password")
os.environ.setdefault("POSTGRES_DB", "test_db")
os.environ.setdefault("TESTING", "true")


# ---------------------------------------------------------------------------
# Shared fake fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_billing_metrics():
    """Fake BillingSyncMetrics that records every increment."""
    from billsync.adapters.metrics import FakeBillingSyncMetrics

    return FakeBillingSyncMetrics()


@pytest.fixture
def fake_billing_account_repo():
    """In-memory billing account store with injectable CAS conflicts."""
    from billsync.domains.billing.fakes import FakeBillingAccountRepository

    return FakeBillingAccountRepository()


@pytest.fixture
def fake_billing_audit_repo():
    """In-memory append-only audit log."""
    from billsync.domains.billing.fakes import FakeBillingAuditLogRepository

    return FakeBillingAuditLogRepository()


# ---------------------------------------------------------------------------
# Real session, in-memory SQLite with the billing tables
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def sqlite_db():
    """AsyncSession on a private in-memory SQLite database.

    Runs the real ORM statements (including UPDATE ... RETURNING) so tests can
    observe identity-map behaviour that the in-memory fakes cannot.
    """
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
    from sqlalchemy.pool import StaticPool

    from billsync.models import Base

    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    async with session_factory() as db:
        yield db
    await engine.dispose()


# ---------------------------------------------------------------------------
# Test container, fully faked Container for injection
# ---------------------------------------------------------------------------


@pytest.fixture
def test_container(fake_billing_metrics, fake_billing_account_repo, fake_billing_audit_repo):
    """A Container with all dependencies replaced by fakes.

    For partial overrides, use dataclasses.replace():
        dup_container = replace(test_container, billing_sync=strict_service)
    """
    from prometheus_client import CollectorRegistry

    from billsync.core.container import Container
    from billsync.domains.billing.service import BillingSyncService

    return Container(
        billing_sync=BillingSyncService(
            account_repo=fake_billing_account_repo,
            audit_repo=fake_billing_audit_repo,
            metrics=fake_billing_metrics,
        ),
        billing_account_repo=fake_billing_account_repo,
        billing_audit_repo=fake_billing_audit_repo,
        billing_metrics=fake_billing_metrics,
        metrics_registry=CollectorRegistry(),
    )
