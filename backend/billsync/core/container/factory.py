"""Container Factory.

All construction logic lives here. The factory reads settings and builds
the container with environment-appropriate implementations.
"""

from prometheus_client import CollectorRegistry

from billsync.adapters.metrics import FakeBillingSyncMetrics, PrometheusBillingSyncMetrics
from billsync.core.config import Settings
from billsync.core.container.container import Container
from billsync.core.logging import logger
from billsync.core.protocols import BillingSyncMetrics
from billsync.domains.billing.repository import (
    BillingAccountRepository,
    BillingAuditLogRepository,
)
from billsync.domains.billing.service import BillingSyncService


def create_container(settings: Settings) -> Container:
    """Build container with environment-appropriate implementations.

    Args:
        settings: Application settings (from core/config)

    Returns:
        Fully constructed Container ready for use

    Example:
        from billsync.core.config import settings
        from billsync.core.container import create_container

        container = create_container(settings)
    """
    # -----------------------------------------------------------------
    # Metrics (Prometheus, or an in-memory spy when disabled)
    # -----------------------------------------------------------------
    registry = CollectorRegistry()
    billing_metrics = _create_billing_metrics(settings, registry)

    # -----------------------------------------------------------------
    # Repositories
    # -----------------------------------------------------------------
    billing_account_repo = BillingAccountRepository()
    billing_audit_repo = BillingAuditLogRepository()

    # -----------------------------------------------------------------
    # Billing engine
    # -----------------------------------------------------------------
    billing_sync = BillingSyncService(
        account_repo=billing_account_repo,
        audit_repo=billing_audit_repo,
        metrics=billing_metrics,
        reject_duplicate_event_ids=settings.BILLING_REJECT_DUPLICATE_EVENT_IDS,
    )

    return Container(
        billing_sync=billing_sync,
        billing_account_repo=billing_account_repo,
        billing_audit_repo=billing_audit_repo,
        billing_metrics=billing_metrics,
        metrics_registry=registry,
    )


def _create_billing_metrics(settings: Settings, registry: CollectorRegistry) -> BillingSyncMetrics:
    if not settings.METRICS_ENABLED:
        logger.info("Metrics disabled; using in-memory billing metrics")
        return FakeBillingSyncMetrics()
    return PrometheusBillingSyncMetrics(registry=registry)
