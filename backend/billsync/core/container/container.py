"""Dependency Injection Container.

The container is a simple immutable dataclass that holds protocol implementations.
It has no construction logic; that belongs in the factory.
"""

from dataclasses import dataclass

from prometheus_client import CollectorRegistry

from billsync.core.protocols import BillingSyncMetrics
from billsync.domains.billing.protocols import BillingSyncProtocol
from billsync.domains.billing.repository import (
    BillingAccountRepositoryProtocol,
    BillingAuditLogRepositoryProtocol,
)


@dataclass(frozen=True)
class Container:
    """Immutable container holding all protocol implementations.

    Usage:
        # Production: use the global container built by the factory
        from billsync.core.container import container
        result = await container.billing_sync.update_billing_status(db, request)

        # Testing: construct directly with fakes
        test_container = Container(billing_sync=..., billing_metrics=fake_metrics, ...)
    """

    # Billing engine, the single entry point for billing mutations
    billing_sync: BillingSyncProtocol

    # Repository protocols (thin wrappers around crud singletons)
    billing_account_repo: BillingAccountRepositoryProtocol
    billing_audit_repo: BillingAuditLogRepositoryProtocol

    # Metrics
    billing_metrics: BillingSyncMetrics
    metrics_registry: CollectorRegistry
