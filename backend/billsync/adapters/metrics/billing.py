"""Billing sync metrics adapters (Prometheus + Fake).

Prometheus implementation uses a caller-supplied CollectorRegistry so
these metrics can be served from whichever ``/metrics`` endpoint hosts
the engine.
"""

from prometheus_client import CollectorRegistry, Counter

from billsync.core.protocols.metrics import BillingSyncMetrics


class PrometheusBillingSyncMetrics(BillingSyncMetrics):
    """Prometheus-backed billing sync metrics collection."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Register the billing counters on `registry` (a private one when omitted)."""
        self._registry = registry or CollectorRegistry()

        self._events_total = Counter(
            "billsync_billing_events_total",
            "Total billing events processed, by outcome",
            ["event_type", "outcome"],
            registry=self._registry,
        )

        self._cas_conflicts_total = Counter(
            "billsync_billing_cas_conflicts_total",
            "Conditional billing writes that matched zero rows",
            ["attempt"],
            registry=self._registry,
        )

        self._audit_failures_total = Counter(
            "billsync_billing_audit_failures_total",
            "Audit log inserts that failed after a committed state change",
            ["event_type"],
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Registry the counters are registered on."""
        return self._registry

    # -- BillingSyncMetrics protocol methods --

    def inc_event(self, event_type: str, outcome: str) -> None:
        """Count one processed billing event by its outcome."""
        self._events_total.labels(event_type=event_type, outcome=outcome).inc()

    def inc_cas_conflict(self, attempt: int) -> None:
        """Count a conditional write that matched zero rows."""
        self._cas_conflicts_total.labels(attempt=str(attempt)).inc()

    def inc_audit_failure(self, event_type: str) -> None:
        """Count a failed audit insert."""
        self._audit_failures_total.labels(event_type=event_type).inc()


# ---------------------------------------------------------------------------
# Fake
# ---------------------------------------------------------------------------


class FakeBillingSyncMetrics(BillingSyncMetrics):
    """In-memory spy implementing the BillingSyncMetrics protocol."""

    def __init__(self) -> None:
        """Start with no recorded calls."""
        self.events: list[tuple[str, str]] = []
        self.cas_conflicts: list[int] = []
        self.audit_failures: list[str] = []

    def inc_event(self, event_type: str, outcome: str) -> None:
        """Record an event outcome."""
        self.events.append((event_type, outcome))

    def inc_cas_conflict(self, attempt: int) -> None:
        """Record a conflict attempt."""
        self.cas_conflicts.append(attempt)

    def inc_audit_failure(self, event_type: str) -> None:
        """Record an audit failure."""
        self.audit_failures.append(event_type)

    def outcomes(self) -> list[str]:
        """Return recorded outcomes in order, ignoring event types."""
        return [outcome for _, outcome in self.events]

    def clear(self) -> None:
        """Reset all recorded state."""
        self.events.clear()
        self.cas_conflicts.clear()
        self.audit_failures.clear()
