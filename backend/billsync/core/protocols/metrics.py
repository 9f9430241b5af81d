"""Metrics protocols for dependency injection.

- BillingSyncMetrics: billing event reconciliation instrumentation
"""

from typing import Protocol, runtime_checkable

# ---------------------------------------------------------------------------
# BillingSyncMetrics
# ---------------------------------------------------------------------------


@runtime_checkable
class BillingSyncMetrics(Protocol):
    """Protocol for billing state synchronization metrics."""

    def inc_event(self, event_type: str, outcome: str) -> None:
        """Count a processed billing event.

        Args:
            event_type: Billing event type (e.g. ``subscription_created``).
            outcome: One of ``applied``, ``skipped``, ``not_found``, ``conflict``,
                ``error`` or ``invalid``.
        """
        ...

    def inc_cas_conflict(self, attempt: int) -> None:
        """Count a conditional write that matched zero rows on the given attempt."""
        ...

    def inc_audit_failure(self, event_type: str) -> None:
        """Count an audit log insert that failed after the state change committed."""
        ...
