"""Metrics adapters: Prometheus and Fake implementations.

Re-exports every public adapter so consumers can import directly from
``billsync.adapters.metrics``.
"""

from billsync.adapters.metrics.billing import FakeBillingSyncMetrics, PrometheusBillingSyncMetrics

__all__ = [
    "FakeBillingSyncMetrics",
    "PrometheusBillingSyncMetrics",
]
