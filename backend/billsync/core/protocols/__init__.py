"""Core protocols for dependency injection.

Domain-specific protocols (repositories, services) live in their respective
domains/ directories. This module keeps cross-cutting infrastructure protocols only.
"""

from billsync.core.protocols.metrics import BillingSyncMetrics

__all__ = [
    "BillingSyncMetrics",
]
