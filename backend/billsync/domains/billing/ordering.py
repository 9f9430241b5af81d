"""Event ordering guard.

Providers redeliver and reorder events. Applying an event older than the last
one recorded for the account would silently revert state (for example
re-enabling a cancelled subscription), so such events are reported as stale and
never reach the store. Ordering is strictly per account.
"""

from datetime import datetime
from typing import Optional

from billsync.domains.billing.types import STALE_EVENT_REASON, OrderingDecision, as_utc


class EventOrderingGuard:
    """Decides whether an incoming event is stale for an account."""

    def check(
        self,
        last_billing_event_at: Optional[datetime],
        event_timestamp: Optional[datetime],
        *,
        reason: str = STALE_EVENT_REASON,
    ) -> OrderingDecision:
        """Compare an event timestamp against the account's last applied event.

        An event without a timestamp is always treated as newer. Equal
        timestamps are not stale.
        """
        last = as_utc(last_billing_event_at)
        incoming = as_utc(event_timestamp)
        if last is None or incoming is None:
            return OrderingDecision(stale=False)
        if incoming < last:
            return OrderingDecision(stale=True, reason=reason)
        return OrderingDecision(stale=False)
