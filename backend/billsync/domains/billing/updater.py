"""Optimistic concurrency updater.

Handlers run as independent invocations (retried deliveries, several
instances), so no in-process lock can serialize them. The only serialization
point is the store's version-checked UPDATE: a write conditioned on the version
that was read either commits and bumps the version by one, or matches zero rows.

A zero-row match is a lock conflict. The updater re-reads the row and retries
exactly once; a second conflict means abnormal contention and is reported, not
swallowed.
"""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from billsync.core.logging import ContextualLogger
from billsync.core.protocols.metrics import BillingSyncMetrics
from billsync.domains.billing.ordering import EventOrderingGuard
from billsync.domains.billing.repository import BillingAccountRepositoryProtocol
from billsync.domains.billing.transitions import map_transition
from billsync.domains.billing.types import (
    MAX_WRITE_ATTEMPTS,
    STALE_ON_RETRY_REASON,
    AccountMissing,
    AccountSnapshot,
    Applied,
    Conflict,
    StaleOnRetry,
    WriteOutcome,
    as_utc,
)
from billsync.models._base import utc_now
from billsync.schemas.billing_event import BillingUpdateRequest


class OptimisticConcurrencyUpdater:
    """Applies a billing event through a version-checked conditional write."""

    def __init__(
        self,
        account_repo: BillingAccountRepositoryProtocol,
        ordering_guard: EventOrderingGuard,
        metrics: BillingSyncMetrics,
    ) -> None:
        """Initialize with the account repository, ordering guard and metrics sink."""
        self._account_repo = account_repo
        self._ordering_guard = ordering_guard
        self._metrics = metrics

    async def apply(
        self,
        db: AsyncSession,
        *,
        observed: AccountSnapshot,
        request: BillingUpdateRequest,
        log: ContextualLogger,
    ) -> WriteOutcome:
        """Write the event's candidate state, retrying once on a version conflict.

        Args:
            db: Database session
            observed: Snapshot of the account as read by the caller; the first
                attempt is conditioned on its version
            request: The billing event being applied
            log: Contextual logger for this event

        Returns:
            ``Applied`` with before/after snapshots, ``Conflict`` when both attempts
            matched zero rows, ``AccountMissing`` when the re-read found nothing, or
            ``StaleOnRetry`` when a newer event landed before the retry
        """
        snapshot = observed

        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            if attempt > 1:
                account = await self._account_repo.get_by_external_user_id(
                    db, external_user_id=request.external_user_id
                )
                if account is None:
                    return AccountMissing(external_user_id=request.external_user_id)
                snapshot = AccountSnapshot.from_model(account)

                decision = self._ordering_guard.check(
                    snapshot.last_billing_event_at,
                    request.event_timestamp,
                    reason=STALE_ON_RETRY_REASON,
                )
                if decision.stale:
                    return StaleOnRetry(reason=decision.reason)

            changes = map_transition(request, snapshot)
            now = utc_now()
            row = await self._account_repo.conditional_update(
                db,
                account_id=snapshot.id,
                expected_version=snapshot.billing_version,
                values=changes.to_values(self._event_at(request, snapshot, now)),
                updated_at=now,
            )
            if row is not None:
                return Applied(
                    previous=snapshot,
                    current=AccountSnapshot.from_model(row),
                    attempts=attempt,
                )

            self._metrics.inc_cas_conflict(attempt)
            log.info(
                f"Billing version conflict on attempt {attempt}/{MAX_WRITE_ATTEMPTS} "
                f"(expected version {snapshot.billing_version})"
            )

        log.error(
            f"Optimistic lock failed after {MAX_WRITE_ATTEMPTS} attempts - high contention"
        )
        return Conflict(attempts=MAX_WRITE_ATTEMPTS)

    @staticmethod
    def _event_at(
        request: BillingUpdateRequest, snapshot: AccountSnapshot, now: datetime
    ) -> datetime:
        """Timestamp recorded as last_billing_event_at for this write.

        An event without a timestamp is stamped with the current time, but never
        earlier than the stored value: last_billing_event_at does not decrease.
        """
        event_at = as_utc(request.event_timestamp)
        if event_at is not None:
            return event_at
        last = as_utc(snapshot.last_billing_event_at)
        if last is not None and last > now:
            return last
        return now
