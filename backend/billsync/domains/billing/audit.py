"""Audit log writer.

Persists one immutable before/after record per applied event. The state change
has already committed when this runs, so a failed insert is escalated (warning
log + metric) and never undoes or fails the transition.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from billsync.core.logging import ContextualLogger
from billsync.core.protocols.metrics import BillingSyncMetrics
from billsync.domains.billing.repository import BillingAuditLogRepositoryProtocol
from billsync.domains.billing.types import Applied, AuditContext
from billsync.models import BillingAuditLog
from billsync.schemas.billing_audit_log import BillingAuditLogCreate


class AuditLogWriter:
    """Appends billing audit entries."""

    def __init__(
        self,
        audit_repo: BillingAuditLogRepositoryProtocol,
        metrics: BillingSyncMetrics,
    ) -> None:
        """Initialize with the audit repository and metrics sink."""
        self._audit_repo = audit_repo
        self._metrics = metrics

    @staticmethod
    def build_entry(applied: Applied, context: AuditContext) -> BillingAuditLogCreate:
        """Build the audit record for an applied transition.

        Metadata is the caller's metadata merged with the external user id and
        the resulting billing version; entries written after a retry are marked.
        """
        metadata = {
            **context.metadata,
            "external_user_id": context.external_user_id,
            "billing_version": applied.current.billing_version,
        }
        if applied.attempts > 1:
            metadata["retried"] = True
            metadata["retry_count"] = applied.attempts - 1

        return BillingAuditLogCreate(
            account_id=applied.current.id,
            event_type=context.event_type,
            provider_event_id=context.provider_event_id,
            source=context.source,
            previous_state=applied.previous.audit_state(),
            new_state=applied.current.audit_state(),
            audit_metadata=metadata,
        )

    async def write(
        self,
        db: AsyncSession,
        *,
        applied: Applied,
        context: AuditContext,
        log: ContextualLogger,
    ) -> Optional[BillingAuditLog]:
        """Persist the audit entry; returns None when the insert failed."""
        entry = self.build_entry(applied, context)
        try:
            return await self._audit_repo.create(db, obj_in=entry)
        except Exception as e:
            log.warning(
                f"Failed to write billing audit log for version "
                f"{applied.current.billing_version}: {e}",
                exc_info=True,
            )
            self._metrics.inc_audit_failure(context.event_type)
            await db.rollback()
            return None
