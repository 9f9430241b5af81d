"""Billing synchronization service.

Entry point for every billing mutation: the webhook route and the
reconciliation job call :meth:`BillingSyncService.update_billing_status`; nothing
else writes entitlement fields. The sequence per event is

    validate -> load account -> ordering guard -> conditional write (+1 retry)
    -> audit entry -> structured result

Only validation raises. Every other outcome, including store failures, comes
back as a :class:`BillingUpdateResult`.
"""

from typing import Any, Mapping, Union

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from billsync.core.config import settings
from billsync.core.logging import ContextualLogger, logger
from billsync.core.protocols.metrics import BillingSyncMetrics
from billsync.domains.billing.audit import AuditLogWriter
from billsync.domains.billing.exceptions import (
    BillingAccountNotFoundError,
    BillingValidationError,
)
from billsync.domains.billing.ordering import EventOrderingGuard
from billsync.domains.billing.protocols import BillingSyncProtocol
from billsync.domains.billing.repository import (
    BillingAccountRepositoryProtocol,
    BillingAuditLogRepositoryProtocol,
)
from billsync.domains.billing.transitions import resolve_event_type
from billsync.domains.billing.types import (
    DUPLICATE_EVENT_REASON,
    AccountMissing,
    AccountSnapshot,
    Applied,
    AuditContext,
    Conflict,
    StaleOnRetry,
)
from billsync.domains.billing.updater import OptimisticConcurrencyUpdater
from billsync.schemas.billing_account import BillingAccountCreate, BillingAccountStatus
from billsync.schemas.billing_audit_log import BillingAuditLogEntry
from billsync.schemas.billing_event import (
    BillingErrorCode,
    BillingUpdateRequest,
    BillingUpdateResult,
)

USER_NOT_FOUND = "User not found"
CONCURRENCY_CONFLICT = "Concurrent update conflict - retry budget exhausted"
UPDATE_FAILED = "Failed to update billing status"

_REQUIRED_STRING_FIELDS = ("external_user_id", "event_id", "event_type")


class BillingSyncService(BillingSyncProtocol):
    """Applies payment-provider billing events to user accounts."""

    def __init__(
        self,
        account_repo: BillingAccountRepositoryProtocol,
        audit_repo: BillingAuditLogRepositoryProtocol,
        metrics: BillingSyncMetrics,
        reject_duplicate_event_ids: bool = False,
    ) -> None:
        """Initialize with repositories, metrics and the duplicate-event policy."""
        self._account_repo = account_repo
        self._audit_repo = audit_repo
        self._metrics = metrics
        self._reject_duplicate_event_ids = reject_duplicate_event_ids
        self._ordering_guard = EventOrderingGuard()
        self._updater = OptimisticConcurrencyUpdater(account_repo, self._ordering_guard, metrics)
        self._audit_writer = AuditLogWriter(audit_repo, metrics)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate(
        self, request: Union[BillingUpdateRequest, Mapping[str, Any]]
    ) -> BillingUpdateRequest:
        """Parse and check a request before any store access.

        Raises:
            BillingValidationError: if a required field is missing or blank
        """
        if not isinstance(request, BillingUpdateRequest):
            try:
                request = BillingUpdateRequest.model_validate(dict(request))
            except ValidationError as e:
                fields = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
                raise BillingValidationError(
                    f"Invalid billing update request: {', '.join(fields)}", fields=fields
                ) from e

        blank = [name for name in _REQUIRED_STRING_FIELDS if not getattr(request, name).strip()]
        if blank:
            raise BillingValidationError(
                f"Missing required fields: {', '.join(blank)}", fields=blank
            )
        return request

    # ------------------------------------------------------------------
    # Billing mutation
    # ------------------------------------------------------------------

    async def update_billing_status(
        self,
        db: AsyncSession,
        request: Union[BillingUpdateRequest, Mapping[str, Any]],
    ) -> BillingUpdateResult:
        """Apply one billing event to the user's account.

        Args:
            db: Database session
            request: The billing event, as a schema or a plain mapping

        Returns:
            The structured outcome; ``updated_version`` is set when the event applied

        Raises:
            BillingValidationError: if required fields are missing (before any I/O)
        """
        try:
            request = self._validate(request)
        except BillingValidationError:
            event_type = request.get("event_type") if isinstance(request, Mapping) else None
            self._metrics.inc_event(str(event_type or "unknown"), "invalid")
            raise

        source = request.source or settings.BILLING_DEFAULT_SOURCE
        log = logger.with_context(
            external_user_id=request.external_user_id,
            event_type=request.event_type,
            provider_event_id=request.event_id,
            source=source,
        )

        try:
            return await self._apply(db, request, source, log)
        except Exception as e:
            log.error(f"Error updating billing status: {e}", exc_info=True)
            self._metrics.inc_event(request.event_type, "error")
            await db.rollback()
            return BillingUpdateResult(
                success=False, error=UPDATE_FAILED, error_code=BillingErrorCode.INTERNAL
            )

    async def _apply(
        self,
        db: AsyncSession,
        request: BillingUpdateRequest,
        source: str,
        log: ContextualLogger,
    ) -> BillingUpdateResult:
        account = await self._account_repo.get_by_external_user_id(
            db, external_user_id=request.external_user_id
        )
        if account is None:
            return self._not_found(request, log)

        observed = AccountSnapshot.from_model(account)

        if self._reject_duplicate_event_ids and await self._audit_repo.exists_for_provider_event(
            db, account_id=observed.id, provider_event_id=request.event_id
        ):
            log.info("Skipping billing event: provider event id already applied")
            return self._skipped(request, DUPLICATE_EVENT_REASON)

        decision = self._ordering_guard.check(
            observed.last_billing_event_at, request.event_timestamp
        )
        if decision.stale:
            log.info(
                f"Skipping stale billing event at {request.event_timestamp} "
                f"(last applied {observed.last_billing_event_at})"
            )
            return self._skipped(request, decision.reason)

        if resolve_event_type(request.event_type) is None:
            log.warning(f"Unrecognized billing event type: {request.event_type}")

        outcome = await self._updater.apply(db, observed=observed, request=request, log=log)

        match outcome:
            case Applied():
                await self._audit_writer.write(
                    db,
                    applied=outcome,
                    context=AuditContext(
                        event_type=request.event_type,
                        provider_event_id=request.event_id,
                        source=source,
                        external_user_id=request.external_user_id,
                        metadata=dict(request.metadata),
                    ),
                    log=log,
                )
                self._metrics.inc_event(request.event_type, "applied")
                log.info(
                    f"Billing status updated: is_pro={outcome.current.is_pro}, "
                    f"version {outcome.previous.billing_version} -> "
                    f"{outcome.current.billing_version}"
                )
                return BillingUpdateResult(
                    success=True, updated_version=outcome.current.billing_version
                )
            case StaleOnRetry(reason=reason):
                log.info("Skipping billing event: newer event applied during retry")
                return self._skipped(request, reason)
            case AccountMissing():
                return self._not_found(request, log)
            case Conflict():
                self._metrics.inc_event(request.event_type, "conflict")
                return BillingUpdateResult(
                    success=False,
                    error=CONCURRENCY_CONFLICT,
                    error_code=BillingErrorCode.CONCURRENCY_CONFLICT,
                )

    def _skipped(self, request: BillingUpdateRequest, reason: str) -> BillingUpdateResult:
        self._metrics.inc_event(request.event_type, "skipped")
        return BillingUpdateResult(success=True, skipped=True, reason=reason)

    def _not_found(
        self, request: BillingUpdateRequest, log: ContextualLogger
    ) -> BillingUpdateResult:
        log.warning("No billing account for external user id")
        self._metrics.inc_event(request.event_type, "not_found")
        return BillingUpdateResult(
            success=False, error=USER_NOT_FOUND, error_code=BillingErrorCode.NOT_FOUND
        )

    # ------------------------------------------------------------------
    # Reads and provisioning
    # ------------------------------------------------------------------

    async def ensure_account(self, db: AsyncSession, external_user_id: str) -> BillingAccountStatus:
        """Return the user's billing account, provisioning a free one if missing."""
        account = await self._account_repo.get_by_external_user_id(
            db, external_user_id=external_user_id
        )
        if account is None:
            try:
                account = await self._account_repo.create(
                    db, obj_in=BillingAccountCreate(external_user_id=external_user_id)
                )
            except IntegrityError:
                # Lost a provisioning race; the other writer's row is the account
                await db.rollback()
                account = await self._account_repo.get_by_external_user_id(
                    db, external_user_id=external_user_id
                )
                if account is None:
                    raise
            else:
                logger.with_context(external_user_id=external_user_id).info(
                    "Provisioned billing account"
                )
        return BillingAccountStatus.model_validate(account, from_attributes=True)

    async def get_billing_status(
        self, db: AsyncSession, external_user_id: str
    ) -> BillingAccountStatus:
        """Get the user's current billing state.

        Raises:
            BillingAccountNotFoundError: if the user has no billing account
        """
        account = await self._account_repo.get_by_external_user_id(
            db, external_user_id=external_user_id
        )
        if account is None:
            raise BillingAccountNotFoundError()
        return BillingAccountStatus.model_validate(account, from_attributes=True)

    async def get_audit_history(
        self, db: AsyncSession, external_user_id: str, limit: int = 50
    ) -> list[BillingAuditLogEntry]:
        """Get the user's applied billing transitions, newest first.

        Raises:
            BillingAccountNotFoundError: if the user has no billing account
        """
        account = await self._account_repo.get_by_external_user_id(
            db, external_user_id=external_user_id
        )
        if account is None:
            raise BillingAccountNotFoundError()
        entries = await self._audit_repo.get_multi_by_account(
            db, account_id=account.id, limit=limit
        )
        return [BillingAuditLogEntry.model_validate(e, from_attributes=True) for e in entries]
