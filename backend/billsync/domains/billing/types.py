"""Billing domain types and shared pure functions.

Value types passed between the ordering guard, transition mapper, concurrency
updater, audit writer and the orchestrating service.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union
from uuid import UUID

from billsync.models.billing_account import BillingAccount
from billsync.schemas.billing_account import BillingPlan

# Subscription statuses after which a failed payment revokes the entitlement
TERMINAL_PAYMENT_STATUSES = frozenset({"past_due", "unpaid", "incomplete", "incomplete_expired"})

# Subscription statuses that let a successful payment restore the entitlement
ACTIVE_SUBSCRIPTION_STATUSES = frozenset({"active", "trialing"})

# Conditional write attempts per event: the first try plus exactly one retry
MAX_WRITE_ATTEMPTS = 2

STALE_EVENT_REASON = "event older than last processed"
STALE_ON_RETRY_REASON = "event older than last processed (on retry)"
DUPLICATE_EVENT_REASON = "event already applied"


@dataclass(frozen=True)
class AccountSnapshot:
    """Immutable value copy of a billing account row.

    Taken at read time so that the before/after audit states never alias the
    ORM instance that a conditional update (or a fake store) mutates.
    """

    id: UUID
    external_user_id: str
    is_pro: bool
    plan: str
    payment_customer_id: Optional[str]
    payment_subscription_id: Optional[str]
    billing_version: int
    last_billing_event_at: Optional[datetime]

    @classmethod
    def from_model(cls, account: BillingAccount) -> "AccountSnapshot":
        """Copy the billing fields out of an ORM row."""
        return cls(
            id=account.id,
            external_user_id=account.external_user_id,
            is_pro=bool(account.is_pro),
            plan=account.plan,
            payment_customer_id=account.payment_customer_id,
            payment_subscription_id=account.payment_subscription_id,
            billing_version=account.billing_version,
            last_billing_event_at=account.last_billing_event_at,
        )

    def audit_state(self) -> dict[str, Any]:
        """Entitlement fields recorded in the audit log before and after a mutation."""
        return {
            "is_pro": self.is_pro,
            "plan": self.plan,
            "payment_customer_id": self.payment_customer_id,
            "payment_subscription_id": self.payment_subscription_id,
        }


@dataclass(frozen=True)
class AccountChanges:
    """Candidate field values produced by the transition mapper.

    Every field is resolved (omitted payload fields already fell back to the
    previous value), so ``to_values`` is a complete SET clause minus versioning.
    """

    is_pro: bool
    plan: str
    payment_customer_id: Optional[str]
    payment_subscription_id: Optional[str]
    recognized: bool = True

    def to_values(self, event_at: datetime) -> dict[str, Any]:
        """Column values for the conditional update."""
        return {
            "is_pro": self.is_pro,
            "plan": self.plan,
            "payment_customer_id": self.payment_customer_id,
            "payment_subscription_id": self.payment_subscription_id,
            "last_billing_event_at": event_at,
        }


@dataclass(frozen=True)
class OrderingDecision:
    """Result of the event ordering check."""

    stale: bool
    reason: Optional[str] = None


# ---------------------------------------------------------------------------
# Conditional write outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Applied:
    """The conditional write committed."""

    previous: AccountSnapshot
    current: AccountSnapshot
    attempts: int


@dataclass(frozen=True)
class Conflict:
    """Every allowed attempt matched zero rows."""

    attempts: int


@dataclass(frozen=True)
class AccountMissing:
    """The account disappeared between attempts."""

    external_user_id: str


@dataclass(frozen=True)
class StaleOnRetry:
    """A competing writer applied a newer event before the retry."""

    reason: str = STALE_ON_RETRY_REASON


WriteOutcome = Union[Applied, Conflict, AccountMissing, StaleOnRetry]


@dataclass
class AuditContext:
    """Request-level fields the audit writer records alongside the snapshots."""

    event_type: str
    provider_event_id: Optional[str]
    source: str
    external_user_id: str
    metadata: dict[str, Any] = field(default_factory=dict)


def derive_plan(is_pro: bool, current_plan: Optional[str], override: Optional[str]) -> str:
    """Resolve the plan classification for a new entitlement flag.

    An explicit override always wins. Otherwise a paid account keeps a higher
    tier it already has (anything other than ``free``), and the plan otherwise
    mirrors ``is_pro``.
    """
    if override:
        return override
    if is_pro:
        if current_plan and current_plan != BillingPlan.FREE.value:
            return current_plan
        return BillingPlan.PRO.value
    return BillingPlan.FREE.value


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC so provider and database timestamps compare."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
