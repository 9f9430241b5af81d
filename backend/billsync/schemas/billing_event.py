"""Billing event request and result schemas.

``BillingUpdateRequest`` is what the webhook route and the reconciliation job
hand to the engine after resolving the provider customer to an
``external_user_id``. ``BillingUpdateResult`` is what they get back; the engine
never lets store errors escape as exceptions.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class BillingEventType(str, Enum):
    """Billing event types the engine knows how to map."""

    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_UPDATED = "subscription_updated"
    SUBSCRIPTION_DELETED = "subscription_deleted"
    SUBSCRIPTION_UPGRADED = "subscription_upgraded"
    SUBSCRIPTION_DOWNGRADED = "subscription_downgraded"
    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    RECONCILIATION_FIX = "reconciliation_fix"
    CUSTOMER_CREATED = "customer_created"
    CUSTOMER_LINKED = "customer_linked"


class BillingErrorCode(str, Enum):
    """Machine-readable failure kinds carried on a failed result."""

    NOT_FOUND = "not_found"
    CONCURRENCY_CONFLICT = "concurrency_conflict"
    INTERNAL = "internal"


class BillingUpdateRequest(BaseModel):
    """One billing event to apply to a user's account.

    ``event_type`` is kept as a plain string so that event types added by the
    provider later are still accepted; the transition mapper decides how to treat
    them. Optional identifier fields distinguish "omitted" (keep the stored value)
    from an explicit ``None`` (clear it) via ``model_fields_set``.
    """

    external_user_id: str = Field(..., description="Identity-provider user id")
    is_pro: bool = Field(..., description="Entitlement flag reported by the event")
    event_id: str = Field(..., description="Provider-assigned event id")
    event_type: str = Field(..., description="Billing event type")
    event_timestamp: Optional[datetime] = Field(
        None, description="Provider event creation time, used for ordering"
    )
    payment_customer_id: Optional[str] = None
    payment_subscription_id: Optional[str] = None
    subscription_status: Optional[str] = Field(
        None, description="Provider subscription status at event time (e.g. past_due)"
    )
    plan: Optional[str] = Field(None, description="Explicit plan override")
    source: Optional[str] = Field(None, description="Event source; defaults from settings")
    metadata: dict[str, Any] = Field(default_factory=dict)


class BillingUpdateResult(BaseModel):
    """Structured outcome of applying one billing event."""

    success: bool
    skipped: Optional[bool] = None
    reason: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[BillingErrorCode] = None
    updated_version: Optional[int] = None
