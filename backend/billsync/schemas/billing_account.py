"""Billing account schemas."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class BillingPlan(str, Enum):
    """Known plan classifications. The plan column is free text so new tiers need no migration."""

    FREE = "free"
    PRO = "pro"


class BillingAccountCreate(BaseModel):
    """Schema for provisioning a billing account for a user."""

    external_user_id: str = Field(..., min_length=1, description="Identity-provider user id")
    payment_customer_id: Optional[str] = Field(
        None, description="Payment provider customer id, when already known"
    )


class BillingAccountStatus(BaseModel):
    """Read model of a user's current billing state."""

    id: UUID
    external_user_id: str
    is_pro: bool
    plan: str
    payment_customer_id: Optional[str] = None
    payment_subscription_id: Optional[str] = None
    billing_version: int
    last_billing_event_at: Optional[datetime] = None
    billing_updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
