"""Billing audit log schemas."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class BillingAuditLogCreate(BaseModel):
    """Schema for appending an audit entry. Entries are never updated."""

    account_id: UUID
    event_type: str
    provider_event_id: Optional[str] = None
    source: str = "webhook"
    previous_state: dict[str, Any] = Field(default_factory=dict)
    new_state: dict[str, Any] = Field(default_factory=dict)
    audit_metadata: dict[str, Any] = Field(default_factory=dict)


class BillingAuditLogEntry(BillingAuditLogCreate):
    """Complete audit entry as stored."""

    id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
