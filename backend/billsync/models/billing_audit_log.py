"""Billing audit log model."""

from typing import TYPE_CHECKING, Optional
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billsync.models._base import Base

if TYPE_CHECKING:
    from billsync.models.billing_account import BillingAccount

_JSONB = JSON().with_variant(JSONB(), "postgresql")


class BillingAuditLog(Base):
    """Append-only record of one applied billing state transition."""

    __tablename__ = "billing_audit_log"

    account_id: Mapped[UUID] = mapped_column(
        ForeignKey(
            "billing_account.id", ondelete="CASCADE", name="fk_billing_audit_log_account_id"
        ),
        nullable=False,
    )
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    provider_event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    source: Mapped[str] = mapped_column(Text, nullable=False, default="webhook")
    previous_state: Mapped[dict] = mapped_column(_JSONB, nullable=False, default=dict)
    new_state: Mapped[dict] = mapped_column(_JSONB, nullable=False, default=dict)
    # "metadata" is reserved on declarative classes
    audit_metadata: Mapped[dict] = mapped_column("metadata", _JSONB, nullable=False, default=dict)

    account: Mapped["BillingAccount"] = relationship(
        "BillingAccount",
        back_populates="audit_entries",
        lazy="noload",
    )

    __table_args__ = (
        Index("idx_billing_audit_log_account_id", "account_id"),
        Index("idx_billing_audit_log_provider_event_id", "provider_event_id"),
        Index("idx_billing_audit_log_created_at", "created_at"),
    )
