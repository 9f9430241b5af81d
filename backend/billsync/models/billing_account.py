"""Billing account model."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billsync.models._base import Base

if TYPE_CHECKING:
    from billsync.models.billing_audit_log import BillingAuditLog


class BillingAccount(Base):
    """Subscription entitlement state for one user.

    ``billing_version`` is the optimistic concurrency token: every applied billing
    event increments it by exactly one through a version-checked UPDATE.
    """

    __tablename__ = "billing_account"

    external_user_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    is_pro: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    plan: Mapped[str] = mapped_column(String(50), nullable=False, default="free")
    payment_customer_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payment_subscription_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    billing_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    last_billing_event_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    billing_updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    audit_entries: Mapped[list["BillingAuditLog"]] = relationship(
        "BillingAuditLog",
        back_populates="account",
        lazy="noload",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_billing_account_payment_customer_id", "payment_customer_id"),
        Index("idx_billing_account_payment_subscription_id", "payment_subscription_id"),
    )
