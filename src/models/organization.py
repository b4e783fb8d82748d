from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import EntityBase


class SubscriptionStatus(str, Enum):
    TRIALING = "trialing"
    ACTIVE = "active"
    CANCELING = "canceling"
    CANCELED = "canceled"
    PAST_DUE = "past_due"


UNLIMITED_CLIENTS = -1


class Organization(EntityBase):
    """Tenant row carrying the organization's billing record.

    ``trial_ends_at`` holds the trial end while the status is ``trialing`` and
    the paid period end once the status is ``canceling``. Read
    ``subscription_status`` before interpreting it.
    """

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(80), unique=True, nullable=False, index=True)
    owner_subject: Mapped[str | None] = mapped_column(String(255), nullable=True)

    subscription_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SubscriptionStatus.TRIALING.value
    )
    subscription_tier: Mapped[str] = mapped_column(String(50), nullable=False, default="gym")
    client_limit: Mapped[int] = mapped_column(nullable=False, default=UNLIMITED_CLIENTS)
    external_customer_id: Mapped[str | None] = mapped_column(
        String(255), unique=True, nullable=True, index=True
    )
    external_subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    trial_ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
