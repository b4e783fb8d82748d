from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class CheckoutRequest(BaseModel):
    organization_id: UUID
    tier: str = Field(min_length=1, max_length=50)
    billing_email: str = Field(min_length=3, max_length=255)


class CheckoutResponse(BaseModel):
    updated: bool | None = None
    message: str | None = None
    client_secret: str | None = None


class OrganizationBillingRequest(BaseModel):
    organization_id: UUID


class SubscriptionActionRequest(BaseModel):
    organization_id: UUID
    action: Literal["cancel", "reactivate", "update_payment_method"]
    payment_method_id: str | None = Field(default=None, max_length=255)


class SubscriptionActionResponse(BaseModel):
    success: bool
    message: str
    subscription_status: str | None = None
    cleared: bool = False
    period_end: datetime | None = None


class ProcessorSubscription(BaseModel):
    id: str
    status: str
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool = False
    cancel_at: datetime | None = None
    trial_end: datetime | None = None
    price_id: str | None = None
    amount: int | None = None
    interval: str | None = None


class CardSummary(BaseModel):
    id: str
    brand: str | None = None
    last4: str | None = None
    exp_month: int | None = None
    exp_year: int | None = None


class InvoiceSummary(BaseModel):
    id: str
    number: str | None = None
    status: str | None = None
    amount: int | None = None
    currency: str | None = None
    created: datetime | None = None
    hosted_url: str | None = None
    pdf_url: str | None = None


class SubscriptionOverviewResponse(BaseModel):
    tier: str
    status: str
    client_limit: int
    trial_ends_at: datetime | None = None
    access_ends_at: datetime | None = None
    subscription: ProcessorSubscription | None = None
    payment_method: CardSummary | None = None
    invoices: list[InvoiceSummary] = Field(default_factory=list)


class PortalResponse(BaseModel):
    url: str


class SetupIntentResponse(BaseModel):
    client_secret: str


class EntitlementResponse(BaseModel):
    tier: str
    subscription_status: str
    client_limit: int
    current_client_count: int
    can_add_clients: bool
    features: dict[str, bool]


class BillingWebhookResponse(BaseModel):
    received: bool
    event_type: str
    organization_id: str | None = None
    updated: bool
