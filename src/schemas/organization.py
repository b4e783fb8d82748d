from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class OrganizationCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class OrganizationBillingResponse(BaseModel):
    id: UUID
    name: str
    slug: str
    subscription_status: str
    subscription_tier: str
    client_limit: int
    trial_ends_at: datetime | None = None
    has_subscription: bool
    updated_at: datetime | None = None
