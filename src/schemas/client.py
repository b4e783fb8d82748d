from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field


class ClientCreateRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    full_name: str | None = Field(default=None, max_length=255)


class ClientResponse(BaseModel):
    id: UUID
    email: str
    full_name: str | None = None
    is_active: bool
