from __future__ import annotations

from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.base import utcnow
from src.models.organization import Organization

_IMMUTABLE_FIELDS = frozenset({"id", "created_at", "updated_at"})


class BillingRecordStore(Protocol):
    async def get(self, organization_id: UUID) -> Organization | None: ...

    async def find_by_external_customer_id(self, customer_id: str) -> Organization | None: ...

    async def apply(self, record: Organization, **values: object) -> Organization: ...

    async def commit(self) -> None: ...


class BillingRecordRepository:
    """Billing records are looked up across organizations.

    Webhook deliveries carry only the processor's customer id, so lookups here
    ignore the request's organization context.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, organization_id: UUID) -> Organization | None:
        return await self.session.scalar(
            select(Organization).where(Organization.id == organization_id)
        )

    async def get_by_slug(self, slug: str) -> Organization | None:
        return await self.session.scalar(select(Organization).where(Organization.slug == slug))

    async def find_by_external_customer_id(self, customer_id: str) -> Organization | None:
        return await self.session.scalar(
            select(Organization).where(Organization.external_customer_id == customer_id)
        )

    async def create(self, **values: object) -> Organization:
        record = Organization(**values)
        self.session.add(record)
        await self.session.flush()
        await self.session.refresh(record)
        return record

    async def apply(self, record: Organization, **values: object) -> Organization:
        # Absolute values only; concurrent writers resolve last-writer-wins.
        for field, value in values.items():
            if field in _IMMUTABLE_FIELDS:
                continue
            setattr(record, field, value)
        record.updated_at = utcnow()
        await self.session.flush()
        return record

    async def commit(self) -> None:
        await self.session.commit()
