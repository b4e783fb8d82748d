from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.repositories.base import OrganizationRepository
from src.models.client_account import ClientAccount


class ClientAccountRepository(OrganizationRepository[ClientAccount]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model=ClientAccount)

    async def get_by_email(self, email: str) -> ClientAccount | None:
        await self._apply_rls()
        result = await self.session.execute(
            self._scoped_select().where(ClientAccount.email == email)
        )
        return result.scalar_one_or_none()

    async def count_active(self) -> int:
        await self._apply_rls()
        count = await self.session.scalar(
            select(func.count(ClientAccount.id)).where(
                ClientAccount.organization_id == self.organization_id,
                ClientAccount.is_active.is_(True),
            )
        )
        return int(count or 0)
