from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth import AuthContext, require_billing_manager
from src.core.billing.entitlements import ClientEntitlement, enforce_client_limit
from src.core.db import get_db_session
from src.core.repositories.client_accounts import ClientAccountRepository
from src.schemas.client import ClientCreateRequest, ClientResponse

router = APIRouter(prefix="/clients", tags=["clients"])


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    payload: ClientCreateRequest,
    _: AuthContext = Depends(require_billing_manager),
    __: ClientEntitlement = Depends(enforce_client_limit),
    session: AsyncSession = Depends(get_db_session),
) -> ClientResponse:
    repository = ClientAccountRepository(session)
    email = payload.email.strip().lower()
    if await repository.get_by_email(email) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A client with this email already exists",
        )

    client = await repository.create(email=email, full_name=payload.full_name, is_active=True)
    await session.commit()
    return ClientResponse(
        id=client.id,
        email=client.email,
        full_name=client.full_name,
        is_active=client.is_active,
    )
