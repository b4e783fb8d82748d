from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth import AuthContext, ensure_organization_access, require_auth_context, require_super_admin
from src.core.billing.errors import NotFoundError
from src.core.billing.provisioning import provision_organization
from src.core.billing.tiers import TierCatalog, get_tier_catalog
from src.core.db import get_db_session
from src.core.repositories.billing_records import BillingRecordRepository
from src.models.organization import Organization
from src.schemas.organization import OrganizationBillingResponse, OrganizationCreateRequest

router = APIRouter(prefix="/organizations", tags=["organizations"])


def _to_response(record: Organization) -> OrganizationBillingResponse:
    return OrganizationBillingResponse(
        id=record.id,
        name=record.name,
        slug=record.slug,
        subscription_status=record.subscription_status,
        subscription_tier=record.subscription_tier,
        client_limit=record.client_limit,
        trial_ends_at=record.trial_ends_at,
        has_subscription=bool(record.external_subscription_id),
        updated_at=record.updated_at,
    )


@router.post("", response_model=OrganizationBillingResponse, status_code=201)
async def create_organization(
    payload: OrganizationCreateRequest,
    auth: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
    catalog: TierCatalog = Depends(get_tier_catalog),
) -> OrganizationBillingResponse:
    record = await provision_organization(
        BillingRecordRepository(session),
        catalog,
        name=payload.name,
        owner_subject=auth.subject,
    )
    return _to_response(record)


@router.get("/{organization_id}", response_model=OrganizationBillingResponse)
async def get_organization(
    organization_id: UUID,
    auth: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> OrganizationBillingResponse:
    ensure_organization_access(auth, organization_id)
    record = await BillingRecordRepository(session).get(organization_id)
    if record is None:
        raise NotFoundError("No billing record for organization", error="Organization not found")
    return _to_response(record)
